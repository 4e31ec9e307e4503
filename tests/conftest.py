from __future__ import annotations

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from signaling.errors import AuthError  # noqa: E402
from signaling.gateways import Identity  # noqa: E402

JWT_SECRET = "test-secret"

ALICE = "1111111111"
BOB = "2222222222"
CAROL = "3333333333"


class FakeConnection:
    """Records outbound frames instead of writing to a socket."""

    def __init__(self, name: str = "conn") -> None:
        self.connection_id = name
        self.identity: Identity | None = None
        self.frames: list[dict] = []
        self.open = True
        self.closed_with: tuple[int, str] | None = None

    async def send(self, message) -> bool:
        if not self.open:
            return False
        self.frames.append(message.to_frame())
        return True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.open = False
        self.closed_with = (code, reason)

    def of_type(self, kind: str) -> list[dict]:
        return [frame for frame in self.frames if frame["type"] == kind]


class FakeIdentityGateway:
    """Accepts tokens of the form `token-<uid>` for the known users."""

    def __init__(self, users: dict[str, str | None]) -> None:
        self.users = users
        self.touched: list[str] = []

    async def verify_credential(self, token: str) -> Identity:
        uid = token.removeprefix("token-")
        if uid not in self.users:
            raise AuthError("Authentication failed")
        return Identity(uid=uid, display_name=self.users[uid])

    async def lookup(self, uid: str) -> Identity | None:
        if uid not in self.users:
            return None
        return Identity(uid=uid, display_name=self.users[uid])

    async def touch(self, uid: str) -> None:
        self.touched.append(uid)


class FakeCallLog:
    def __init__(self) -> None:
        self.entries: list[dict] = []
        self.fail = False
        self.delay = 0.0

    async def append_call_log(
        self,
        caller_uid: str,
        callee_uid: str,
        status: str,
        duration_seconds: int = 0,
        *,
        call_id: str | None = None,
        media: str | None = None,
    ) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("history store unavailable")
        self.entries.append(
            {
                "caller": caller_uid,
                "callee": callee_uid,
                "status": status,
                "duration": duration_seconds,
                "call_id": call_id,
                "media": media,
            }
        )


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def identities() -> FakeIdentityGateway:
    return FakeIdentityGateway({ALICE: "Alice", BOB: "Bob", CAROL: "Carol"})


@pytest.fixture()
def call_log() -> FakeCallLog:
    return FakeCallLog()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_manager(identities, call_log, clock):
    from signaling.manager import SessionManager

    def _make(ring_timeout: float = 30.0, close_superseded: bool = True) -> SessionManager:
        return SessionManager(
            identities,
            call_log,
            ring_timeout=ring_timeout,
            close_superseded=close_superseded,
            clock=clock,
        )

    return _make


@pytest.fixture()
def login():
    """Authenticate a fresh fake connection for `uid` and clear its auth ack."""

    async def _login(manager, uid: str) -> FakeConnection:
        connection = FakeConnection(uid)
        await manager.authenticate(connection, f"token-{uid}")
        connection.frames.clear()
        return connection

    return _login


@pytest.fixture()
def fake_connection():
    return FakeConnection


@pytest.fixture(scope="session")
def app(tmp_path_factory: pytest.TempPathFactory):
    tmp_dir = tmp_path_factory.mktemp("runtime")
    db_path = tmp_dir / "signaling_test.db"

    # Must be set before importing modules that create the SQLAlchemy engine.
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{db_path.as_posix()}"
    os.environ["DATA_DIR"] = str(tmp_dir)
    os.environ["AUTO_CREATE_DB_SCHEMA"] = "true"
    os.environ["JWT_SECRET"] = JWT_SECRET
    os.environ["CALL_LOG_BACKEND"] = "database"

    import importlib

    # Ensure clean import with the test DB settings.
    for module_name in [
        "config.settings",
        "db.base",
        "db.models",
        "db.repository",
        "integrations.identity_gateway",
        "integrations.call_log",
        "api.dependencies",
        "api.routes",
        "api.signaling_routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def make_token():
    from jose import jwt

    def _make(user_id: int, **claims) -> str:
        return jwt.encode({"userId": user_id, **claims}, JWT_SECRET, algorithm="HS256")

    return _make


@pytest.fixture()
def seed_user(client):
    """Insert a user through the app's own event loop and return it."""

    from db.repository import UserRepository

    def _seed(uid: str | None, display_name: str, email: str | None = None):
        repo = UserRepository()
        address = email or f"{display_name.lower()}-{uuid4().hex[:8]}@example.com"
        return client.portal.call(
            lambda: repo.create_user(email=address, display_name=display_name, uid=uid)
        )

    return _seed
