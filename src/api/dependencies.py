"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header
from fastapi.requests import HTTPConnection

from config.settings import get_settings
from integrations.call_log import build_call_log_gateway
from integrations.identity_gateway import JWTIdentityGateway
from signaling.dispatcher import ProtocolDispatcher
from signaling.errors import AuthError
from signaling.gateways import Identity, IdentityGateway
from signaling.manager import SessionManager


@lru_cache(maxsize=1)
def get_identity_gateway() -> IdentityGateway:
    return JWTIdentityGateway()


def build_session_manager() -> SessionManager:
    settings = get_settings()
    return SessionManager(
        get_identity_gateway(),
        build_call_log_gateway(),
        ring_timeout=settings.ring_timeout_seconds,
        close_superseded=settings.close_superseded_connections,
    )


def get_session_manager(conn: HTTPConnection) -> SessionManager:
    return conn.app.state.session_manager


def get_dispatcher(conn: HTTPConnection) -> ProtocolDispatcher:
    return conn.app.state.dispatcher


async def get_current_identity(
    authorization: Annotated[str | None, Header()] = None,
    identities: IdentityGateway = Depends(get_identity_gateway),
) -> Identity:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Token required")
    return await identities.verify_credential(token.strip())
