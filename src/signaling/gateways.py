"""Contracts for the collaborators the signaling core consumes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Identity:
    """Stable handle of a registered participant plus its display label."""

    uid: str
    display_name: str | None = None
    last_seen: datetime | None = None


class IdentityGateway(Protocol):
    async def verify_credential(self, token: str) -> Identity:
        """Return the identity a token was issued for, or raise AuthError."""

    async def lookup(self, uid: str) -> Identity | None:
        """Return the identity registered under `uid`, if any."""

    async def touch(self, uid: str) -> None:
        """Record that `uid` was just seen."""


class CallLogGateway(Protocol):
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
        """Durably record a terminal call outcome."""
