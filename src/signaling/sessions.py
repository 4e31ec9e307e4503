"""Call sessions, their transition rules and the table that holds them."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from signaling.errors import ConflictError, InvalidTransitionError


class CallStatus(str, Enum):
    RINGING = "ringing"
    ACCEPTED = "accepted"
    ENDED = "ended"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self not in (CallStatus.RINGING, CallStatus.ACCEPTED)


# Allowed targets per source state. Terminal states have no way out.
_TRANSITIONS: dict[CallStatus, frozenset[CallStatus]] = {
    CallStatus.RINGING: frozenset(
        {CallStatus.ACCEPTED, CallStatus.REJECTED, CallStatus.TIMED_OUT, CallStatus.ENDED}
    ),
    CallStatus.ACCEPTED: frozenset({CallStatus.ENDED}),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CallSession:
    """Signaling-level record of one call attempt."""

    call_id: str
    caller_uid: str
    callee_uid: str
    media: str = "video"
    status: CallStatus = CallStatus.RINGING
    created_at: datetime = field(default_factory=_utcnow)
    accepted_at: datetime | None = None

    @property
    def was_accepted(self) -> bool:
        return self.accepted_at is not None

    def involves(self, uid: str) -> bool:
        return uid in (self.caller_uid, self.callee_uid)

    def counterpart(self, uid: str) -> str:
        if uid == self.caller_uid:
            return self.callee_uid
        if uid == self.callee_uid:
            return self.caller_uid
        raise ValueError(f"{uid} is not a party of call {self.call_id}")

    def transition(self, target: CallStatus, *, expected: tuple[CallStatus, ...]) -> None:
        """Move to `target` if the current status is one of `expected`.

        Anything else raises InvalidTransitionError and leaves the session untouched.
        """

        if self.status not in expected or target not in _TRANSITIONS.get(self.status, frozenset()):
            raise InvalidTransitionError(
                f"Call {self.call_id} is {self.status.value}; cannot move to {target.value}"
            )
        self.status = target

    def duration_seconds(self, now: datetime) -> int:
        if self.accepted_at is None:
            return 0
        return max(0, int((now - self.accepted_at).total_seconds()))


class SessionTable:
    """Non-terminal sessions by call id, plus the identity index behind the busy check."""

    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}
        self._by_uid: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._sessions

    def __iter__(self) -> Iterator[CallSession]:
        return iter(list(self._sessions.values()))

    def new_call_id(self) -> str:
        while True:
            call_id = str(uuid.uuid4())
            if call_id not in self._sessions:
                return call_id

    def is_busy(self, uid: str) -> bool:
        return uid in self._by_uid

    def get(self, call_id: str) -> CallSession | None:
        return self._sessions.get(call_id)

    def active_for(self, uid: str) -> CallSession | None:
        call_id = self._by_uid.get(uid)
        return self._sessions.get(call_id) if call_id else None

    def insert(self, session: CallSession) -> None:
        if session.call_id in self._sessions:
            raise ValueError(f"Call id {session.call_id} already in use")
        for uid in (session.caller_uid, session.callee_uid):
            if uid in self._by_uid:
                raise ConflictError(f"User {uid} is busy")
        self._sessions[session.call_id] = session
        self._by_uid[session.caller_uid] = session.call_id
        self._by_uid[session.callee_uid] = session.call_id

    def remove(self, call_id: str) -> CallSession | None:
        session = self._sessions.pop(call_id, None)
        if session is None:
            return None
        for uid in (session.caller_uid, session.callee_uid):
            if self._by_uid.get(uid) == call_id:
                del self._by_uid[uid]
        return session
