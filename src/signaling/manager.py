"""Session manager: the call state machine and everything it owns.

The manager is the only holder of the connection registry, the session table
and the ring-timeout scheduler. Callers interact with it through the
operations below and never see raw registry state.

Ordering rules:
- accept/reject/hangup/timeout for one call run under that call's lock;
- call creation runs under the locks of both identities, so the busy check
  and the insert are atomic with respect to other requests for them;
- the timeout handler re-checks the ringing state regardless.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from signaling.connection import Connection
from signaling.errors import AuthError, InvalidTransitionError, NotFoundError, SignalingError, ValidationError
from signaling.gateways import CallLogGateway, Identity, IdentityGateway
from signaling.locks import KeyedLocks
from signaling.messages import (
    AuthSuccess,
    CallAccepted,
    CallEnded,
    CallFailed,
    CallIceMessage,
    CallIncoming,
    CallRejected,
    CallRinging,
    CallTimeout,
    ErrorFrame,
    RelayedCandidate,
    RelayedNegotiation,
    RelayMessage,
    UserInfo,
)
from signaling.registry import ConnectionRegistry
from signaling.scheduler import TimeoutScheduler
from signaling.sessions import CallSession, CallStatus, SessionTable
from signaling.uid import is_valid_uid

LOGGER = logging.getLogger(__name__)

SUPERSEDED_CLOSE_CODE = 4001


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Brokers the ring/accept/reject/hangup lifecycle between two identities."""

    def __init__(
        self,
        identity_gateway: IdentityGateway,
        call_log: CallLogGateway,
        *,
        ring_timeout: float = 30.0,
        close_superseded: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._identity = identity_gateway
        self._call_log = call_log
        self._ring_timeout = ring_timeout
        self._close_superseded = close_superseded
        self._clock = clock

        self._registry = ConnectionRegistry()
        self._sessions = SessionTable()
        self._scheduler = TimeoutScheduler()
        self._call_locks = KeyedLocks()
        self._identity_locks = KeyedLocks()
        self._log_tasks: set[asyncio.Task] = set()

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def sessions(self) -> SessionTable:
        return self._sessions

    @property
    def scheduler(self) -> TimeoutScheduler:
        return self._scheduler

    def is_online(self, uid: str) -> bool:
        return self._registry.is_online(uid)

    async def shutdown(self) -> None:
        """Drop every in-flight call and flush pending call log writes.

        Live call state does not survive a restart.
        """

        await self._scheduler.shutdown()
        dropped = len(self._sessions)
        for session in self._sessions:
            self._sessions.remove(session.call_id)
        self._registry.clear()
        if dropped:
            LOGGER.warning("Shutdown dropped %s in-flight call(s)", dropped)

        pending = list(self._log_tasks)
        if pending:
            LOGGER.info("Waiting for %s pending call log write(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    # Authentication and presence

    async def authenticate(self, connection: Connection, token: str | None) -> Identity:
        if not token:
            raise AuthError("Token required")

        identity = await self._identity.verify_credential(token)
        if connection.identity is not None and connection.identity.uid != identity.uid:
            raise AuthError("Connection is already authenticated as another user")

        connection.identity = identity
        previous = self._registry.register(identity.uid, connection)
        if previous is not None:
            # Calls now belong to the fresh connection; the old one may not act on them.
            previous.identity = None
        await self._touch(identity.uid)

        await connection.send(
            AuthSuccess(user=UserInfo(uid=identity.uid, display_name=identity.display_name))
        )
        LOGGER.info("User %s authenticated on %r", identity.uid, connection)

        if previous is not None and self._close_superseded:
            await previous.send(
                ErrorFrame(code="superseded", message="Signed in from another connection")
            )
            await previous.close(code=SUPERSEDED_CLOSE_CODE, reason="superseded")
        return identity

    async def update_presence(self, connection: Connection, status: str) -> None:
        identity = self._require_identity(connection)
        await self._touch(identity.uid)
        LOGGER.info("User %s status updated to %s", identity.uid, status)

    # Call lifecycle

    async def request_call(
        self, connection: Connection, to_uid: str | None, media: str = "video"
    ) -> CallSession | None:
        """Start ringing `to_uid`, or refuse with call.failed when busy or offline.

        Returns the new session, or None when the request was refused.
        """

        caller = self._require_identity(connection)
        if not is_valid_uid(to_uid):
            raise ValidationError("Invalid UID format")
        if to_uid == caller.uid:
            raise ValidationError("Cannot call yourself")

        async with self._identity_locks.hold(caller.uid, to_uid):
            if self._sessions.is_busy(caller.uid) or self._sessions.is_busy(to_uid):
                refusal = "user_busy"
            elif (callee_connection := self._registry.lookup(to_uid)) is None:
                refusal = "user_offline"
            else:
                refusal = None
                session = CallSession(
                    call_id=self._sessions.new_call_id(),
                    caller_uid=caller.uid,
                    callee_uid=to_uid,
                    media=media,
                    created_at=self._clock(),
                )
                async with self._call_locks.hold(session.call_id):
                    self._sessions.insert(session)
                    self._scheduler.arm(session.call_id, self._ring_timeout, self._on_ring_timeout)
                    await callee_connection.send(
                        CallIncoming(
                            call_id=session.call_id,
                            from_uid=caller.uid,
                            from_name=caller.display_name,
                            media=media,
                        )
                    )
                    await connection.send(CallRinging(call_id=session.call_id, to_uid=to_uid))

        if refusal is not None:
            await connection.send(CallFailed(reason=refusal, to_uid=to_uid))
            status = "busy" if refusal == "user_busy" else "missed"
            LOGGER.info("Call %s -> %s refused: %s", caller.uid, to_uid, refusal)
            self._record(caller.uid, to_uid, status, media=media)
            return None

        LOGGER.info("Call initiated: %s -> %s (%s)", caller.uid, to_uid, session.call_id)
        return session

    async def accept(self, connection: Connection, call_id: str) -> None:
        identity = self._require_identity(connection)
        async with self._call_locks.hold(call_id):
            session = self._sessions.get(call_id)
            if session is None or session.callee_uid != identity.uid:
                raise NotFoundError("Call not found")

            session.transition(CallStatus.ACCEPTED, expected=(CallStatus.RINGING,))
            session.accepted_at = self._clock()
            self._scheduler.disarm(call_id)

            caller_connection = self._registry.lookup(session.caller_uid)
            if caller_connection is not None:
                # The caller creates the offer; the callee never does.
                await caller_connection.send(CallAccepted(call_id=call_id, should_send_offer=True))
        LOGGER.info("Call accepted: %s", call_id)

    async def reject(self, connection: Connection, call_id: str, reason: str = "declined") -> None:
        identity = self._require_identity(connection)
        async with self._call_locks.hold(call_id):
            session = self._sessions.get(call_id)
            if session is None or session.callee_uid != identity.uid:
                raise NotFoundError("Call not found")

            session.transition(CallStatus.REJECTED, expected=(CallStatus.RINGING,))
            self._scheduler.disarm(call_id)
            self._sessions.remove(call_id)

            caller_connection = self._registry.lookup(session.caller_uid)
            if caller_connection is not None:
                await caller_connection.send(CallRejected(call_id=call_id, reason=reason))

        LOGGER.info("Call rejected: %s (%s)", call_id, reason)
        self._record_session(session, "declined")

    async def hangup(self, connection: Connection, call_id: str, reason: str = "user") -> None:
        identity = self._require_identity(connection)
        await self._end_call(call_id, identity.uid, reason)

    async def relay(self, connection: Connection, message: RelayMessage) -> None:
        """Forward an offer/answer/candidate to the other party, unmodified."""

        identity = self._require_identity(connection)
        session = self._sessions.get(message.call_id)
        if (
            session is None
            or not session.involves(identity.uid)
            or session.counterpart(identity.uid) != message.to_uid
        ):
            raise NotFoundError("Call not found")

        target = self._registry.lookup(message.to_uid)
        if target is None:
            raise NotFoundError("Target user not connected")

        if isinstance(message, CallIceMessage):
            frame = RelayedCandidate(
                call_id=message.call_id, from_uid=identity.uid, candidate=message.candidate
            )
        else:
            frame = RelayedNegotiation(
                type=message.type, call_id=message.call_id, from_uid=identity.uid, sdp=message.sdp
            )
        if not await target.send(frame):
            raise NotFoundError("Target user not connected")

    async def disconnect(self, connection: Connection) -> None:
        """Tear down presence and every call of the identity behind `connection`."""

        identity = connection.identity
        if identity is None:
            return

        if not self._registry.unregister(identity.uid, connection):
            # A newer connection owns this identity and its calls now.
            LOGGER.info("Superseded connection %r for %s closed", connection, identity.uid)
            return

        LOGGER.info("User %s disconnected", identity.uid)
        for session in self._sessions:
            if not session.involves(identity.uid):
                continue
            try:
                await self._end_call(session.call_id, identity.uid, "disconnect")
            except SignalingError as exc:
                # Ended concurrently by the other party or the timeout.
                LOGGER.debug("Disconnect cleanup skipped call %s: %s", session.call_id, exc)

    # Internals

    async def _end_call(self, call_id: str, uid: str, reason: str) -> None:
        async with self._call_locks.hold(call_id):
            session = self._sessions.get(call_id)
            if session is None or not session.involves(uid):
                raise NotFoundError("Call not found")

            session.transition(CallStatus.ENDED, expected=(CallStatus.RINGING, CallStatus.ACCEPTED))
            self._scheduler.disarm(call_id)
            self._sessions.remove(call_id)
            duration = session.duration_seconds(self._clock())

            other = self._registry.lookup(session.counterpart(uid))
            if other is not None:
                await other.send(CallEnded(call_id=call_id, reason=reason))

        LOGGER.info("Call ended: %s (%s, %ss)", call_id, reason, duration)
        status = "accepted" if session.was_accepted else "missed"
        self._record_session(session, status, duration)

    async def _on_ring_timeout(self, call_id: str) -> None:
        async with self._call_locks.hold(call_id):
            session = self._sessions.get(call_id)
            if session is None:
                return
            try:
                session.transition(CallStatus.TIMED_OUT, expected=(CallStatus.RINGING,))
            except InvalidTransitionError:
                LOGGER.debug("Ignoring stale ring timeout for call %s", call_id)
                return
            self._sessions.remove(call_id)

            for uid in (session.caller_uid, session.callee_uid):
                party = self._registry.lookup(uid)
                if party is not None:
                    await party.send(CallTimeout(call_id=call_id))

        LOGGER.info("Call timeout: %s", call_id)
        self._record_session(session, "missed")

    def _require_identity(self, connection: Connection) -> Identity:
        if connection.identity is None:
            raise AuthError("Not authenticated")
        return connection.identity

    async def _touch(self, uid: str) -> None:
        try:
            await self._identity.touch(uid)
        except Exception:
            LOGGER.exception("Failed to update last-seen for %s", uid)

    def _record_session(self, session: CallSession, status: str, duration: int = 0) -> None:
        self._record(
            session.caller_uid,
            session.callee_uid,
            status,
            duration,
            call_id=session.call_id,
            media=session.media,
        )

    def _record(
        self,
        caller_uid: str,
        callee_uid: str,
        status: str,
        duration: int = 0,
        *,
        call_id: str | None = None,
        media: str | None = None,
    ) -> None:
        """Hand the outcome to the history sink without waiting for it."""

        task = asyncio.get_running_loop().create_task(
            self._append_call_log(caller_uid, callee_uid, status, duration, call_id=call_id, media=media)
        )
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    async def _append_call_log(
        self,
        caller_uid: str,
        callee_uid: str,
        status: str,
        duration: int,
        *,
        call_id: str | None,
        media: str | None,
    ) -> None:
        # A lost history entry must never undo a signaling transition.
        try:
            await self._call_log.append_call_log(
                caller_uid, callee_uid, status, duration, call_id=call_id, media=media
            )
        except Exception:
            LOGGER.exception("Failed to record %s call %s -> %s", status, caller_uid, callee_uid)
