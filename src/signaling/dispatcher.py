"""Routes decoded control messages to the session manager."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from signaling.connection import Connection
from signaling.errors import AuthError, SignalingError
from signaling.manager import SessionManager
from signaling.messages import AuthMessage, ErrorFrame, decode_frame

LOGGER = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


class ProtocolDispatcher:
    """Decode, authenticate and route one inbound frame at a time.

    Every failure is answered with an `error` frame on the same connection;
    the connection itself stays open.
    """

    def __init__(self, manager: SessionManager) -> None:
        self._manager = manager
        self._routes: dict[str, Handler] = {
            "auth": self._handle_auth,
            "presence.update": self._handle_presence,
            "call.request": self._handle_request,
            "call.accept": self._handle_accept,
            "call.reject": self._handle_reject,
            "call.hangup": self._handle_hangup,
            "call.offer": manager.relay,
            "call.answer": manager.relay,
            "call.ice": manager.relay,
        }

    async def dispatch(self, connection: Connection, raw: str | bytes) -> None:
        try:
            message = decode_frame(raw)
            if not isinstance(message, AuthMessage) and connection.identity is None:
                raise AuthError("Not authenticated")
            await self._routes[message.type](connection, message)
        except SignalingError as exc:
            LOGGER.info("Rejected message on %r: %s", connection, exc.detail)
            await connection.send(ErrorFrame(code=exc.code, message=exc.detail))
        except Exception:
            LOGGER.exception("Message handling failed on %r", connection)
            await connection.send(ErrorFrame(code="internal_error", message="Internal server error"))

    async def _handle_auth(self, connection: Connection, message: Any) -> None:
        await self._manager.authenticate(connection, message.token)

    async def _handle_presence(self, connection: Connection, message: Any) -> None:
        await self._manager.update_presence(connection, message.status)

    async def _handle_request(self, connection: Connection, message: Any) -> None:
        await self._manager.request_call(connection, message.to_uid, message.media)

    async def _handle_accept(self, connection: Connection, message: Any) -> None:
        await self._manager.accept(connection, message.call_id)

    async def _handle_reject(self, connection: Connection, message: Any) -> None:
        await self._manager.reject(connection, message.call_id, message.reason)

    async def _handle_hangup(self, connection: Connection, message: Any) -> None:
        await self._manager.hangup(connection, message.call_id, message.reason)
