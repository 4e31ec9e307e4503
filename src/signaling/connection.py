"""Connection handles owned by the session manager."""

from __future__ import annotations

import logging
from typing import Protocol
from uuid import uuid4

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from signaling.gateways import Identity
from signaling.messages import OutboundMessage

LOGGER = logging.getLogger(__name__)


class Connection(Protocol):
    connection_id: str
    identity: Identity | None

    async def send(self, message: OutboundMessage) -> bool: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class WebSocketConnection:
    """A websocket bound to at most one identity once authenticated.

    Sends are fire-and-forget: a send on a closed socket is skipped and
    reported through the return value, never raised.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.connection_id = uuid4().hex[:12]
        self.identity: Identity | None = None
        self._websocket = websocket
        self._closed = False

    def __repr__(self) -> str:
        uid = self.identity.uid if self.identity else None
        return f"<WebSocketConnection {self.connection_id} uid={uid}>"

    @property
    def is_open(self) -> bool:
        return not self._closed and self._websocket.application_state == WebSocketState.CONNECTED

    async def send(self, message: OutboundMessage) -> bool:
        if not self.is_open:
            return False
        try:
            await self._websocket.send_json(message.to_frame())
        except (WebSocketDisconnect, RuntimeError) as exc:
            LOGGER.debug("Send to %r failed: %s", self, exc)
            self._closed = True
            return False
        return True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self.is_open:
            return
        self._closed = True
        try:
            await self._websocket.close(code=code, reason=reason)
        except RuntimeError as exc:
            LOGGER.debug("Close of %r failed: %s", self, exc)

    def mark_closed(self) -> None:
        self._closed = True
