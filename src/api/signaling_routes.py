"""Websocket endpoint carrying the call-signaling control plane."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket

from api.dependencies import get_dispatcher, get_session_manager
from signaling.connection import WebSocketConnection
from signaling.dispatcher import ProtocolDispatcher
from signaling.manager import SessionManager

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["signaling"])


@router.websocket("/ws")
async def signaling_socket(
    websocket: WebSocket,
    manager: SessionManager = Depends(get_session_manager),
    dispatcher: ProtocolDispatcher = Depends(get_dispatcher),
) -> None:
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    LOGGER.info("New websocket connection %r", connection)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await dispatcher.dispatch(connection, raw)
    finally:
        connection.mark_closed()
        await manager.disconnect(connection)
