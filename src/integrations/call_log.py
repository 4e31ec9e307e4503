"""Destinations for terminal call outcomes."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from config.settings import get_settings
from db.repository import CallLogRepository
from signaling.gateways import CallLogGateway

LOGGER = logging.getLogger(__name__)


class DatabaseCallLogGateway:
    """Appends call outcomes to the local `call_logs` table."""

    def __init__(self, repo: CallLogRepository | None = None) -> None:
        self._repo = repo or CallLogRepository()

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
        await self._repo.append(
            caller_uid=caller_uid,
            callee_uid=callee_uid,
            status=status,
            duration_seconds=duration_seconds,
            call_id=call_id,
            media=media,
        )


class WebhookCallLogGateway:
    """Posts call outcomes to an external history service."""

    def __init__(
        self,
        endpoint: str | None = None,
        api_key: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        endpoint = endpoint or settings.call_log_webhook_url
        if not endpoint:
            raise ValueError("Call log webhook endpoint is not configured.")
        self._endpoint = endpoint.rstrip("/")
        self._api_key = api_key or settings.call_log_webhook_api_key
        self._transport = transport

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
        payload: dict[str, Any] = {
            "caller_uid": caller_uid,
            "callee_uid": callee_uid,
            "status": status,
            "duration_seconds": duration_seconds,
            "call_id": call_id,
            "media": media,
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with httpx.AsyncClient(timeout=10, transport=self._transport) as client:
            response = await client.post(self._endpoint, json=payload, headers=headers)
        try:
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Call log webhook failed: %s", exc)
            raise


def build_call_log_gateway() -> CallLogGateway:
    """Instantiate the configured call history destination."""

    settings = get_settings()
    if settings.call_log_backend == "database":
        return DatabaseCallLogGateway()
    if settings.call_log_backend == "webhook":
        return WebhookCallLogGateway()
    raise ValueError(f"Unsupported call_log_backend: {settings.call_log_backend}")
