"""API-facing Pydantic models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: Literal["healthy", "unhealthy"]
    timestamp: datetime
    database: Literal["connected", "disconnected"]
    online_users: int
    error: str | None = None


class UserPresenceResponse(BaseModel):
    uid: str
    display_name: str | None
    status: Literal["online", "offline"]
    last_seen: datetime | None


class UserProfileResponse(BaseModel):
    id: int
    uid: str
    email: str
    display_name: str | None
    created_at: datetime
    last_seen: datetime


class CallHistoryEntry(BaseModel):
    id: int
    call_id: str | None
    caller_uid: str
    callee_uid: str
    media: str | None
    status: str
    duration_seconds: int
    start_time: datetime
    end_time: datetime | None
    direction: Literal["outgoing", "incoming"]
    other_party_uid: str


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_calls: int
    has_next: bool
    has_prev: bool


class CallHistoryResponse(BaseModel):
    calls: list[CallHistoryEntry]
    pagination: Pagination
