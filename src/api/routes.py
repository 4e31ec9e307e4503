"""REST routes: health, user profiles with presence, and call history."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import text

from api.dependencies import get_current_identity, get_identity_gateway, get_session_manager
from api.schemas import (
    CallHistoryEntry,
    CallHistoryResponse,
    HealthResponse,
    Pagination,
    UserPresenceResponse,
    UserProfileResponse,
)
from db.base import engine
from db.models import CallLog
from db.repository import CallLogRepository, UserRepository
from signaling.errors import NotFoundError, ValidationError
from signaling.gateways import Identity, IdentityGateway
from signaling.manager import SessionManager
from signaling.uid import is_valid_uid

LOGGER = logging.getLogger(__name__)

router = APIRouter()
health_router = APIRouter()


def _history_entry(entry: CallLog, uid: str) -> CallHistoryEntry:
    outgoing = entry.caller_uid == uid
    return CallHistoryEntry(
        id=entry.id,
        call_id=entry.call_id,
        caller_uid=entry.caller_uid,
        callee_uid=entry.callee_uid,
        media=entry.media,
        status=entry.status,
        duration_seconds=entry.duration_seconds,
        start_time=entry.start_time,
        end_time=entry.end_time,
        direction="outgoing" if outgoing else "incoming",
        other_party_uid=entry.callee_uid if outgoing else entry.caller_uid,
    )


@health_router.get("/health", response_model=HealthResponse)
async def health(manager: SessionManager = Depends(get_session_manager)):
    now = datetime.now(timezone.utc)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        LOGGER.exception("Health check failed: %s", exc)
        payload = HealthResponse(
            status="unhealthy",
            timestamp=now,
            database="disconnected",
            online_users=manager.registry.online_count(),
            error=str(exc),
        )
        return JSONResponse(status_code=503, content=payload.model_dump(mode="json"))

    return HealthResponse(
        status="healthy",
        timestamp=now,
        database="connected",
        online_users=manager.registry.online_count(),
    )


# Declared before /users/{uid} so "me" is not taken for a uid.
@router.get("/users/me", response_model=UserProfileResponse)
async def get_own_profile(identity: Identity = Depends(get_current_identity)) -> UserProfileResponse:
    user = await UserRepository().get_by_uid(identity.uid)
    if user is None:
        raise NotFoundError("User not found")
    return UserProfileResponse.model_validate(user, from_attributes=True)


@router.get("/users/{uid}", response_model=UserPresenceResponse)
async def get_user_presence(
    uid: str,
    manager: SessionManager = Depends(get_session_manager),
    identities: IdentityGateway = Depends(get_identity_gateway),
) -> UserPresenceResponse:
    if not is_valid_uid(uid):
        raise ValidationError("Invalid UID format")

    identity = await identities.lookup(uid)
    if identity is None:
        raise NotFoundError("User not found")

    return UserPresenceResponse(
        uid=identity.uid,
        display_name=identity.display_name,
        status="online" if manager.is_online(uid) else "offline",
        last_seen=identity.last_seen,
    )


@router.get("/calls", response_model=CallHistoryResponse)
async def list_calls(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
) -> CallHistoryResponse:
    entries, total = await CallLogRepository().list_for_uid(identity.uid, page=page, limit=limit)
    total_pages = math.ceil(total / limit)
    return CallHistoryResponse(
        calls=[_history_entry(entry, identity.uid) for entry in entries],
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_calls=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


@router.get("/calls/{log_id}", response_model=CallHistoryEntry)
async def get_call(
    log_id: int,
    identity: Identity = Depends(get_current_identity),
) -> CallHistoryEntry:
    entry = await CallLogRepository().get_for_uid(log_id, identity.uid)
    if entry is None:
        raise NotFoundError("Call not found")
    return _history_entry(entry, identity.uid)
