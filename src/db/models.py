"""SQLAlchemy models for registered users and call history."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class User(Base):
    """Registered participant as seen by the signaling service."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(10), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True)
    display_name: Mapped[str | None] = mapped_column(String(100), default=None)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(timezone.utc))
    last_seen: Mapped[datetime] = mapped_column(default=lambda: datetime.now(timezone.utc))


class CallLog(Base):
    """Terminal outcome of one call attempt."""

    __tablename__ = "call_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    call_id: Mapped[str | None] = mapped_column(String(36), index=True, default=None)
    caller_uid: Mapped[str] = mapped_column(String(10), index=True)
    callee_uid: Mapped[str] = mapped_column(String(10), index=True)
    media: Mapped[str | None] = mapped_column(String(8), default=None)
    # accepted | missed | declined | busy
    status: Mapped[str] = mapped_column(String(16))
    duration_seconds: Mapped[int] = mapped_column(default=0)
    start_time: Mapped[datetime] = mapped_column(default=lambda: datetime.now(timezone.utc))
    end_time: Mapped[datetime | None] = mapped_column(default=None)
