"""Repository utilities for users and persisted call outcomes."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import desc, func, or_, select, update

from db.base import AsyncSessionFactory
from db.models import CallLog, User
from signaling.uid import generate_uid


class UserRepository:
    """Async repository for the users known to the signaling service."""

    async def get_by_id(self, user_id: int) -> User | None:
        async with AsyncSessionFactory() as session:
            return await session.get(User, user_id)

    async def get_by_uid(self, uid: str) -> User | None:
        async with AsyncSessionFactory() as session:
            result = await session.execute(select(User).where(User.uid == uid))
            return result.scalar_one_or_none()

    async def create_user(
        self,
        *,
        email: str,
        display_name: str | None = None,
        uid: str | None = None,
        max_attempts: int = 5,
    ) -> User:
        """Insert a user, generating a unique 10-digit uid unless one is given."""

        async with AsyncSessionFactory() as session:
            if uid is None:
                for _ in range(max_attempts):
                    candidate = generate_uid()
                    existing = await session.execute(select(User.id).where(User.uid == candidate))
                    if existing.scalar_one_or_none() is None:
                        uid = candidate
                        break
                else:
                    raise RuntimeError("Could not generate unique UID after maximum attempts")

            user = User(uid=uid, email=email, display_name=display_name)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    async def touch_last_seen(self, uid: str) -> None:
        async with AsyncSessionFactory() as session:
            await session.execute(
                update(User).where(User.uid == uid).values(last_seen=datetime.now(timezone.utc))
            )
            await session.commit()


class CallLogRepository:
    """Append-only store of terminal call outcomes."""

    async def append(
        self,
        *,
        caller_uid: str,
        callee_uid: str,
        status: str,
        duration_seconds: int = 0,
        call_id: str | None = None,
        media: str | None = None,
    ) -> CallLog:
        async with AsyncSessionFactory() as session:
            entry = CallLog(
                call_id=call_id,
                caller_uid=caller_uid,
                callee_uid=callee_uid,
                media=media,
                status=status,
                duration_seconds=duration_seconds,
                end_time=datetime.now(timezone.utc) if duration_seconds > 0 else None,
            )
            session.add(entry)
            await session.commit()
            await session.refresh(entry)
            return entry

    async def list_for_uid(
        self,
        uid: str,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[CallLog], int]:
        """Return one page of calls involving `uid` (newest first) and the total count."""

        involves = or_(CallLog.caller_uid == uid, CallLog.callee_uid == uid)
        async with AsyncSessionFactory() as session:
            total = await session.scalar(select(func.count()).select_from(CallLog).where(involves))
            query = (
                select(CallLog)
                .where(involves)
                .order_by(desc(CallLog.start_time), desc(CallLog.id))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            result = await session.execute(query)
            return list(result.scalars().all()), int(total or 0)

    async def get_for_uid(self, log_id: int, uid: str) -> CallLog | None:
        async with AsyncSessionFactory() as session:
            query = select(CallLog).where(
                CallLog.id == log_id,
                or_(CallLog.caller_uid == uid, CallLog.callee_uid == uid),
            )
            result = await session.execute(query)
            return result.scalar_one_or_none()
