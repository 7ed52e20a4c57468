import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pomotrack.models.reflection import Reflection
from pomotrack.models.session import MAX_BREAK_MINUTES, Session
from pomotrack.utils.timezone_utils import ensure_utc

logger = logging.getLogger(__name__)


def check_duration(session_type: str, duration: int) -> None:
    if session_type != "work" and duration > MAX_BREAK_MINUTES:
        raise ValueError(f"Break sessions cannot be longer than {MAX_BREAK_MINUTES} minutes")


def _filter_sessions(query, user_id, session_type, start_date, end_date):
    query = query.where(Session.user_id == user_id)
    if session_type:
        query = query.where(Session.session_type == session_type)
    if start_date:
        query = query.where(Session.completed_at >= ensure_utc(start_date))
    if end_date:
        query = query.where(Session.completed_at <= ensure_utc(end_date))
    return query


def clamp_completed_at(value: datetime | None, now: datetime) -> datetime:
    """Default to now; timestamps in the future are pulled back to now."""
    if value is None:
        return now
    return min(ensure_utc(value), now)


async def get_sessions(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
    session_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    sort_order: str = "desc",
) -> list[Session]:
    query = _filter_sessions(select(Session), user_id, session_type, start_date, end_date)
    order = Session.completed_at.asc() if sort_order == "asc" else Session.completed_at.desc()
    query = query.order_by(order).limit(limit).offset(offset)
    result = await db.execute(query)
    return list(result.scalars().all())


async def count_sessions(
    db: AsyncSession,
    user_id: uuid.UUID,
    session_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> int:
    query = _filter_sessions(
        select(func.count(Session.id)), user_id, session_type, start_date, end_date
    )
    result = await db.execute(query)
    return result.scalar_one()


async def get_session(
    db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID
) -> Session | None:
    result = await db.execute(
        select(Session).where(Session.id == session_id, Session.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def create_session(
    db: AsyncSession, user_id: uuid.UUID, data: dict, now: datetime | None = None
) -> Session:
    now = now or datetime.now(timezone.utc)
    check_duration(data["session_type"], data["duration"])
    data["completed_at"] = clamp_completed_at(data.get("completed_at"), now)

    session = Session(user_id=user_id, **data)
    db.add(session)
    await db.flush()
    await db.refresh(session)

    logger.info(
        "Session created for user %s: id=%s type=%s duration=%d",
        user_id, session.id, session.session_type, session.duration,
    )
    return session


async def update_session(
    db: AsyncSession,
    user_id: uuid.UUID,
    session_id: uuid.UUID,
    data: dict,
    now: datetime | None = None,
) -> Session | None:
    session = await get_session(db, user_id, session_id)
    if session is None:
        return None

    now = now or datetime.now(timezone.utc)
    changes = {key: value for key, value in data.items() if value is not None}
    check_duration(
        changes.get("session_type", session.session_type),
        changes.get("duration", session.duration),
    )
    if "completed_at" in changes:
        changes["completed_at"] = clamp_completed_at(changes["completed_at"], now)

    for key, value in changes.items():
        setattr(session, key, value)
    session.updated_at = now

    await db.flush()
    await db.refresh(session)

    logger.info("Session updated for user %s: id=%s", user_id, session.id)
    return session


async def delete_session(
    db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID
) -> bool:
    """Delete a session together with its reflection."""
    session = await get_session(db, user_id, session_id)
    if session is None:
        return False

    await db.execute(
        delete(Reflection).where(
            Reflection.session_id == session_id,
            Reflection.user_id == user_id,
        )
    )
    await db.delete(session)
    await db.flush()

    logger.info("Session deleted for user %s: id=%s", user_id, session_id)
    return True
