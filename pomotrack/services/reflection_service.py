import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pomotrack.models.reflection import Reflection
from pomotrack.services.session_service import get_session
from pomotrack.utils.timezone_utils import ensure_utc

logger = logging.getLogger(__name__)

DUPLICATE_REFLECTION = "Reflection already exists for this session"


async def reflection_exists(db: AsyncSession, session_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(Reflection.id).where(Reflection.session_id == session_id)
    )
    return result.scalar_one_or_none() is not None


async def create_reflection(
    db: AsyncSession, user_id: uuid.UUID, data: dict
) -> Reflection | None:
    """Attach a reflection to one of the user's sessions.

    Returns None when the session does not exist or belongs to someone else.
    Raises ValueError when the session already has a reflection.
    """
    session = await get_session(db, user_id, data["session_id"])
    if session is None:
        return None

    if await reflection_exists(db, session.id):
        raise ValueError(DUPLICATE_REFLECTION)

    created_at = data.pop("created_at", None)
    reflection = Reflection(user_id=user_id, **data)
    if created_at is not None:
        reflection.created_at = ensure_utc(created_at)
    db.add(reflection)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent create for the same session
        await db.rollback()
        raise ValueError(DUPLICATE_REFLECTION)
    await db.refresh(reflection)
    await db.refresh(reflection, attribute_names=["session"])

    logger.info("Reflection created for user %s: session=%s", user_id, session.id)
    return reflection


async def get_reflections(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[Reflection]:
    result = await db.execute(
        select(Reflection)
        .options(selectinload(Reflection.session))
        .where(Reflection.user_id == user_id)
        .order_by(Reflection.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def get_reflection_for_session(
    db: AsyncSession, user_id: uuid.UUID, session_id: uuid.UUID
) -> Reflection | None:
    result = await db.execute(
        select(Reflection)
        .options(selectinload(Reflection.session))
        .where(Reflection.session_id == session_id, Reflection.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def update_reflection(
    db: AsyncSession, user_id: uuid.UUID, reflection_id: uuid.UUID, data: dict
) -> Reflection | None:
    result = await db.execute(
        select(Reflection)
        .options(selectinload(Reflection.session))
        .where(Reflection.id == reflection_id, Reflection.user_id == user_id)
    )
    reflection = result.scalar_one_or_none()
    if reflection is None:
        return None

    for key, value in data.items():
        if value is not None:
            setattr(reflection, key, value)
    reflection.updated_at = datetime.now(timezone.utc)

    await db.flush()
    return reflection


async def delete_reflection(
    db: AsyncSession, user_id: uuid.UUID, reflection_id: uuid.UUID
) -> bool:
    result = await db.execute(
        select(Reflection).where(
            Reflection.id == reflection_id, Reflection.user_id == user_id
        )
    )
    reflection = result.scalar_one_or_none()
    if reflection is None:
        return False

    await db.delete(reflection)
    await db.flush()
    return True
