import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from pomotrack.config import settings
from pomotrack.database import get_session_factory
from pomotrack.dependencies import get_current_user
from pomotrack.models.user import User
from pomotrack.schemas.leaderboard import LeaderboardResponse
from pomotrack.services import leaderboard_service, session_service
from pomotrack.utils.timezone_utils import get_timezone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int = Query(default=50, ge=1, le=50),
    user: User = Depends(get_current_user),
    session_factory=Depends(get_session_factory),
):
    """Top users by total focused minutes. Degrades to a single entry for the caller."""
    # Same policy as the dashboard: any leaderboard failure falls back.
    try:
        async with session_factory() as db:
            entries = await leaderboard_service.get_leaderboard(db, limit=limit)
        return LeaderboardResponse(users=entries)
    except Exception:
        logger.exception("Leaderboard query failed, falling back to caller-only leaderboard")

    sessions = []
    try:
        async with session_factory() as db:
            sessions = await session_service.get_sessions(db, user.id, limit=200)
    except Exception as exc:
        logger.warning(
            "Could not load sessions for fallback leaderboard of user %s: %r", user.id, exc
        )

    entries = leaderboard_service.fallback_leaderboard(
        user, sessions, now=datetime.now(timezone.utc), tz=get_timezone(),
        work_only=settings.STREAK_WORK_SESSIONS_ONLY,
    )
    return LeaderboardResponse(users=entries, fallback=True)
