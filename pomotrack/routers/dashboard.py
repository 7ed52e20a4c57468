from fastapi import APIRouter, Depends

from pomotrack.config import settings
from pomotrack.database import get_session_factory
from pomotrack.dependencies import get_current_user
from pomotrack.models.user import User
from pomotrack.schemas.dashboard import DashboardResponse
from pomotrack.services import (
    dashboard_service,
    leaderboard_service,
    reflection_service,
    session_service,
)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    user: User = Depends(get_current_user),
    session_factory=Depends(get_session_factory),
):
    # Each fetch gets its own session so they can run concurrently.
    async def fetch_sessions():
        async with session_factory() as db:
            return await session_service.get_sessions(db, user.id, limit=200)

    async def fetch_reflections():
        async with session_factory() as db:
            return await reflection_service.get_reflections(db, user.id, limit=10)

    async def fetch_leaderboard():
        async with session_factory() as db:
            return await leaderboard_service.get_leaderboard(db)

    return await dashboard_service.compose_dashboard(
        user,
        fetch_sessions,
        fetch_reflections,
        fetch_leaderboard,
        work_only=settings.STREAK_WORK_SESSIONS_ONLY,
    )
