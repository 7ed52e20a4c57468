"""Dashboard view model composed from the session, reflection and leaderboard fetches.

Session and reflection fetches run concurrently and fail independently: a
failed fetch is logged and treated as an empty list, so the dashboard always
renders with whatever data is available. A failed leaderboard fetch falls
back to a single-entry leaderboard for the requesting user.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone, tzinfo

from pomotrack.schemas.dashboard import DashboardReflection, DashboardResponse
from pomotrack.schemas.session import SessionSummary
from pomotrack.services.leaderboard_service import fallback_leaderboard
from pomotrack.services.stats_service import (
    average_sessions_per_day,
    calendar_map,
    productivity_score,
    total_focus_minutes,
    weekly_activity,
)
from pomotrack.services.streak_service import session_streak
from pomotrack.utils.timezone_utils import get_timezone, local_date

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[list]]


async def fetch_independently(**fetchers: Fetcher) -> tuple[dict[str, list], list[str]]:
    """Run fetchers concurrently; failures become empty lists.

    Returns the results by name and the names of the fetchers that failed.
    """
    names = list(fetchers)
    outcomes = await asyncio.gather(
        *(fetchers[name]() for name in names), return_exceptions=True
    )

    results: dict[str, list] = {}
    failed: list[str] = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning("Dashboard %s fetch failed, continuing without it: %r", name, outcome)
            results[name] = []
            failed.append(name)
        else:
            results[name] = list(outcome or [])
    return results, failed


def link_reflections(reflections, sessions) -> list[DashboardReflection]:
    by_id = {s.id: s for s in sessions}
    linked = []
    for r in reflections:
        match = by_id.get(r.session_id)
        linked.append(
            DashboardReflection(
                id=r.id,
                session_id=r.session_id,
                learnings=r.learnings,
                created_at=r.created_at,
                session=SessionSummary.model_validate(match, from_attributes=True) if match else None,
            )
        )
    return linked


async def compose_dashboard(
    user,
    fetch_sessions: Fetcher,
    fetch_reflections: Fetcher,
    fetch_leaderboard: Fetcher | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    work_only: bool = False,
) -> DashboardResponse:
    now = now or datetime.now(timezone.utc)
    tz = tz or get_timezone()

    results, degraded = await fetch_independently(
        sessions=fetch_sessions, reflections=fetch_reflections
    )
    sessions = results["sessions"]
    reflections = results["reflections"]

    work = [s for s in sessions if s.session_type == "work"]
    weekly = weekly_activity(sessions, now, tz)
    calendar = calendar_map(sessions, tz)
    today = local_date(now, tz)

    leaderboard = None
    if fetch_leaderboard is not None:
        try:
            leaderboard = list(await fetch_leaderboard())
        except Exception as exc:
            logger.warning("Leaderboard fetch failed, using local data: %r", exc)
            degraded.append("leaderboard")
    leaderboard_fallback = leaderboard is None
    if leaderboard_fallback:
        leaderboard = fallback_leaderboard(user, sessions, now, tz, work_only=work_only)

    current_user_rank = next(
        (entry.rank for entry in leaderboard if entry.user_id == user.id), 0
    )

    return DashboardResponse(
        sessions=[SessionSummary.model_validate(s, from_attributes=True) for s in sessions],
        recent_reflections=link_reflections(reflections, sessions),
        completed_pomodoros=len(work),
        total_focus_minutes=total_focus_minutes(sessions),
        work_sessions=len(work),
        break_sessions=sum(1 for s in sessions if s.session_type == "break"),
        long_break_sessions=sum(1 for s in sessions if s.session_type == "longBreak"),
        today_sessions=sum(1 for s in sessions if local_date(s.completed_at, tz) == today),
        weekly_pomodoros=weekly,
        best_day_sessions=max(weekly),
        streak_days=session_streak(sessions, now, tz, work_only=work_only),
        calendar=calendar,
        productivity_score=productivity_score(len(work), len(sessions)),
        average_sessions_per_day=average_sessions_per_day(len(sessions), len(calendar)),
        leaderboard=leaderboard,
        leaderboard_fallback=leaderboard_fallback,
        current_user_rank=current_user_rank,
        degraded=degraded,
    )
