import logging
from collections import defaultdict
from datetime import datetime, timezone, tzinfo
from typing import NamedTuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pomotrack.config import settings
from pomotrack.models.session import Session
from pomotrack.models.user import User
from pomotrack.schemas.leaderboard import LeaderboardEntry
from pomotrack.services.stats_service import productivity_score, total_focus_minutes
from pomotrack.services.streak_service import calculate_streak, session_streak
from pomotrack.utils.timezone_utils import ensure_utc, get_timezone

logger = logging.getLogger(__name__)


class UserTotals(NamedTuple):
    user_id: object
    total_focus_minutes: int
    completed_pomodoros: int
    total_sessions: int
    last_activity: datetime | None


def aggregate_sessions(sessions) -> list[UserTotals]:
    """Per-user totals over session records, the Python twin of the SQL grouping."""
    minutes: defaultdict = defaultdict(int)
    pomodoros: defaultdict = defaultdict(int)
    all_counts: defaultdict = defaultdict(int)
    last_activity: dict = {}

    for s in sessions:
        all_counts[s.user_id] += 1
        if s.session_type != "work":
            continue
        completed = ensure_utc(s.completed_at)
        minutes[s.user_id] += s.duration
        pomodoros[s.user_id] += 1
        if s.user_id not in last_activity or completed > last_activity[s.user_id]:
            last_activity[s.user_id] = completed

    return [
        UserTotals(uid, minutes[uid], pomodoros[uid], all_counts[uid], last_activity.get(uid))
        for uid in all_counts
    ]


def rank_totals(
    totals,
    users,
    work_times: dict,
    now: datetime,
    tz: tzinfo,
    limit: int = 50,
) -> list[LeaderboardEntry]:
    """Rank aggregated per-user rows by total focused minutes.

    ``totals`` rows carry ``user_id``, ``total_focus_minutes``,
    ``completed_pomodoros`` (work sessions), ``total_sessions`` (every type)
    and ``last_activity`` (latest work session). Users without a work session
    or missing from ``users`` are dropped. Ties go to the more recent
    activity, then to the user id.
    """
    directory = {u.id: u for u in users}
    candidates = [
        row for row in totals
        if row.completed_pomodoros > 0 and row.user_id in directory
    ]
    candidates.sort(
        key=lambda row: (
            -row.total_focus_minutes,
            -ensure_utc(row.last_activity).timestamp(),
            str(row.user_id),
        )
    )

    entries = []
    for position, row in enumerate(candidates[:limit], start=1):
        user = directory[row.user_id]
        entries.append(
            LeaderboardEntry(
                user_id=row.user_id,
                name=user.name,
                email=user.email,
                total_focus_minutes=row.total_focus_minutes,
                completed_pomodoros=row.completed_pomodoros,
                last_activity=ensure_utc(row.last_activity),
                current_streak=calculate_streak(work_times.get(row.user_id, []), now, tz),
                productivity_score=productivity_score(row.completed_pomodoros, row.total_sessions),
                rank=position,
            )
        )
    return entries


def rank_users(
    sessions,
    users,
    now: datetime,
    tz: tzinfo,
    limit: int = 50,
) -> list[LeaderboardEntry]:
    """Rank users straight from session records.

    Only work sessions count towards minutes, pomodoros and streaks; the
    productivity score divides by the user's sessions of every type.
    """
    sessions = list(sessions)
    work_times: defaultdict = defaultdict(list)
    for s in sessions:
        if s.session_type == "work":
            work_times[s.user_id].append(s.completed_at)
    return rank_totals(aggregate_sessions(sessions), users, work_times, now, tz, limit=limit)


def fallback_leaderboard(
    user,
    sessions,
    now: datetime,
    tz: tzinfo,
    work_only: bool = False,
) -> list[LeaderboardEntry]:
    """Single-entry leaderboard built from the requesting user's own sessions."""
    try:
        work = [s for s in sessions if s.session_type == "work"]
        return [
            LeaderboardEntry(
                user_id=user.id,
                name=user.name,
                email=user.email,
                total_focus_minutes=total_focus_minutes(work),
                completed_pomodoros=len(work),
                last_activity=max((ensure_utc(s.completed_at) for s in work), default=None),
                current_streak=session_streak(sessions, now, tz, work_only=work_only),
                productivity_score=productivity_score(len(work), len(sessions)),
                rank=1,
            )
        ]
    except Exception:
        logger.exception("Could not build fallback leaderboard for user %s", user.id)
        return [
            LeaderboardEntry(
                user_id=user.id,
                name=user.name,
                email=user.email,
                total_focus_minutes=0,
                completed_pomodoros=0,
                current_streak=0,
                productivity_score=0,
                rank=1,
            )
        ]


async def get_leaderboard(
    db: AsyncSession,
    limit: int | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> list[LeaderboardEntry]:
    """Global leaderboard. Totals are grouped in the database; only the
    top users' work timestamps are loaded, for their streaks."""
    limit = limit or settings.LEADERBOARD_SIZE
    is_work = Session.session_type == "work"
    minutes = func.coalesce(func.sum(case((is_work, Session.duration), else_=0)), 0)
    pomodoros = func.coalesce(func.sum(case((is_work, 1), else_=0)), 0)
    last_activity = func.max(case((is_work, Session.completed_at)))

    result = await db.execute(
        select(
            Session.user_id,
            minutes.label("total_focus_minutes"),
            pomodoros.label("completed_pomodoros"),
            func.count(Session.id).label("total_sessions"),
            last_activity.label("last_activity"),
        )
        .join(User, User.id == Session.user_id)
        .group_by(Session.user_id)
        .having(pomodoros > 0)
        .order_by(minutes.desc(), last_activity.desc(), Session.user_id)
        .limit(limit)
    )
    totals = result.all()
    if not totals:
        return []

    user_ids = [row.user_id for row in totals]
    user_result = await db.execute(select(User).where(User.id.in_(user_ids)))
    users = user_result.scalars().all()

    times_result = await db.execute(
        select(Session.user_id, Session.completed_at).where(
            Session.user_id.in_(user_ids), is_work
        )
    )
    work_times: defaultdict = defaultdict(list)
    for user_id, completed_at in times_result.all():
        work_times[user_id].append(completed_at)

    return rank_totals(
        totals,
        users,
        work_times,
        now or datetime.now(timezone.utc),
        tz or get_timezone(),
        limit=limit,
    )
