import math
import uuid
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone, tzinfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pomotrack.config import settings
from pomotrack.models.session import Session
from pomotrack.schemas.session import SessionSummary
from pomotrack.schemas.stats import (
    BestTime,
    CalendarDay,
    CalendarResponse,
    PeriodBucket,
    StatsOverview,
    StatsPeriod,
    StatsResponse,
    TypeSummary,
)
from pomotrack.services.streak_service import session_streak
from pomotrack.utils.timezone_utils import ensure_utc, get_timezone, local_date, local_midnight

BUCKET_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-%U",  # Sunday-first week number
    "month": "%Y-%m",
}

_TYPE_FIELDS = {
    "work": "work_sessions",
    "break": "break_sessions",
    "longBreak": "long_break_sessions",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def window_start(now: datetime, tz: tzinfo, days: int = 30) -> datetime:
    """Local midnight ``days`` calendar days before ``now``."""
    return local_midnight(local_date(now, tz) - timedelta(days=days), tz)


def filter_window(sessions, start: datetime) -> list:
    start = ensure_utc(start)
    return [s for s in sessions if ensure_utc(s.completed_at) >= start]


def weekly_activity(sessions, now: datetime, tz: tzinfo) -> list[int]:
    """Session counts for the current Sunday-started week, ordered Mon..Sun.

    Counts are collected Sunday-first (Sunday=0) and then rotated left by
    one, so Sunday's count ends up at index 6.
    """
    today = local_date(now, tz)
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    week_end = week_start + timedelta(days=6)

    counts = [0] * 7
    for s in sessions:
        day = local_date(s.completed_at, tz)
        if week_start <= day <= week_end:
            counts[(day.weekday() + 1) % 7] += 1

    return counts[1:] + counts[:1]


def bucket_sessions(sessions, tz: tzinfo, group_by: str = "day") -> list[PeriodBucket]:
    fmt = BUCKET_FORMATS.get(group_by)
    if fmt is None:
        raise ValueError(f"Unsupported grouping: {group_by}")

    buckets: dict[str, PeriodBucket] = {}
    for s in sessions:
        key = ensure_utc(s.completed_at).astimezone(tz).strftime(fmt)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = PeriodBucket(bucket_key=key)
        bucket.total_sessions += 1
        bucket.total_duration_minutes += s.duration
        field = _TYPE_FIELDS.get(s.session_type)
        if field:
            setattr(bucket, field, getattr(bucket, field) + 1)

    return [buckets[key] for key in sorted(buckets)]


def calendar_map(sessions, tz: tzinfo, with_sessions: bool = False) -> list[CalendarDay]:
    days: dict[date, CalendarDay] = {}
    for s in sessions:
        day = local_date(s.completed_at, tz)
        entry = days.get(day)
        if entry is None:
            entry = days[day] = CalendarDay(date=day, count=0)
        entry.count += 1
        field = _TYPE_FIELDS.get(s.session_type)
        if field:
            setattr(entry, field, getattr(entry, field) + 1)
        if with_sessions:
            entry.sessions.append(SessionSummary.model_validate(s, from_attributes=True))

    return [days[day] for day in sorted(days)]


def summarize_by_type(sessions) -> list[TypeSummary]:
    counts: Counter[str] = Counter()
    durations: defaultdict[str, int] = defaultdict(int)
    for s in sessions:
        counts[s.session_type] += 1
        durations[s.session_type] += s.duration

    return [
        TypeSummary(
            session_type=session_type,
            count=count,
            total_duration=durations[session_type],
            avg_duration=round(durations[session_type] / count, 1),
        )
        for session_type, count in sorted(counts.items())
    ]


def best_times(sessions, tz: tzinfo, limit: int = 10) -> list[BestTime]:
    """Busiest (weekday, hour) slots, most sessions first."""
    slots: Counter[tuple[int, int]] = Counter()
    for s in sessions:
        local = ensure_utc(s.completed_at).astimezone(tz)
        slots[(local.weekday(), local.hour)] += 1

    ranked = sorted(slots.items(), key=lambda item: (-item[1], item[0]))
    return [
        BestTime(day_of_week=dow, hour=hour, session_count=count)
        for (dow, hour), count in ranked[:limit]
    ]


def total_focus_minutes(sessions) -> int:
    return sum(s.duration for s in sessions if s.session_type == "work")


def average_sessions_per_day(total_sessions: int, active_days: int) -> float:
    if active_days <= 0:
        return 0.0
    return round(total_sessions / active_days, 1)


def productivity_score(work_sessions: int, total_sessions: int) -> int:
    """Share of sessions that were work sessions, as a 0-100 integer."""
    score = round_half_up(100 * work_sessions / max(1, total_sessions))
    return max(0, min(100, score))


async def get_stats(
    db: AsyncSession,
    user_id: uuid.UUID,
    days: int | None = None,
    group_by: str = "day",
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> StatsResponse:
    now = now or datetime.now(timezone.utc)
    tz = tz or get_timezone()
    days = days if days is not None else settings.STATS_DEFAULT_DAYS
    start = window_start(now, tz, days)

    result = await db.execute(
        select(
            Session.session_type,
            Session.duration,
            Session.completed_at,
        ).where(Session.user_id == user_id)
    )
    all_sessions = result.all()
    sessions = filter_window(all_sessions, start)

    calendar = calendar_map(sessions, tz)
    overview = StatsOverview(
        total_sessions=len(sessions),
        total_focus_minutes=total_focus_minutes(sessions),
        current_streak=session_streak(
            all_sessions, now, tz, work_only=settings.STREAK_WORK_SESSIONS_ONLY
        ),
        period=StatsPeriod(start_date=start, end_date=now, days=days),
    )

    return StatsResponse(
        overview=overview,
        group_by=group_by,
        by_type=summarize_by_type(sessions),
        activity=bucket_sessions(sessions, tz, group_by),
        best_times=best_times(sessions, tz),
        unique_dates=len(calendar),
        average_sessions_per_day=average_sessions_per_day(len(sessions), len(calendar)),
    )


async def get_calendar(
    db: AsyncSession,
    user_id: uuid.UUID,
    year: int | None = None,
    month: int | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> CalendarResponse:
    """Per-day session counts for one month (default: the current one)."""
    tz = tz or get_timezone()
    if year is None or month is None:
        today = local_date(now or datetime.now(timezone.utc), tz)
        year, month = today.year, today.month

    first = date(year, month, 1)
    following = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    start = local_midnight(first, tz)
    end = local_midnight(following, tz)

    result = await db.execute(
        select(
            Session.id, Session.session_type, Session.duration, Session.completed_at
        )
        .where(
            Session.user_id == user_id,
            Session.completed_at >= ensure_utc(start),
            Session.completed_at < ensure_utc(end),
        )
        .order_by(Session.completed_at)
    )

    return CalendarResponse(
        year=year,
        month=month,
        start_date=start,
        end_date=end,
        days=calendar_map(result.all(), tz, with_sessions=True),
    )
