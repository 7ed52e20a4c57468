from collections.abc import Iterable
from datetime import datetime, timedelta, tzinfo

from pomotrack.utils.timezone_utils import local_date


def calculate_streak(timestamps: Iterable[datetime], now: datetime, tz: tzinfo) -> int:
    """Count consecutive calendar days with activity, ending today.

    Days are calendar dates in ``tz``. The walk starts at today's date and
    stops at the first day without a timestamp, so a streak is zero unless
    today itself is active.
    """
    active_days = {local_date(ts, tz) for ts in timestamps}
    if not active_days:
        return 0

    streak = 0
    cursor = local_date(now, tz)
    while cursor in active_days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def session_streak(sessions, now: datetime, tz: tzinfo, work_only: bool = False) -> int:
    """Streak over session records (anything with ``session_type`` and ``completed_at``)."""
    return calculate_streak(
        (
            s.completed_at
            for s in sessions
            if not work_only or s.session_type == "work"
        ),
        now,
        tz,
    )
