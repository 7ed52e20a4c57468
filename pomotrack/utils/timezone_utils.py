import logging
from datetime import date, datetime, timezone, tzinfo

import pytz

from pomotrack.config import settings

logger = logging.getLogger(__name__)


def get_timezone(name: str | None = None) -> tzinfo:
    """Resolve an IANA timezone name, falling back to UTC when unknown."""
    name = name or settings.TIMEZONE
    try:
        return pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        logger.warning("Unknown timezone %r, using UTC", name)
        return pytz.utc


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime, tz: tzinfo) -> date:
    return ensure_utc(value).astimezone(tz).date()


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Aware datetime for 00:00 of ``day`` in ``tz``."""
    naive = datetime(day.year, day.month, day.day)
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)
