"""
Timezone utilities for the booking engine.

Tour dates and start times are entered in the operator's local zone;
everything persisted or compared is a UTC-aware datetime.
"""

from datetime import date, datetime, time, timezone, tzinfo

import pytz


def localize(booking_date: date, start_time: time, tz: tzinfo) -> datetime:
    """
    Combine a local calendar date and wall-clock time into an aware datetime.

    Args:
        booking_date: Local tour date
        start_time: Local start time (naive)
        tz: Operator timezone (pytz zone)

    Returns:
        Aware datetime in the operator's timezone
    """
    naive = datetime.combine(booking_date, start_time.replace(tzinfo=None))
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def local_to_utc(booking_date: date, start_time: time, tz: tzinfo) -> datetime:
    return localize(booking_date, start_time, tz).astimezone(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_minutes(dt: datetime) -> int:
    """Whole minutes since the Unix epoch for an aware datetime."""
    return int(ensure_utc(dt).timestamp()) // 60
