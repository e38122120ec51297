"""Shared builders for booking engine tests."""

from .booking_factories import (
    SCENARIO_RATE_TABLE,
    WEEKDAY,
    WEEKEND_DAY,
    FakeClock,
    RecordingDispatcher,
    make_interval,
    make_request,
    utc,
)

__all__ = [
    "FakeClock",
    "RecordingDispatcher",
    "SCENARIO_RATE_TABLE",
    "WEEKDAY",
    "WEEKEND_DAY",
    "make_interval",
    "make_request",
    "utc",
]
