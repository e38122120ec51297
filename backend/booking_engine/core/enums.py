# backend/booking_engine/core/enums.py
"""
Core enums for the booking engine.

These are stored by value in the database and echoed in API payloads,
so existing values must never be renamed.
"""

from enum import Enum


class ServiceType(str, Enum):
    TOUR = "tour"
    TRANSFER = "transfer"
    WAIT_TIME = "wait_time"
    CUSTOM = "custom"


class ResourceType(str, Enum):
    """Independently schedulable resources."""

    DRIVER = "driver"
    VEHICLE = "vehicle"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Held, blocks resources until confirmed or released
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AddOnPricing(str, Enum):
    FLAT = "flat"
    PER_PERSON = "per_person"


class LineItemCategory(str, Enum):
    TOUR_SERVICES = "tour_services"
    ADD_ON = "add_on"
    TAX = "tax"
    TBD = "tbd"


class BookingEventType(str, Enum):
    SUBMITTED = "booking.submitted"
    HELD = "booking.held"
    CONFIRMED = "booking.confirmed"
    EDITED = "booking.edited"
    CANCELLED = "booking.cancelled"
    REQUOTED = "booking.requoted"


# Allowed status changes. Re-applying the current status is a no-op, not a transition.
ALLOWED_STATUS_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}
