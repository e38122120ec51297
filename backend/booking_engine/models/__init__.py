# backend/booking_engine/models/__init__.py
"""SQLAlchemy models for the booking engine."""

from .booking import Booking
from .quote_version import QuoteVersionModel
from .resource_interval import ResourceIntervalModel, ResourceSlotClaim

__all__ = [
    "Booking",
    "QuoteVersionModel",
    "ResourceIntervalModel",
    "ResourceSlotClaim",
]
