"""Domain events emitted by the booking coordinator."""

from .booking_events import BookingEvent
from .publisher import EventDispatcher, EventPublisher, LoggingDispatcher

__all__ = [
    "BookingEvent",
    "EventDispatcher",
    "EventPublisher",
    "LoggingDispatcher",
]
