"""Event publisher - hands committed booking events to a downstream dispatcher."""
import logging
from typing import Any, Dict, Protocol

from ..monitoring.prometheus_metrics import prometheus_metrics
from .booking_events import BookingEvent

logger = logging.getLogger(__name__)


class EventDispatcher(Protocol):
    """Email/SMS/webhook fan-out owned by another system."""

    def dispatch(self, event_type: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingDispatcher:
    """Default dispatcher: records the event in the application log only."""

    def dispatch(self, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info(
            "booking_event",
            extra={"event_type": event_type, "booking_id": payload.get("booking_id")},
        )


class EventPublisher:
    """
    Publishes booking events after commit.

    Delivery is fire-and-forget: a dispatcher failure is logged and counted
    but never raised, so it cannot undo a booking that already committed.
    """

    def __init__(self, dispatcher: EventDispatcher):
        self.dispatcher = dispatcher

    def publish(self, event: BookingEvent) -> bool:
        event_type = event.event_type.value
        try:
            self.dispatcher.dispatch(event_type, event.to_dict())
        except Exception:
            prometheus_metrics.inc_event_dispatch_failure(event_type)
            logger.warning(
                "booking_event_dispatch_failed",
                extra={"event_type": event_type, "booking_id": event.booking_id},
                exc_info=True,
            )
            return False
        return True
