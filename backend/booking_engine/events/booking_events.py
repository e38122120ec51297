"""Booking domain events."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.enums import BookingEventType, BookingStatus
from ..schemas.pricing import Quote


@dataclass(frozen=True)
class BookingEvent:
    """Fired after a booking change has been committed."""

    booking_id: str
    event_type: BookingEventType
    quote: Optional[Quote]
    status: BookingStatus
    occurred_at: datetime
    quote_version: Optional[int] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "event_type": self.event_type.value,
            "status": self.status.value,
            "occurred_at": self.occurred_at.isoformat(),
            "quote_version": self.quote_version,
            "quote": self.quote.model_dump(mode="json") if self.quote is not None else None,
            "context": dict(self.context),
        }
