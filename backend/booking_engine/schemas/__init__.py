from .availability import (
    AvailabilityReport,
    AvailabilityResult,
    MaintenanceBlockRequest,
    ResourceInterval,
    ResourceRef,
    SlotSearchResponse,
    TimeSlot,
)
from .booking import BookingRecord, BookingRequest, BookingResponse, QuoteHistoryResponse
from .pricing import AddOn, CalendarFacts, LineItem, Quote, RateCatalog, RateTable, TbdEstimate
from .quote_version import QuoteVersion

__all__ = [
    "AddOn",
    "AvailabilityReport",
    "AvailabilityResult",
    "BookingRecord",
    "BookingRequest",
    "BookingResponse",
    "CalendarFacts",
    "LineItem",
    "MaintenanceBlockRequest",
    "Quote",
    "QuoteHistoryResponse",
    "QuoteVersion",
    "RateCatalog",
    "RateTable",
    "ResourceInterval",
    "ResourceRef",
    "SlotSearchResponse",
    "TbdEstimate",
    "TimeSlot",
]
