"""Booking request and booking record schemas."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from decimal import Decimal
from typing import FrozenSet, List, Optional, Tuple

from pydantic import Field, field_validator

from ..core.enums import BookingStatus, ResourceType, ServiceType
from ..core.timezone_utils import ensure_utc, local_to_utc
from ._strict_base import FrozenModel, StrictModel, StrictRequestModel
from .availability import ResourceRef
from .pricing import Quote
from .quote_version import QuoteVersion


class BookingRequest(StrictRequestModel):
    """
    A proposed tour as entered by the caller.

    ``date`` and ``start_time`` are local to the operator's timezone. Shape
    checks that need a rate table (duration buckets, add-on catalog) happen
    in the pricing layer so they surface as field-level validation errors.
    """

    tour_date: date = Field(..., alias="date")
    start_time: time
    duration_hours: Decimal
    party_size: int
    service_type: ServiceType = ServiceType.TOUR
    requested_driver_id: Optional[str] = Field(default=None, min_length=1)
    requested_vehicle_id: Optional[str] = Field(default=None, min_length=1)
    selected_add_ons: FrozenSet[str] = frozenset()

    @field_validator("start_time")
    @classmethod
    def _naive_start_time(cls, value: time) -> time:
        if value.tzinfo is not None:
            raise ValueError("start_time is local to the operator and must not carry a timezone")
        return value

    @property
    def requested_resources(self) -> List[ResourceRef]:
        resources: List[ResourceRef] = []
        if self.requested_driver_id:
            resources.append(
                ResourceRef(resource_type=ResourceType.DRIVER, resource_id=self.requested_driver_id)
            )
        if self.requested_vehicle_id:
            resources.append(
                ResourceRef(
                    resource_type=ResourceType.VEHICLE, resource_id=self.requested_vehicle_id
                )
            )
        return sorted(resources, key=lambda ref: ref.sort_key)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=int(self.duration_hours * 60))

    def service_window(self, tz: tzinfo) -> Tuple[datetime, datetime]:
        """UTC start and end of the service itself (no buffer)."""
        start_at = local_to_utc(self.tour_date, self.start_time, tz)
        return start_at, start_at + self.duration


class BookingRecord(FrozenModel):
    id: str
    status: BookingStatus
    current_quote_version: int = Field(..., ge=1)
    request: BookingRequest
    assigned_resources: List[ResourceRef] = Field(default_factory=list)
    start_at: datetime
    end_at: datetime
    created_at: datetime
    updated_at: datetime

    @field_validator("start_at", "end_at", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED


class BookingResponse(StrictModel):
    booking: BookingRecord
    quote: Optional[Quote] = None


class QuoteHistoryResponse(StrictModel):
    booking_id: str
    versions: List[QuoteVersion]


__all__ = [
    "BookingRecord",
    "BookingRequest",
    "BookingResponse",
    "QuoteHistoryResponse",
]
