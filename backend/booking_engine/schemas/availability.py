"""Schemas describing resource occupancy and availability results."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.enums import ResourceType
from ..core.timezone_utils import ensure_utc
from ._strict_base import FrozenModel


class ResourceRef(FrozenModel):
    """A single schedulable resource (one driver or one vehicle)."""

    resource_type: ResourceType
    resource_id: str = Field(..., min_length=1)

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.resource_type.value, self.resource_id)


class ResourceInterval(FrozenModel):
    """
    A span during which a resource is unavailable for new bookings.

    ``service_end_at`` is when the tour itself ends; ``end_at`` adds the
    post-service buffer that was configured when the interval was written.
    Overlap checks use ``service_end_at`` plus the buffer in force at query
    time.

    An interval without a ``booking_id`` is a maintenance block and carries
    the ``reason`` it was created with.
    """

    id: str
    resource_type: ResourceType
    resource_id: str
    start_at: datetime
    service_end_at: datetime
    end_at: datetime
    booking_id: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("start_at", "service_end_at", "end_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _ordered(self) -> "ResourceInterval":
        if not (self.start_at < self.service_end_at <= self.end_at):
            raise ValueError("Interval must satisfy start_at < service_end_at <= end_at")
        return self

    @property
    def resource(self) -> ResourceRef:
        return ResourceRef(resource_type=self.resource_type, resource_id=self.resource_id)

    @property
    def is_maintenance(self) -> bool:
        return self.booking_id is None

    @property
    def owner_id(self) -> str:
        """Who owns the interval's slot claims: its booking, or the block itself."""
        return self.booking_id or self.id


class MaintenanceBlockRequest(FrozenModel):
    """Take one resource out of service for [start_at, end_at)."""

    resource_type: ResourceType
    resource_id: str = Field(..., min_length=1)
    start_at: datetime
    end_at: datetime
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("start_at", "end_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("Maintenance windows must carry a timezone offset")
        return ensure_utc(value)

    @model_validator(mode="after")
    def _ordered(self) -> "MaintenanceBlockRequest":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class TimeSlot(FrozenModel):
    """One candidate start time from a free-slot search."""

    start_at: datetime
    end_at: datetime
    available: bool
    blocked_resources: List[ResourceRef] = Field(default_factory=list)
    # Free vehicle picked from the roster when the search did not name one
    vehicle_id: Optional[str] = None


class SlotSearchResponse(FrozenModel):
    tour_date: date = Field(..., serialization_alias="date")
    duration_hours: Decimal
    slots: List[TimeSlot]


class AvailabilityResult(FrozenModel):
    resource_type: ResourceType
    resource_id: str
    available: bool
    conflicts: List[ResourceInterval] = Field(default_factory=list)


class AvailabilityReport(FrozenModel):
    """Per-resource results for one proposed window."""

    results: List[AvailabilityResult] = Field(default_factory=list)

    @property
    def available(self) -> bool:
        return all(result.available for result in self.results)

    @property
    def conflicting(self) -> List[AvailabilityResult]:
        return [result for result in self.results if not result.available]


__all__ = [
    "AvailabilityReport",
    "AvailabilityResult",
    "MaintenanceBlockRequest",
    "ResourceInterval",
    "ResourceRef",
    "SlotSearchResponse",
    "TimeSlot",
]
