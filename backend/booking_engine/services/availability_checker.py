"""
Availability checks for drivers and vehicles.

Intervals are loaded from the store for the padded window only and placed
in an IntervalIndex; the index does the overlap arithmetic. Results are
per resource so a caller asking for a driver and a vehicle learns about
both, not just the first one that failed.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.enums import ResourceType
from ..core.exceptions import ValidationException
from ..repositories.booking_store import BookingStore
from ..schemas.availability import (
    AvailabilityReport,
    AvailabilityResult,
    ResourceRef,
    TimeSlot,
)
from .base import BaseService
from .interval_index import IntervalIndex


class AvailabilityChecker(BaseService):
    def __init__(
        self,
        store: BookingStore,
        buffer: timedelta,
        vehicle_capacities: Optional[Mapping[str, int]] = None,
    ) -> None:
        super().__init__()
        if buffer < timedelta(0):
            raise ValueError("buffer must be non-negative")
        self.store = store
        self.buffer = buffer
        self.vehicle_capacities: Dict[str, int] = dict(vehicle_capacities or {})

    def load_index(
        self, resource_type: ResourceType, resource_id: str, start: datetime, end: datetime
    ) -> IntervalIndex:
        """Index of the intervals that could possibly conflict with [start, end)."""
        return IntervalIndex(
            self.store.load_intervals(
                resource_type, resource_id, start - self.buffer, end + self.buffer
            )
        )

    @BaseService.measure_operation("check_availability")
    def check_availability(
        self,
        resource_type: ResourceType,
        resource_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Classify [start, end) for one resource.

        Args:
            resource_type: driver or vehicle
            resource_id: Resource identifier
            start: Proposed service start (aware)
            end: Proposed service end, without buffer (aware)
            exclude_booking_id: Booking whose own intervals are ignored (edits)

        Returns:
            AvailabilityResult listing every conflicting interval
        """
        if end <= start:
            raise ValidationException(
                "Proposed window must end after it starts", code="INVALID_WINDOW", field="end"
            )
        conflicts = self.load_index(resource_type, resource_id, start, end).overlapping(
            start, end, self.buffer, exclude_booking_id
        )
        return AvailabilityResult(
            resource_type=resource_type,
            resource_id=resource_id,
            available=not conflicts,
            conflicts=conflicts,
        )

    def check_resources(
        self,
        resources: Sequence[ResourceRef],
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> AvailabilityReport:
        return AvailabilityReport(
            results=[
                self.check_availability(
                    ref.resource_type, ref.resource_id, start, end, exclude_booking_id
                )
                for ref in resources
            ]
        )

    def vehicle_fits(self, vehicle_id: str, party_size: Optional[int]) -> bool:
        """Vehicles without a known capacity are assumed to fit."""
        capacity = self.vehicle_capacities.get(vehicle_id)
        return party_size is None or capacity is None or capacity >= party_size

    def rank_vehicles(self, vehicle_ids: Iterable[str], party_size: Optional[int]) -> List[str]:
        """Vehicles that seat the party, smallest capacity first, unknown capacities last."""
        fitting = [
            vehicle_id
            for vehicle_id in dict.fromkeys(vehicle_ids)
            if self.vehicle_fits(vehicle_id, party_size)
        ]
        if party_size is None:
            return fitting
        return sorted(
            fitting,
            key=lambda vehicle_id: (
                vehicle_id not in self.vehicle_capacities,
                self.vehicle_capacities.get(vehicle_id, 0),
            ),
        )

    def find_alternatives(
        self,
        resource_type: ResourceType,
        candidate_ids: Iterable[str],
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
        party_size: Optional[int] = None,
    ) -> List[str]:
        """
        Candidates that are free for [start, end).

        Drivers keep the order given. Vehicles too small for ``party_size``
        are skipped and the rest are ordered smallest capacity first.
        """
        candidates = list(dict.fromkeys(candidate_ids))
        if ResourceType(resource_type) == ResourceType.VEHICLE:
            candidates = self.rank_vehicles(candidates, party_size)
        free: List[str] = []
        for candidate_id in candidates:
            result = self.check_availability(
                resource_type, candidate_id, start, end, exclude_booking_id
            )
            if result.available:
                free.append(candidate_id)
        return free

    @BaseService.measure_operation("available_slots")
    def available_slots(
        self,
        resources: Sequence[ResourceRef],
        window_start: datetime,
        window_end: datetime,
        duration: timedelta,
        step: timedelta,
        *,
        vehicle_candidates: Sequence[str] = (),
        party_size: Optional[int] = None,
    ) -> List[TimeSlot]:
        """
        Walk start times from ``window_start`` in ``step`` increments.

        Every start whose service window fits before ``window_end`` becomes a
        TimeSlot. A slot is available when every resource in ``resources`` is
        free and, if ``vehicle_candidates`` is given, at least one of them
        that seats the party is free too; the first such vehicle (smallest
        first) is reported on the slot. Each resource's intervals are loaded
        once for the whole window.
        """
        if window_end <= window_start:
            raise ValidationException(
                "Search window must end after it starts", code="INVALID_WINDOW", field="end"
            )
        if duration <= timedelta(0) or step <= timedelta(0):
            raise ValidationException(
                "Slot duration and step must be positive", code="INVALID_WINDOW", field="duration"
            )
        indexes: Dict[ResourceRef, IntervalIndex] = {
            ref: self.load_index(ref.resource_type, ref.resource_id, window_start, window_end)
            for ref in resources
        }
        vehicles = self.rank_vehicles(vehicle_candidates, party_size)
        vehicle_indexes = {
            vehicle_id: self.load_index(
                ResourceType.VEHICLE, vehicle_id, window_start, window_end
            )
            for vehicle_id in vehicles
        }

        slots: List[TimeSlot] = []
        start = window_start
        while start + duration <= window_end:
            end = start + duration
            blocked = [
                ref for ref, index in indexes.items() if index.overlapping(start, end, self.buffer)
            ]
            vehicle_id = next(
                (
                    candidate
                    for candidate, index in vehicle_indexes.items()
                    if not index.overlapping(start, end, self.buffer)
                ),
                None,
            )
            available = not blocked and (not vehicle_candidates or vehicle_id is not None)
            slots.append(
                TimeSlot(
                    start_at=start,
                    end_at=end,
                    available=available,
                    blocked_resources=blocked,
                    vehicle_id=vehicle_id if available else None,
                )
            )
            start += step
        return slots


__all__ = ["AvailabilityChecker"]
