"""
Process-local BookingStore.

Useful for embedding the engine without a database and for tests. All
methods run under one re-entrant lock, and each validates every
constraint before mutating anything, so a failed call leaves no partial
state behind.
"""

from __future__ import annotations

from datetime import datetime
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.enums import BookingStatus, ResourceType
from ..core.exceptions import (
    BookingStateConflictError,
    QuoteVersionConflictError,
    RepositoryException,
    SlotClaimConflictError,
)
from ..schemas.availability import ResourceInterval
from ..schemas.booking import BookingRecord
from ..schemas.pricing import Quote
from ..schemas.quote_version import QuoteVersion
from ..services.interval_index import IntervalIndex
from .booking_store import BookingStore, SlotKey, slot_claims_for

ResourceKey = Tuple[str, str]


class InMemoryBookingStore(BookingStore):
    def __init__(self, slot_minutes: int = 15) -> None:
        super().__init__(slot_minutes)
        self._lock = threading.RLock()
        self._bookings: Dict[str, BookingRecord] = {}
        self._indexes: Dict[ResourceKey, IntervalIndex] = {}
        self._blocks: Dict[str, ResourceInterval] = {}
        # Keyed by claim owner: a booking id, or a maintenance block id
        self._owner_resources: Dict[str, List[ResourceKey]] = {}
        self._owner_claims: Dict[str, List[SlotKey]] = {}
        self._claims: Dict[SlotKey, str] = {}
        self._quote_versions: Dict[str, List[QuoteVersion]] = {}

    @staticmethod
    def _resource_key(resource_type: ResourceType, resource_id: str) -> ResourceKey:
        return (ResourceType(resource_type).value, resource_id)

    def _get_or_raise(self, booking_id: str) -> BookingRecord:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise RepositoryException(f"Booking {booking_id} does not exist")
        return booking

    @staticmethod
    def _check_unchanged(
        booking: BookingRecord,
        expected_status: Optional[BookingStatus],
        expected_quote_version: Optional[int] = None,
    ) -> None:
        if expected_status is None:
            return
        if booking.status != expected_status or (
            expected_quote_version is not None
            and booking.current_quote_version != expected_quote_version
        ):
            raise BookingStateConflictError(
                f"Booking {booking.id} changed since it was read (now {booking.status.value}, "
                f"quote version {booking.current_quote_version})"
            )

    def _claims_for(self, owner_id: str, intervals: Sequence[ResourceInterval]) -> List[SlotKey]:
        """Validate the claims ``owner_id`` needs without writing anything."""
        new_claims: List[SlotKey] = []
        for interval in intervals:
            new_claims.extend(slot_claims_for(interval, self.slot_minutes))
        for slot in new_claims:
            owner = self._claims.get(slot)
            if owner is not None and owner != owner_id:
                raise SlotClaimConflictError(f"Slot {slot} is already claimed by {owner}")
        if len(set(new_claims)) != len(new_claims):
            raise SlotClaimConflictError("Intervals for one owner claim the same slot twice")
        return new_claims

    def _add_intervals(
        self, owner_id: str, intervals: Sequence[ResourceInterval], claims: List[SlotKey]
    ) -> None:
        for interval in intervals:
            key = self._resource_key(interval.resource_type, interval.resource_id)
            self._indexes.setdefault(key, IntervalIndex()).add(interval)
            self._owner_resources.setdefault(owner_id, []).append(key)
        for slot in claims:
            self._claims[slot] = owner_id
        self._owner_claims.setdefault(owner_id, []).extend(claims)

    def _drop_intervals(self, booking_id: str) -> None:
        for key in self._owner_resources.pop(booking_id, []):
            index = self._indexes.get(key)
            if index is not None:
                index.remove_booking(booking_id)
        for slot in self._owner_claims.pop(booking_id, []):
            self._claims.pop(slot, None)

    def load_intervals(
        self,
        resource_type: ResourceType,
        resource_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[ResourceInterval]:
        with self._lock:
            index = self._indexes.get(self._resource_key(resource_type, resource_id))
            if index is None:
                return []
            if window_start is None or window_end is None:
                return list(index)
            return index.overlapping(window_start, window_end)

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        with self._lock:
            return self._bookings.get(booking_id)

    def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        created_before: Optional[datetime] = None,
    ) -> List[BookingRecord]:
        with self._lock:
            bookings = list(self._bookings.values())
        return sorted(
            (
                booking
                for booking in bookings
                if (status is None or booking.status == status)
                and (created_before is None or booking.created_at < created_before)
            ),
            key=lambda booking: (booking.created_at, booking.id),
        )

    def reserve(
        self,
        intervals: Sequence[ResourceInterval],
        booking: BookingRecord,
        quote_version: QuoteVersion,
        *,
        expected_status: Optional[BookingStatus] = None,
        expected_quote_version: Optional[int] = None,
    ) -> BookingRecord:
        with self._lock:
            if expected_status is not None:
                self._check_unchanged(
                    self._get_or_raise(booking.id), expected_status, expected_quote_version
                )
            versions = self._quote_versions.get(booking.id, [])
            if any(v.version_number == quote_version.version_number for v in versions):
                raise QuoteVersionConflictError(
                    f"Quote version {quote_version.version_number} already exists "
                    f"for booking {booking.id}"
                )
            new_claims = self._claims_for(booking.id, intervals)

            self._drop_intervals(booking.id)
            self._add_intervals(booking.id, intervals, new_claims)
            self._bookings[booking.id] = booking
            self._quote_versions.setdefault(booking.id, []).append(quote_version)
            return booking

    def release(
        self,
        booking_id: str,
        updated_at: datetime,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        with self._lock:
            booking = self._get_or_raise(booking_id)
            self._check_unchanged(booking, expected_status)
            self._drop_intervals(booking_id)
            cancelled = booking.model_copy(
                update={"status": BookingStatus.CANCELLED, "updated_at": updated_at}
            )
            self._bookings[booking_id] = cancelled
            return cancelled

    def update_status(
        self,
        booking_id: str,
        status: BookingStatus,
        updated_at: datetime,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        with self._lock:
            booking = self._get_or_raise(booking_id)
            self._check_unchanged(booking, expected_status)
            updated = booking.model_copy(update={"status": status, "updated_at": updated_at})
            self._bookings[booking_id] = updated
            return updated

    def append_quote_version(
        self,
        booking_id: str,
        quote: Quote,
        reason: str,
        created_at: datetime,
        *,
        expected_status: Optional[BookingStatus] = None,
        expected_quote_version: Optional[int] = None,
    ) -> QuoteVersion:
        with self._lock:
            booking = self._get_or_raise(booking_id)
            self._check_unchanged(booking, expected_status, expected_quote_version)
            versions = self._quote_versions.setdefault(booking_id, [])
            next_number = (versions[-1].version_number if versions else 0) + 1
            version = QuoteVersion(
                booking_id=booking_id,
                version_number=next_number,
                quote=quote,
                created_at=created_at,
                reason=reason,
            )
            versions.append(version)
            self._bookings[booking_id] = booking.model_copy(
                update={"current_quote_version": next_number, "updated_at": created_at}
            )
            return version

    def list_quote_versions(self, booking_id: str) -> List[QuoteVersion]:
        with self._lock:
            return list(self._quote_versions.get(booking_id, []))

    def add_maintenance_block(self, block: ResourceInterval) -> ResourceInterval:
        if not block.is_maintenance:
            raise RepositoryException("Maintenance blocks cannot belong to a booking")
        with self._lock:
            if block.id in self._blocks:
                raise RepositoryException(f"Maintenance block {block.id} already exists")
            claims = self._claims_for(block.id, [block])
            self._add_intervals(block.id, [block], claims)
            self._blocks[block.id] = block
            return block

    def remove_maintenance_block(self, block_id: str) -> Optional[ResourceInterval]:
        with self._lock:
            block = self._blocks.pop(block_id, None)
            if block is None:
                return None
            index = self._indexes.get(self._resource_key(block.resource_type, block.resource_id))
            if index is not None:
                index.remove_interval(block_id)
            self._owner_resources.pop(block_id, None)
            for slot in self._owner_claims.pop(block_id, []):
                self._claims.pop(slot, None)
            return block


__all__ = ["InMemoryBookingStore"]
