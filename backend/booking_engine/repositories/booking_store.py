# backend/booking_engine/repositories/booking_store.py
"""
Transactional store interface consumed by the booking coordinator.

Every method is its own unit of work: either all of its writes apply or
none do. Implementations enforce two uniqueness rules that the optimistic
concurrency strategy relies on:

- one slot claim per (resource_type, resource_id, slot start) for every
  granularity-sized slot covering [start_at, end_at) of each interval
- one quote version per (booking_id, version_number)

Writes that start from a booking the caller read earlier pass the status
(and quote version) they saw; the store applies them only if the row is
unchanged. Collisions surface as SlotClaimConflictError,
QuoteVersionConflictError or BookingStateConflictError; any other storage
failure surfaces as RepositoryException.

Maintenance blocks are intervals without a booking. Their slot claims are
owned by the block's own id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from ..core.enums import BookingStatus, ResourceType
from ..core.timezone_utils import epoch_minutes
from ..schemas.availability import ResourceInterval
from ..schemas.booking import BookingRecord
from ..schemas.pricing import Quote
from ..schemas.quote_version import QuoteVersion

SlotKey = Tuple[str, str, int]


def slot_claims_for(interval: ResourceInterval, slot_minutes: int) -> List[SlotKey]:
    """Slot keys covering the buffered interval [start_at, end_at)."""
    first = epoch_minutes(interval.start_at)
    first -= first % slot_minutes
    last = epoch_minutes(interval.end_at)
    if (interval.end_at.second or interval.end_at.microsecond) and last % slot_minutes == 0:
        last += 1
    resource_type = ResourceType(interval.resource_type).value
    return [
        (resource_type, interval.resource_id, minute)
        for minute in range(first, last, slot_minutes)
    ]


class BookingStore(ABC):
    """Persistence boundary for bookings, intervals and the quote ledger."""

    def __init__(self, slot_minutes: int) -> None:
        self.slot_minutes = slot_minutes

    @abstractmethod
    def load_intervals(
        self,
        resource_type: ResourceType,
        resource_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[ResourceInterval]:
        """
        Intervals held by a resource, ordered by start.

        With a window, only intervals with ``start_at < window_end`` and
        ``service_end_at > window_start`` are returned.
        """

    @abstractmethod
    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        """Fetch one booking or None."""

    @abstractmethod
    def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        created_before: Optional[datetime] = None,
    ) -> List[BookingRecord]:
        """Bookings ordered by creation time."""

    @abstractmethod
    def reserve(
        self,
        intervals: Sequence[ResourceInterval],
        booking: BookingRecord,
        quote_version: QuoteVersion,
        *,
        expected_status: Optional[BookingStatus] = None,
        expected_quote_version: Optional[int] = None,
    ) -> BookingRecord:
        """
        Atomically write a booking, its intervals and one quote version.

        If the booking already exists its previous intervals and slot claims
        are released in the same transaction before the new ones are
        written. With ``expected_status`` (and optionally
        ``expected_quote_version``) the write only goes through while the
        stored row still has those values; otherwise BookingStateConflictError.
        """

    @abstractmethod
    def release(
        self,
        booking_id: str,
        updated_at: datetime,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        """Atomically remove a booking's intervals and mark it cancelled."""

    @abstractmethod
    def update_status(
        self,
        booking_id: str,
        status: BookingStatus,
        updated_at: datetime,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        """Change status without touching intervals."""

    @abstractmethod
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
        """Append the next quote version and make it the booking's current one."""

    @abstractmethod
    def list_quote_versions(self, booking_id: str) -> List[QuoteVersion]:
        """Quote versions ordered by version number ascending."""

    @abstractmethod
    def add_maintenance_block(self, block: ResourceInterval) -> ResourceInterval:
        """
        Write a booking-less interval and its slot claims.

        Raises SlotClaimConflictError when any slot is already claimed.
        """

    @abstractmethod
    def remove_maintenance_block(self, block_id: str) -> Optional[ResourceInterval]:
        """Delete a maintenance block; None if no block has that id."""


__all__ = ["BookingStore", "SlotKey", "slot_claims_for"]
