"""
Append-only quote history per booking.

Versions are never changed or removed. New versions
are either prepared here and written by the coordinator inside the same
store call as the reservation, or appended on their own for a re-quote.
Version numbers are assigned inside the store transaction; the unique
(booking_id, version_number) constraint rejects a racing duplicate.
"""

from datetime import datetime
from typing import List, Optional

from ..core.enums import BookingStatus
from ..core.timezone_utils import utc_now
from ..repositories.booking_store import BookingStore
from ..schemas.pricing import Quote
from ..schemas.quote_version import QuoteVersion
from .base import BaseService


class QuoteLedger(BaseService):
    def __init__(self, store: BookingStore) -> None:
        super().__init__()
        self.store = store

    @staticmethod
    def prepare(
        booking_id: str,
        version_number: int,
        quote: Quote,
        reason: str,
        created_at: Optional[datetime] = None,
    ) -> QuoteVersion:
        return QuoteVersion(
            booking_id=booking_id,
            version_number=version_number,
            quote=quote,
            created_at=created_at or utc_now(),
            reason=reason,
        )

    @BaseService.measure_operation("append")
    def append(
        self,
        booking_id: str,
        quote: Quote,
        reason: str,
        created_at: Optional[datetime] = None,
        *,
        expected_status: Optional[BookingStatus] = None,
        expected_quote_version: Optional[int] = None,
    ) -> QuoteVersion:
        version = self.store.append_quote_version(
            booking_id,
            quote,
            reason,
            created_at or utc_now(),
            expected_status=expected_status,
            expected_quote_version=expected_quote_version,
        )
        self.log_operation(
            "quote_version_appended",
            booking_id=booking_id,
            version_number=version.version_number,
            reason=reason,
        )
        return version

    def history(self, booking_id: str) -> List[QuoteVersion]:
        return sorted(
            self.store.list_quote_versions(booking_id), key=lambda v: v.version_number
        )

    def latest(self, booking_id: str) -> Optional[QuoteVersion]:
        versions = self.history(booking_id)
        return versions[-1] if versions else None


__all__ = ["QuoteLedger"]
