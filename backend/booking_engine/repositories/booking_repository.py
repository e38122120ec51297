# backend/booking_engine/repositories/booking_repository.py
"""Data access for the bookings table."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..schemas.booking import BookingRecord
from .base_repository import BaseRepository


def booking_columns(record: BookingRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "status": record.status.value,
        "service_type": record.request.service_type.value,
        "request_payload": record.request.model_dump(mode="json", by_alias=True),
        "current_quote_version": record.current_quote_version,
        "start_at": record.start_at,
        "end_at": record.end_at,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """Load a booking row, locking it where the dialect supports row locks."""
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.id == booking_id)
                .with_for_update()
                .one_or_none()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")

    def touch_if_unchanged(
        self,
        booking_id: str,
        expected_status: BookingStatus,
        expected_quote_version: Optional[int],
        updated_at: datetime,
    ) -> bool:
        """
        Compare-and-set on the booking row.

        A single conditional UPDATE, so the check and the row lock happen
        together on every dialect (SQLite takes its write lock here).
        Returns False when the row is missing or no longer matches.
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.id == booking_id,
                Booking.status == BookingStatus(expected_status).value,
            )
            if expected_quote_version is not None:
                query = query.filter(Booking.current_quote_version == expected_quote_version)
            return query.update({Booking.updated_at: updated_at}, synchronize_session=False) == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking: {str(e)}")

    def list_filtered(
        self,
        status: Optional[BookingStatus] = None,
        created_before: Optional[datetime] = None,
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking)
            if status is not None:
                query = query.filter(Booking.status == BookingStatus(status).value)
            if created_before is not None:
                query = query.filter(Booking.created_at < created_before)
            return query.order_by(Booking.created_at, Booking.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def overwrite(self, row: Booking, record: BookingRecord) -> Booking:
        """Replace every mutable column of ``row`` with the values from ``record``."""
        for key, value in booking_columns(record).items():
            if key in ("id", "created_at"):
                continue
            setattr(row, key, value)
        self._flush()
        return row
