# backend/booking_engine/repositories/sqlalchemy_store.py
"""
BookingStore backed by SQLAlchemy.

Each public method opens its own session, does all of its work through the
per-table repositories, and commits once. Any failure rolls the whole
session back, so a reservation never leaves intervals without a booking
row or a booking without its first quote version.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.enums import BookingStatus, ResourceType
from ..core.exceptions import BookingStateConflictError, RepositoryException
from ..models.booking import Booking
from ..models.quote_version import QuoteVersionModel
from ..models.resource_interval import ResourceIntervalModel
from ..schemas.availability import ResourceInterval
from ..schemas.booking import BookingRecord, BookingRequest
from ..schemas.pricing import Quote
from ..schemas.quote_version import QuoteVersion
from .base_repository import classify_integrity_error
from .booking_repository import BookingRepository, booking_columns
from .booking_store import BookingStore, slot_claims_for
from .factory import RepositoryFactory
from .quote_version_repository import QuoteVersionRepository
from .resource_interval_repository import ResourceIntervalRepository, SlotClaimRepository

logger = logging.getLogger(__name__)


@dataclass
class _Repositories:
    bookings: BookingRepository
    intervals: ResourceIntervalRepository
    slot_claims: SlotClaimRepository
    quote_versions: QuoteVersionRepository


def _to_record(row: Booking) -> BookingRecord:
    request = BookingRequest.model_validate(row.request_payload)
    return BookingRecord(
        id=row.id,
        status=BookingStatus(row.status),
        current_quote_version=row.current_quote_version,
        request=request,
        assigned_resources=request.requested_resources,
        start_at=row.start_at,
        end_at=row.end_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_interval(row: ResourceIntervalModel) -> ResourceInterval:
    return ResourceInterval(
        id=row.id,
        resource_type=ResourceType(row.resource_type),
        resource_id=row.resource_id,
        start_at=row.start_at,
        service_end_at=row.service_end_at,
        end_at=row.end_at,
        booking_id=row.booking_id,
        reason=row.reason,
    )


def _to_quote_version(row: QuoteVersionModel) -> QuoteVersion:
    return QuoteVersion(
        booking_id=row.booking_id,
        version_number=row.version_number,
        quote=Quote.model_validate(row.quote_payload),
        created_at=row.created_at,
        reason=row.reason,
    )


class SqlAlchemyBookingStore(BookingStore):
    def __init__(self, session_factory: sessionmaker, slot_minutes: int = 15) -> None:
        super().__init__(slot_minutes)
        self.session_factory = session_factory

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[_Repositories]:
        db: Session = self.session_factory()
        try:
            yield _Repositories(
                bookings=RepositoryFactory.create_booking_repository(db),
                intervals=RepositoryFactory.create_resource_interval_repository(db),
                slot_claims=RepositoryFactory.create_slot_claim_repository(db),
                quote_versions=RepositoryFactory.create_quote_version_repository(db),
            )
            db.commit()
        except RepositoryException:
            db.rollback()
            raise
        except IntegrityError as exc:
            db.rollback()
            raise classify_integrity_error(exc) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "booking_store_transaction_failed",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise RepositoryException(f"{operation} failed: {exc}") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def load_intervals(
        self,
        resource_type: ResourceType,
        resource_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[ResourceInterval]:
        with self._unit_of_work("load_intervals") as repos:
            rows = repos.intervals.list_for_resource(
                resource_type, resource_id, window_start, window_end
            )
            return [_to_interval(row) for row in rows]

    def get_booking(self, booking_id: str) -> Optional[BookingRecord]:
        with self._unit_of_work("get_booking") as repos:
            row = repos.bookings.get_by_id(booking_id)
            return _to_record(row) if row is not None else None

    def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        created_before: Optional[datetime] = None,
    ) -> List[BookingRecord]:
        with self._unit_of_work("list_bookings") as repos:
            return [_to_record(row) for row in repos.bookings.list_filtered(status, created_before)]

    @staticmethod
    def _load_for_write(
        repos: _Repositories,
        booking_id: str,
        touched_at: datetime,
        expected_status: Optional[BookingStatus] = None,
        expected_quote_version: Optional[int] = None,
    ) -> Booking:
        if expected_status is not None and not repos.bookings.touch_if_unchanged(
            booking_id, expected_status, expected_quote_version, touched_at
        ):
            if repos.bookings.get_by_id(booking_id) is None:
                raise RepositoryException(f"Booking {booking_id} does not exist")
            raise BookingStateConflictError(f"Booking {booking_id} changed since it was read")
        row = repos.bookings.get_for_update(booking_id)
        if row is None:
            raise RepositoryException(f"Booking {booking_id} does not exist")
        return row

    def _claim_rows(
        self, intervals: Sequence[ResourceInterval], **owner: Optional[str]
    ) -> List[Dict[str, Any]]:
        return [
            {
                **owner,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "slot_start_minute": minute,
            }
            for interval in intervals
            for resource_type, resource_id, minute in slot_claims_for(interval, self.slot_minutes)
        ]

    def reserve(
        self,
        intervals: Sequence[ResourceInterval],
        booking: BookingRecord,
        quote_version: QuoteVersion,
        *,
        expected_status: Optional[BookingStatus] = None,
        expected_quote_version: Optional[int] = None,
    ) -> BookingRecord:
        with self._unit_of_work("reserve") as repos:
            if expected_status is None:
                existing = repos.bookings.get_for_update(booking.id)
            else:
                existing = self._load_for_write(
                    repos, booking.id, booking.updated_at, expected_status, expected_quote_version
                )
            if existing is None:
                repos.bookings.create(**booking_columns(booking))
            else:
                # Release the old window first so the new claims can reuse its slots.
                repos.slot_claims.delete_by(booking_id=booking.id)
                repos.intervals.delete_by(booking_id=booking.id)
                repos.bookings.overwrite(existing, booking)

            repos.intervals.create_many(
                [
                    {
                        "id": interval.id,
                        "booking_id": booking.id,
                        "resource_type": interval.resource_type.value,
                        "resource_id": interval.resource_id,
                        "start_at": interval.start_at,
                        "service_end_at": interval.service_end_at,
                        "end_at": interval.end_at,
                    }
                    for interval in intervals
                ]
            )
            repos.slot_claims.create_many(self._claim_rows(intervals, booking_id=booking.id))
            repos.quote_versions.create(
                booking_id=booking.id,
                version_number=quote_version.version_number,
                quote_payload=quote_version.quote.model_dump(mode="json"),
                reason=quote_version.reason,
                created_at=quote_version.created_at,
            )
            return booking

    def release(
        self,
        booking_id: str,
        updated_at: datetime,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        with self._unit_of_work("release") as repos:
            row = self._load_for_write(repos, booking_id, updated_at, expected_status)
            repos.slot_claims.delete_by(booking_id=booking_id)
            repos.intervals.delete_by(booking_id=booking_id)
            row.status = BookingStatus.CANCELLED.value
            row.updated_at = updated_at
            repos.bookings.flush()
            return _to_record(row)

    def update_status(
        self,
        booking_id: str,
        status: BookingStatus,
        updated_at: datetime,
        *,
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        with self._unit_of_work("update_status") as repos:
            row = self._load_for_write(repos, booking_id, updated_at, expected_status)
            row.status = BookingStatus(status).value
            row.updated_at = updated_at
            repos.bookings.flush()
            return _to_record(row)

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
        with self._unit_of_work("append_quote_version") as repos:
            row = self._load_for_write(
                repos, booking_id, created_at, expected_status, expected_quote_version
            )
            next_number = repos.quote_versions.latest_version_number(booking_id) + 1
            entry = repos.quote_versions.create(
                booking_id=booking_id,
                version_number=next_number,
                quote_payload=quote.model_dump(mode="json"),
                reason=reason,
                created_at=created_at,
            )
            row.current_quote_version = next_number
            row.updated_at = created_at
            repos.bookings.flush()
            return _to_quote_version(entry)

    def add_maintenance_block(self, block: ResourceInterval) -> ResourceInterval:
        if not block.is_maintenance:
            raise RepositoryException("Maintenance blocks cannot belong to a booking")
        with self._unit_of_work("add_maintenance_block") as repos:
            repos.intervals.create(
                id=block.id,
                booking_id=None,
                resource_type=block.resource_type.value,
                resource_id=block.resource_id,
                start_at=block.start_at,
                service_end_at=block.service_end_at,
                end_at=block.end_at,
                reason=block.reason,
            )
            repos.slot_claims.create_many(self._claim_rows([block], interval_id=block.id))
            return block

    def remove_maintenance_block(self, block_id: str) -> Optional[ResourceInterval]:
        with self._unit_of_work("remove_maintenance_block") as repos:
            row = repos.intervals.get_by_id(block_id)
            if row is None or row.booking_id is not None:
                return None
            block = _to_interval(row)
            repos.slot_claims.delete_by(interval_id=block_id)
            repos.intervals.delete_by(id=block_id)
            return block

    def list_quote_versions(self, booking_id: str) -> List[QuoteVersion]:
        with self._unit_of_work("list_quote_versions") as repos:
            return [
                _to_quote_version(row) for row in repos.quote_versions.list_for_booking(booking_id)
            ]


__all__ = ["SqlAlchemyBookingStore"]
