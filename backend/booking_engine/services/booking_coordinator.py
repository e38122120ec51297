# backend/booking_engine/services/booking_coordinator.py
"""
Booking Transaction Coordinator.

Makes "check availability, price, reserve" behave atomically while many
request handlers submit at once. Availability is never trusted from
outside the protected section: every attempt re-reads committed intervals
from the store right before writing.

Two strategies, selected by ``settings.concurrency_strategy``:

- pessimistic: per-resource advisory locks (plus a per-booking lock for
  edits, cancels and re-quotes) are taken in sorted key order with a
  bounded wait. Failing to get them raises LockTimeoutException.
- optimistic: no locks. The store's unique slot claims and quote version
  numbers reject a colliding write, and the whole attempt is retried up to
  ``optimistic_max_attempts`` times before ConcurrentWriteException.

Slot claims are written under both strategies, so even a lock backend that
failed open cannot produce overlapping intervals.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
import logging
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, TypeVar

import ulid

from ..core.config import Settings, settings
from ..core.enums import (
    ALLOWED_STATUS_TRANSITIONS,
    BookingEventType,
    BookingStatus,
    ResourceType,
)
from ..core.exceptions import (
    BookingConflictException,
    BookingNotFoundException,
    BookingStateConflictError,
    BusinessRuleException,
    ConcurrentWriteException,
    ConflictException,
    HoldExpiredException,
    InvalidStatusTransitionException,
    MaintenanceBlockNotFoundException,
    MaintenanceConflictException,
    NotFoundException,
    PersistenceException,
    QuoteVersionConflictError,
    RepositoryException,
    SlotClaimConflictError,
    ValidationException,
    VehicleCapacityException,
)
from ..core.resource_lock import ResourceLockManager, booking_lock_key, resource_lock_key
from ..core.timezone_utils import local_to_utc, utc_now
from ..events.booking_events import BookingEvent
from ..events.publisher import EventPublisher, LoggingDispatcher
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_store import BookingStore
from ..schemas.availability import (
    MaintenanceBlockRequest,
    ResourceInterval,
    ResourceRef,
    TimeSlot,
)
from ..schemas.booking import BookingRecord, BookingRequest
from ..schemas.pricing import Quote, RateTable
from ..schemas.quote_version import QuoteVersion
from .availability_checker import AvailabilityChecker
from .base import BaseService
from .pricing_calculator import calendar_facts_for, compute_quote, validate_request
from .quote_ledger import QuoteLedger
from .rate_table_provider import RateTableProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

_WRITE_COLLISIONS = (
    SlotClaimConflictError,
    QuoteVersionConflictError,
    BookingStateConflictError,
)


@dataclass(frozen=True)
class _Plan:
    """A validated request resolved to a UTC window and a rate snapshot."""

    request: BookingRequest
    rates: RateTable
    start_at: datetime
    service_end_at: datetime

    @property
    def resources(self) -> List[ResourceRef]:
        return self.request.requested_resources

    @property
    def resource_lock_keys(self) -> List[str]:
        return [resource_lock_key(ref.resource_type, ref.resource_id) for ref in self.resources]

    def quote(self) -> Quote:
        return compute_quote(
            self.request, self.rates, calendar_facts_for(self.request.tour_date, self.rates)
        )


class BookingCoordinator(BaseService):
    """Entry point for every booking mutation and for price previews."""

    def __init__(
        self,
        store: BookingStore,
        *,
        config: Settings = settings,
        rate_provider: Optional[RateTableProvider] = None,
        lock_manager: Optional[ResourceLockManager] = None,
        publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__()
        self.config = config
        self.store = store
        self.rate_provider = rate_provider or RateTableProvider.from_settings(config)
        self.availability = AvailabilityChecker(
            store, config.resource_buffer, config.vehicle_capacities
        )
        self.ledger = QuoteLedger(store)
        self.lock_manager = lock_manager or ResourceLockManager.from_settings(config)
        self.publisher = publisher or EventPublisher(LoggingDispatcher())
        self.clock = clock
        self.roster: Dict[ResourceType, List[str]] = {
            ResourceType.DRIVER: list(config.driver_roster),
            ResourceType.VEHICLE: config.vehicle_ids,
        }

    @property
    def is_pessimistic(self) -> bool:
        return self.config.concurrency_strategy == "pessimistic"

    # Public operations

    @BaseService.measure_operation("price_preview")
    def price_preview(self, request: BookingRequest) -> Quote:
        """Validate and price a request without checking or reserving anything."""
        return self._plan(request).quote()

    @BaseService.measure_operation("submit")
    def submit(self, request: BookingRequest) -> BookingRecord:
        """
        Reserve the requested resources and create a confirmed booking.

        Raises:
            ValidationException: Malformed request (field-level reason)
            BookingConflictException: A requested resource is taken
            LockTimeoutException / ConcurrentWriteException: Lost a race; retry
            PersistenceException: Store unavailable
        """
        with self._track_outcome("submit"):
            return self._create(
                "submit", request, BookingStatus.CONFIRMED, BookingEventType.SUBMITTED
            )

    @BaseService.measure_operation("hold")
    def hold(self, request: BookingRequest) -> BookingRecord:
        """Create a pending booking that blocks its resources until confirmed or expired."""
        with self._track_outcome("hold"):
            return self._create("hold", request, BookingStatus.PENDING, BookingEventType.HELD)

    @BaseService.measure_operation("confirm")
    def confirm(self, booking_id: str) -> BookingRecord:
        with self._track_outcome("confirm"):
            expiration = timedelta(minutes=self.config.hold_expiration_minutes)

            def attempt() -> Tuple[BookingRecord, bool, bool]:
                booking = self._require_booking(booking_id)
                if booking.status == BookingStatus.CONFIRMED:
                    return booking, False, False
                self._assert_transition(booking, BookingStatus.CONFIRMED)
                now = self.clock()
                if booking.created_at + expiration <= now:
                    released = self.store.release(booking_id, now, expected_status=booking.status)
                    return released, False, True
                confirmed = self.store.update_status(
                    booking_id, BookingStatus.CONFIRMED, now, expected_status=booking.status
                )
                return confirmed, True, False

            record, confirmed, expired = self._execute(
                "confirm", [booking_lock_key(booking_id)], attempt
            )
            if expired:
                self._publish(
                    BookingEventType.CANCELLED, record, context={"reason": "hold_expired"}
                )
                raise HoldExpiredException(booking_id, record.created_at + expiration)
            if confirmed:
                self._publish(BookingEventType.CONFIRMED, record)
            return record

    @BaseService.measure_operation("edit")
    def edit(self, booking_id: str, request: BookingRequest) -> BookingRecord:
        """
        Move a booking to a new window, resources or party size and re-price it.

        The old intervals are released and the new ones reserved in one store
        transaction. The booking's own intervals never count as conflicts.
        """
        with self._track_outcome("edit"):
            plan = self._plan(request)
            keys = [booking_lock_key(booking_id), *plan.resource_lock_keys]

            def attempt() -> Tuple[BookingRecord, Quote]:
                booking = self._require_booking(booking_id)
                if booking.status == BookingStatus.CANCELLED:
                    raise InvalidStatusTransitionException(
                        booking_id, booking.status.value, "edited"
                    )
                self._ensure_available(plan, exclude_booking_id=booking_id)
                quote = plan.quote()
                now = self.clock()
                version_number = booking.current_quote_version + 1
                updated = booking.model_copy(
                    update={
                        "request": request,
                        "assigned_resources": plan.resources,
                        "start_at": plan.start_at,
                        "end_at": plan.service_end_at,
                        "current_quote_version": version_number,
                        "updated_at": now,
                    }
                )
                self.store.reserve(
                    self._intervals_for(booking_id, plan),
                    updated,
                    QuoteLedger.prepare(booking_id, version_number, quote, "edited", now),
                    expected_status=booking.status,
                    expected_quote_version=booking.current_quote_version,
                )
                return updated, quote

            record, quote = self._execute("edit", keys, attempt)
            self._publish(BookingEventType.EDITED, record, quote)
            return record

    @BaseService.measure_operation("cancel")
    def cancel(self, booking_id: str) -> BookingRecord:
        """
        Release a booking's intervals and mark it cancelled.

        The booking row and its quote history are kept. Cancelling an
        already-cancelled booking returns it unchanged.
        """
        with self._track_outcome("cancel"):
            record, changed = self._execute(
                "cancel",
                [booking_lock_key(booking_id)],
                lambda: self._release(booking_id, only_pending=False),
            )
            if changed:
                self._publish(BookingEventType.CANCELLED, record)
            return record

    @BaseService.measure_operation("release_expired_holds")
    def release_expired_holds(self, now: Optional[datetime] = None) -> List[BookingRecord]:
        """Cancel pending holds older than ``hold_expiration_minutes``."""
        cutoff = (now or self.clock()) - timedelta(minutes=self.config.hold_expiration_minutes)
        with self._guard_store("release_expired_holds"):
            candidates = self.store.list_bookings(
                status=BookingStatus.PENDING, created_before=cutoff
            )
        released: List[BookingRecord] = []
        for candidate in candidates:
            record, changed = self._execute(
                "release_hold",
                [booking_lock_key(candidate.id)],
                lambda booking_id=candidate.id: self._release(booking_id, only_pending=True),
            )
            if changed:
                released.append(record)
                self._publish(
                    BookingEventType.CANCELLED, record, context={"reason": "hold_expired"}
                )
        if released:
            self.logger.info(
                "booking.holds.released",
                extra={"count": len(released), "cutoff": cutoff.isoformat()},
            )
        return released

    @BaseService.measure_operation("requote")
    def requote(self, booking_id: str, reason: str = "requoted") -> QuoteVersion:
        """Re-price an unchanged booking against the current rate table."""

        def attempt() -> Tuple[BookingRecord, QuoteVersion]:
            booking = self._require_booking(booking_id)
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStatusTransitionException(booking_id, booking.status.value, reason)
            quote = self._plan(booking.request).quote()
            version = self.ledger.append(
                booking_id,
                quote,
                reason,
                self.clock(),
                expected_status=booking.status,
                expected_quote_version=booking.current_quote_version,
            )
            return booking, version

        booking, version = self._execute("requote", [booking_lock_key(booking_id)], attempt)
        self._publish(
            BookingEventType.REQUOTED,
            booking,
            version.quote,
            quote_version=version.version_number,
            context={"reason": reason},
        )
        return version

    def get_booking(self, booking_id: str) -> BookingRecord:
        with self._guard_store("get_booking"):
            return self._require_booking(booking_id)

    def quote_history(self, booking_id: str) -> List[QuoteVersion]:
        with self._guard_store("quote_history"):
            self._require_booking(booking_id)
            return self.ledger.history(booking_id)

    def current_quote(self, booking_id: str) -> Optional[Quote]:
        with self._guard_store("current_quote"):
            latest = self.ledger.latest(booking_id)
        return latest.quote if latest is not None else None

    @BaseService.measure_operation("available_slots")
    def available_slots(
        self,
        tour_date: date,
        duration_hours: Decimal,
        *,
        party_size: Optional[int] = None,
        driver_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """
        Candidate start times across the operating day, one per search step.

        Named resources must be free for a slot to count. Without a named
        vehicle, a slot also needs a free roster vehicle that seats the party.
        """
        request = BookingRequest(
            tour_date=tour_date,
            start_time=self.config.operating_day_start,
            duration_hours=duration_hours,
            party_size=party_size or 1,
            requested_driver_id=driver_id,
            requested_vehicle_id=vehicle_id,
        )
        plan = self._plan(request)
        tz = self.config.operator_tz
        with self._guard_store("available_slots"):
            return self.availability.available_slots(
                plan.resources,
                local_to_utc(tour_date, self.config.operating_day_start, tz),
                local_to_utc(tour_date, self.config.operating_day_end, tz),
                request.duration,
                timedelta(minutes=self.config.slot_search_step_minutes),
                vehicle_candidates=[] if vehicle_id else self.roster[ResourceType.VEHICLE],
                party_size=party_size,
            )

    @BaseService.measure_operation("block_resource")
    def block_resource(self, request: MaintenanceBlockRequest) -> ResourceInterval:
        """
        Take a driver or vehicle out of service for a window.

        Refused with MaintenanceConflictException while any booking or other
        block overlaps the window (buffer included).
        """
        granularity = self.config.slot_granularity_minutes
        for field, value in (("start_at", request.start_at), ("end_at", request.end_at)):
            if value.second or value.microsecond or value.minute % granularity:
                raise ValidationException(
                    f"Maintenance windows must fall on {granularity}-minute boundaries",
                    code="INVALID_BLOCK_WINDOW",
                    field=field,
                )
        block = ResourceInterval(
            id=str(ulid.ULID()),
            resource_type=request.resource_type,
            resource_id=request.resource_id,
            start_at=request.start_at,
            service_end_at=request.end_at,
            end_at=request.end_at + self.config.resource_buffer,
            reason=request.reason,
        )

        def attempt() -> ResourceInterval:
            result = self.availability.check_availability(
                request.resource_type, request.resource_id, request.start_at, request.end_at
            )
            if not result.available:
                raise MaintenanceConflictException(result.conflicts)
            return self.store.add_maintenance_block(block)

        created = self._execute(
            "block_resource",
            [resource_lock_key(request.resource_type, request.resource_id)],
            attempt,
        )
        self.log_operation(
            "maintenance_block_created",
            block_id=created.id,
            resource_type=created.resource_type.value,
            resource_id=created.resource_id,
        )
        return created

    @BaseService.measure_operation("remove_block")
    def remove_block(self, block_id: str) -> ResourceInterval:
        with self._guard_store("remove_block"):
            removed = self.store.remove_maintenance_block(block_id)
        if removed is None:
            raise MaintenanceBlockNotFoundException(block_id)
        self.log_operation(
            "maintenance_block_removed",
            block_id=block_id,
            resource_type=removed.resource_type.value,
            resource_id=removed.resource_id,
        )
        return removed

    # Internals

    def _plan(self, request: BookingRequest) -> _Plan:
        rates = self.rate_provider.snapshot(request.service_type)
        validate_request(request, rates)
        start_time = request.start_time
        granularity = self.config.slot_granularity_minutes
        if start_time.second or start_time.microsecond or start_time.minute % granularity:
            raise ValidationException(
                f"Start time must fall on a {granularity}-minute boundary",
                code="INVALID_START_TIME",
                field="start_time",
            )
        vehicle_id = request.requested_vehicle_id
        if vehicle_id and not self.availability.vehicle_fits(vehicle_id, request.party_size):
            raise VehicleCapacityException(
                vehicle_id, self.config.vehicle_capacities[vehicle_id], request.party_size
            )
        start_at, service_end_at = request.service_window(self.config.operator_tz)
        return _Plan(
            request=request, rates=rates, start_at=start_at, service_end_at=service_end_at
        )

    def _create(
        self,
        operation: str,
        request: BookingRequest,
        status: BookingStatus,
        event_type: BookingEventType,
    ) -> BookingRecord:
        plan = self._plan(request)
        booking_id = str(ulid.ULID())

        def attempt() -> Tuple[BookingRecord, Quote]:
            self._ensure_available(plan)
            quote = plan.quote()
            now = self.clock()
            record = BookingRecord(
                id=booking_id,
                status=status,
                current_quote_version=1,
                request=request,
                assigned_resources=plan.resources,
                start_at=plan.start_at,
                end_at=plan.service_end_at,
                created_at=now,
                updated_at=now,
            )
            self.store.reserve(
                self._intervals_for(booking_id, plan),
                record,
                QuoteLedger.prepare(booking_id, 1, quote, "initial", now),
            )
            return record, quote

        record, quote = self._execute(operation, plan.resource_lock_keys, attempt)
        self._publish(event_type, record, quote)
        return record

    def _release(self, booking_id: str, *, only_pending: bool) -> Tuple[BookingRecord, bool]:
        booking = self._require_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            return booking, False
        if only_pending and booking.status != BookingStatus.PENDING:
            return booking, False
        return self.store.release(booking_id, self.clock(), expected_status=booking.status), True

    def _require_booking(self, booking_id: str) -> BookingRecord:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    @staticmethod
    def _assert_transition(booking: BookingRecord, requested: BookingStatus) -> None:
        if requested not in ALLOWED_STATUS_TRANSITIONS[booking.status]:
            raise InvalidStatusTransitionException(
                booking.id, booking.status.value, requested.value
            )

    def _ensure_available(self, plan: _Plan, exclude_booking_id: Optional[str] = None) -> None:
        report = self.availability.check_resources(
            plan.resources, plan.start_at, plan.service_end_at, exclude_booking_id
        )
        if report.available:
            return
        alternatives: Dict[str, List[str]] = {}
        for result in report.conflicting:
            candidates = [
                candidate
                for candidate in self.roster.get(result.resource_type, [])
                if candidate != result.resource_id
            ]
            if candidates:
                alternatives[result.resource_type.value] = self.availability.find_alternatives(
                    result.resource_type,
                    candidates,
                    plan.start_at,
                    plan.service_end_at,
                    exclude_booking_id,
                    party_size=plan.request.party_size,
                )
        raise BookingConflictException(conflicts=report.conflicting, alternatives=alternatives)

    def _intervals_for(self, booking_id: str, plan: _Plan) -> List[ResourceInterval]:
        buffered_end = plan.service_end_at + self.config.resource_buffer
        return [
            ResourceInterval(
                id=str(ulid.ULID()),
                resource_type=ref.resource_type,
                resource_id=ref.resource_id,
                start_at=plan.start_at,
                service_end_at=plan.service_end_at,
                end_at=buffered_end,
                booking_id=booking_id,
            )
            for ref in plan.resources
        ]

    def _execute(self, operation: str, lock_keys: Sequence[str], attempt: Callable[[], T]) -> T:
        """
        Run ``attempt`` under the configured concurrency strategy.

        A store-level write collision is retried (optimistic) or reported as
        a concurrent write (pessimistic, where it means a lock failed open).
        """
        max_attempts = 1 if self.is_pessimistic else self.config.optimistic_max_attempts
        for attempt_number in range(1, max_attempts + 1):
            try:
                with self._guard_store(operation):
                    if self.is_pessimistic:
                        with self.lock_manager.hold(lock_keys):
                            return attempt()
                    return attempt()
            except _WRITE_COLLISIONS as exc:
                self.logger.info(
                    f"booking.{operation}.write_collision",
                    extra={
                        "attempt": attempt_number,
                        "max_attempts": max_attempts,
                        "collision": type(exc).__name__,
                    },
                )
                if attempt_number < max_attempts:
                    prometheus_metrics.inc_optimistic_retry(operation)
        raise ConcurrentWriteException(max_attempts)

    @contextmanager
    def _guard_store(self, operation: str) -> Iterator[None]:
        """Surface store failures as a retryable PersistenceException; keep collisions as-is."""
        try:
            yield
        except _WRITE_COLLISIONS:
            raise
        except RepositoryException as exc:
            self.logger.error(
                f"booking.{operation}.store_failed",
                extra={"error_type": type(exc).__name__},
                exc_info=True,
            )
            raise PersistenceException() from exc

    @contextmanager
    def _track_outcome(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ConflictException as exc:
            prometheus_metrics.record_booking_outcome(operation, "conflict")
            self.logger.info(f"booking.{operation}.conflict", extra={"code": exc.code})
            raise
        except (ValidationException, BusinessRuleException, NotFoundException) as exc:
            prometheus_metrics.record_booking_outcome(operation, "invalid")
            self.logger.info(f"booking.{operation}.rejected", extra={"code": exc.code})
            raise
        except Exception:
            prometheus_metrics.record_booking_outcome(operation, "error")
            raise
        else:
            prometheus_metrics.record_booking_outcome(operation, "success")

    def _publish(
        self,
        event_type: BookingEventType,
        record: BookingRecord,
        quote: Optional[Quote] = None,
        *,
        quote_version: Optional[int] = None,
        context: Optional[Dict[str, str]] = None,
    ) -> None:
        if quote is None:
            try:
                quote = self.current_quote(record.id)
            except PersistenceException:
                quote = None
        self.publisher.publish(
            BookingEvent(
                booking_id=record.id,
                event_type=event_type,
                quote=quote,
                status=record.status,
                occurred_at=self.clock(),
                quote_version=quote_version or record.current_quote_version,
                context=dict(context or {}),
            )
        )
        self.log_operation(
            event_type.value,
            booking_id=record.id,
            status=record.status.value,
            quote_version=quote_version or record.current_quote_version,
        )


__all__ = ["BookingCoordinator"]
