"""
Unit tests for booking_coordinator.py.

The ``coordinator`` fixture is built over both store implementations, so
every lifecycle test here runs against the in-memory store and SQLite.
"""

from datetime import time, timedelta
from decimal import Decimal

import pytest

from booking_engine.core.enums import BookingStatus, ResourceType
from booking_engine.core.exceptions import (
    BookingConflictException,
    BookingNotFoundException,
    ConcurrentWriteException,
    HoldExpiredException,
    InvalidStatusTransitionException,
    LockTimeoutException,
    MaintenanceBlockNotFoundException,
    MaintenanceConflictException,
    PersistenceException,
    RepositoryException,
    SlotClaimConflictError,
    ValidationException,
    VehicleCapacityException,
)
from booking_engine.core.resource_lock import resource_lock_key
from booking_engine.events.publisher import EventPublisher
from booking_engine.repositories.in_memory_store import InMemoryBookingStore
from booking_engine.schemas.availability import MaintenanceBlockRequest
from booking_engine.schemas.pricing import RateCatalog
from tests._utils import SCENARIO_RATE_TABLE, WEEKDAY, RecordingDispatcher, make_request, utc

# 10:00 in Los Angeles on the (summer) test weekday.
TEN_AM_UTC = utc(17)


class FailingReserveStore(InMemoryBookingStore):
    def reserve(self, intervals, booking, quote_version, **expected):
        raise RepositoryException("database unavailable")


class CollidingStore(InMemoryBookingStore):
    """Rejects the first ``collisions`` reservations as if another writer won the slot."""

    def __init__(self, collisions: int) -> None:
        super().__init__(slot_minutes=15)
        self.collisions = collisions
        self.reserve_calls = 0

    def reserve(self, intervals, booking, quote_version, **expected):
        self.reserve_calls += 1
        if self.reserve_calls <= self.collisions:
            raise SlotClaimConflictError("slot already claimed")
        return super().reserve(intervals, booking, quote_version, **expected)


def _driver_intervals(store, driver_id="driver-1"):
    return store.load_intervals(ResourceType.DRIVER, driver_id)


class TestSubmit:
    def test_submit_creates_confirmed_booking_with_first_quote(self, coordinator, dispatcher):
        booking = coordinator.submit(make_request())

        assert booking.status == BookingStatus.CONFIRMED
        assert booking.current_quote_version == 1
        assert booking.start_at == TEN_AM_UTC
        assert booking.end_at == utc(23)

        history = coordinator.quote_history(booking.id)
        assert [(v.version_number, v.reason) for v in history] == [(1, "initial")]
        assert history[0].quote.total == Decimal("1089.00")

        assert dispatcher.event_types == ["booking.submitted"]
        payload = dispatcher.events[0][1]
        assert payload["booking_id"] == booking.id
        assert payload["quote"]["total"] == "1089.00"

    def test_submit_records_buffered_interval(self, coordinator):
        booking = coordinator.submit(make_request())

        [interval] = _driver_intervals(coordinator.store)
        assert interval.booking_id == booking.id
        assert interval.service_end_at == utc(23)
        assert interval.end_at == utc(23, 30)

    def test_overlapping_submission_conflicts_and_cites_first_booking(self, coordinator):
        first = coordinator.submit(make_request(duration_hours=Decimal("6")))

        with pytest.raises(BookingConflictException) as exc_info:
            coordinator.submit(
                make_request(start_time=time(15, 0), duration_hours=Decimal("4"))
            )

        exc = exc_info.value
        assert exc.status_code == 409
        [result] = exc.conflicts
        assert result.resource_id == "driver-1"
        assert [interval.booking_id for interval in result.conflicts] == [first.id]
        assert exc.alternatives == {"driver": ["driver-2", "driver-3"]}
        assert len(_driver_intervals(coordinator.store)) == 1

    def test_buffer_rejects_back_to_back_booking(self, coordinator):
        coordinator.submit(make_request())

        with pytest.raises(BookingConflictException):
            coordinator.submit(make_request(start_time=time(16, 0), duration_hours=Decimal("4")))

    def test_back_to_back_bookings_fit_without_buffer(
        self, make_coordinator, make_settings, store
    ):
        coordinator = make_coordinator(store, config=make_settings(resource_buffer_minutes=0))

        first = coordinator.submit(make_request())
        second = coordinator.submit(
            make_request(start_time=time(16, 0), duration_hours=Decimal("4"))
        )

        assert first.end_at == second.start_at
        assert len(_driver_intervals(store)) == 2

    def test_conflict_reports_only_the_busy_resource(self, coordinator):
        coordinator.submit(make_request(requested_driver_id=None, requested_vehicle_id="van-1"))

        with pytest.raises(BookingConflictException) as exc_info:
            coordinator.submit(
                make_request(requested_driver_id="driver-2", requested_vehicle_id="van-1")
            )

        assert [r.resource_type for r in exc_info.value.conflicts] == [ResourceType.VEHICLE]
        assert exc_info.value.alternatives == {"vehicle": ["van-2"]}

    def test_invalid_request_reserves_nothing(self, coordinator, dispatcher):
        with pytest.raises(ValidationException) as exc_info:
            coordinator.submit(make_request(duration_hours=Decimal("2")))

        assert exc_info.value.field == "duration_hours"
        assert _driver_intervals(coordinator.store) == []
        assert coordinator.store.list_bookings() == []
        assert dispatcher.events == []

    def test_start_time_must_align_to_slot_granularity(self, coordinator):
        with pytest.raises(ValidationException) as exc_info:
            coordinator.submit(make_request(start_time=time(10, 7)))

        assert exc_info.value.code == "INVALID_START_TIME"
        assert exc_info.value.field == "start_time"

    def test_price_preview_reserves_nothing(self, coordinator, dispatcher):
        quote = coordinator.price_preview(make_request(party_size=12))

        assert quote.tour_services_subtotal == Decimal("1170.00")
        assert _driver_intervals(coordinator.store) == []
        assert dispatcher.events == []


class TestEdit:
    def test_edit_may_overlap_its_own_window(self, coordinator):
        booking = coordinator.submit(make_request())

        edited = coordinator.edit(booking.id, make_request(start_time=time(11, 0), party_size=8))

        assert edited.current_quote_version == 2
        assert edited.start_at == utc(18)
        [interval] = _driver_intervals(coordinator.store)
        assert interval.start_at == utc(18)

        history = coordinator.quote_history(booking.id)
        assert [(v.version_number, v.reason) for v in history] == [(1, "initial"), (2, "edited")]
        assert history[0].quote.party_size == 6
        assert history[1].quote.party_size == 8
        assert coordinator.current_quote(booking.id) == history[1].quote

    def test_edit_into_another_booking_leaves_original_untouched(self, coordinator):
        first = coordinator.submit(make_request(start_time=time(8, 0), duration_hours=Decimal("4")))
        second = coordinator.submit(
            make_request(start_time=time(14, 0), duration_hours=Decimal("4"))
        )

        with pytest.raises(BookingConflictException):
            coordinator.edit(second.id, make_request(start_time=time(9, 0)))

        unchanged = coordinator.get_booking(second.id)
        assert unchanged.start_at == second.start_at
        assert unchanged.current_quote_version == 1
        assert sorted(i.booking_id for i in _driver_intervals(coordinator.store)) == sorted(
            [first.id, second.id]
        )

    def test_edit_can_move_to_a_different_driver(self, coordinator):
        booking = coordinator.submit(make_request())

        coordinator.edit(booking.id, make_request(requested_driver_id="driver-2"))

        assert _driver_intervals(coordinator.store, "driver-1") == []
        assert len(_driver_intervals(coordinator.store, "driver-2")) == 1

    def test_cancelled_booking_cannot_be_edited(self, coordinator):
        booking = coordinator.submit(make_request())
        coordinator.cancel(booking.id)

        with pytest.raises(InvalidStatusTransitionException):
            coordinator.edit(booking.id, make_request(start_time=time(11, 0)))

    def test_edit_unknown_booking(self, coordinator):
        with pytest.raises(BookingNotFoundException):
            coordinator.edit("01J0000000000000000000000Z", make_request())


class TestCancel:
    def test_cancel_releases_intervals_and_keeps_history(self, coordinator, dispatcher):
        booking = coordinator.submit(make_request())

        cancelled = coordinator.cancel(booking.id)

        assert cancelled.status == BookingStatus.CANCELLED
        assert _driver_intervals(coordinator.store) == []
        assert len(coordinator.quote_history(booking.id)) == 1
        assert dispatcher.event_types == ["booking.submitted", "booking.cancelled"]

        # The released window can be booked again.
        coordinator.submit(make_request())

    def test_cancel_is_idempotent(self, coordinator, dispatcher):
        booking = coordinator.submit(make_request())
        first = coordinator.cancel(booking.id)

        second = coordinator.cancel(booking.id)

        assert second.status == BookingStatus.CANCELLED
        assert second.updated_at == first.updated_at
        assert dispatcher.event_types.count("booking.cancelled") == 1

    def test_cancel_unknown_booking(self, coordinator):
        with pytest.raises(BookingNotFoundException) as exc_info:
            coordinator.cancel("01J0000000000000000000000Z")

        assert exc_info.value.status_code == 404


class TestHolds:
    def test_hold_blocks_resources_until_confirmed(self, coordinator, dispatcher):
        held = coordinator.hold(make_request())

        assert held.status == BookingStatus.PENDING
        with pytest.raises(BookingConflictException):
            coordinator.submit(make_request())

        confirmed = coordinator.confirm(held.id)
        assert confirmed.status == BookingStatus.CONFIRMED
        assert dispatcher.event_types == ["booking.held", "booking.confirmed"]

    def test_confirm_twice_is_a_no_op(self, coordinator, dispatcher):
        held = coordinator.hold(make_request())
        coordinator.confirm(held.id)

        again = coordinator.confirm(held.id)

        assert again.status == BookingStatus.CONFIRMED
        assert dispatcher.event_types.count("booking.confirmed") == 1

    def test_confirm_after_expiry_releases_hold(self, coordinator, clock, dispatcher):
        held = coordinator.hold(make_request())
        clock.advance(minutes=16)

        with pytest.raises(HoldExpiredException) as exc_info:
            coordinator.confirm(held.id)

        assert exc_info.value.status_code == 422
        assert coordinator.get_booking(held.id).status == BookingStatus.CANCELLED
        assert _driver_intervals(coordinator.store) == []
        event_type, payload = dispatcher.events[-1]
        assert event_type == "booking.cancelled"
        assert payload["context"] == {"reason": "hold_expired"}

    def test_cancelled_booking_cannot_be_confirmed(self, coordinator):
        booking = coordinator.submit(make_request())
        coordinator.cancel(booking.id)

        with pytest.raises(InvalidStatusTransitionException):
            coordinator.confirm(booking.id)

    def test_release_expired_holds_only_touches_stale_pending(self, coordinator, clock):
        stale = coordinator.hold(make_request())
        clock.advance(minutes=10)
        fresh = coordinator.hold(make_request(requested_driver_id="driver-2"))
        confirmed = coordinator.submit(make_request(requested_driver_id="driver-3"))
        clock.advance(minutes=10)

        released = coordinator.release_expired_holds()

        assert [booking.id for booking in released] == [stale.id]
        assert coordinator.get_booking(stale.id).status == BookingStatus.CANCELLED
        assert coordinator.get_booking(fresh.id).status == BookingStatus.PENDING
        assert coordinator.get_booking(confirmed.id).status == BookingStatus.CONFIRMED
        assert _driver_intervals(coordinator.store, "driver-1") == []
        assert coordinator.release_expired_holds() == []


class TestRequote:
    def test_requote_appends_version_from_current_rates(self, coordinator, rate_provider):
        booking = coordinator.submit(make_request())
        rate_provider.reload(
            RateCatalog(
                default=SCENARIO_RATE_TABLE.model_copy(
                    update={"version": "test-2", "per_person_overage_rate": Decimal("60.00")}
                )
            )
        )

        version = coordinator.requote(booking.id)

        assert version.version_number == 2
        assert version.reason == "requoted"
        assert version.quote.rate_table_version == "test-2"
        assert version.quote.tour_services_subtotal == Decimal("1020.00")
        history = coordinator.quote_history(booking.id)
        assert history[0].quote.tour_services_subtotal == Decimal("1000.00")
        assert coordinator.get_booking(booking.id).current_quote_version == 2

    def test_requote_version_is_stamped_by_the_coordinator_clock(self, coordinator, clock):
        booking = coordinator.submit(make_request())
        clock.advance(hours=3)

        version = coordinator.requote(booking.id)

        assert version.created_at == clock.now
        assert coordinator.quote_history(booking.id)[-1].created_at == clock.now
        assert coordinator.get_booking(booking.id).updated_at == clock.now

    def test_requote_of_cancelled_booking_is_rejected(self, coordinator):
        booking = coordinator.submit(make_request())
        coordinator.cancel(booking.id)

        with pytest.raises(InvalidStatusTransitionException):
            coordinator.requote(booking.id)


class TestFailureHandling:
    def test_dispatcher_failure_does_not_undo_booking(self, make_coordinator, store):
        coordinator = make_coordinator(
            store, publisher=EventPublisher(RecordingDispatcher(fail=True))
        )

        booking = coordinator.submit(make_request())

        assert coordinator.get_booking(booking.id).status == BookingStatus.CONFIRMED

    def test_store_failure_surfaces_as_persistence_error(self, make_coordinator, dispatcher):
        store = FailingReserveStore()
        coordinator = make_coordinator(store)

        with pytest.raises(PersistenceException) as exc_info:
            coordinator.submit(make_request())

        assert exc_info.value.status_code == 503
        assert exc_info.value.details["retryable"] is True
        assert store.list_bookings() == []
        assert dispatcher.events == []

    def test_lock_timeout_is_a_retryable_conflict(self, make_coordinator, make_settings):
        coordinator = make_coordinator(
            InMemoryBookingStore(), config=make_settings(lock_timeout_seconds=0.1)
        )
        backend = coordinator.lock_manager.backend
        key = resource_lock_key(ResourceType.DRIVER, "driver-1")
        token = backend.acquire(key, 0)
        try:
            with pytest.raises(LockTimeoutException) as exc_info:
                coordinator.submit(make_request())
        finally:
            backend.release(key, token)

        assert exc_info.value.details["retryable"] is True
        assert coordinator.submit(make_request()).status == BookingStatus.CONFIRMED

    def test_pessimistic_store_collision_is_not_retried(self, make_coordinator):
        store = CollidingStore(collisions=1)
        coordinator = make_coordinator(store)

        with pytest.raises(ConcurrentWriteException) as exc_info:
            coordinator.submit(make_request())

        assert exc_info.value.details["attempts"] == 1
        assert store.reserve_calls == 1


class TestOptimisticStrategy:
    def test_collision_is_retried(self, make_coordinator, make_settings):
        store = CollidingStore(collisions=2)
        coordinator = make_coordinator(
            store, config=make_settings(concurrency_strategy="optimistic")
        )

        booking = coordinator.submit(make_request())

        assert store.reserve_calls == 3
        assert store.get_booking(booking.id) is not None

    def test_retry_budget_is_bounded(self, make_coordinator, make_settings):
        store = CollidingStore(collisions=10)
        coordinator = make_coordinator(
            store,
            config=make_settings(concurrency_strategy="optimistic", optimistic_max_attempts=3),
        )

        with pytest.raises(ConcurrentWriteException) as exc_info:
            coordinator.submit(make_request())

        assert exc_info.value.details["attempts"] == 3
        assert store.reserve_calls == 3
        assert store.list_bookings() == []


class TestInterleavedWriters:
    """A second writer commits between an operation's read and its write."""

    @pytest.fixture
    def optimistic(self, make_coordinator, make_settings, store):
        return make_coordinator(store, config=make_settings(concurrency_strategy="optimistic"))

    def test_cancel_during_edit_wins(self, optimistic, clock):
        booking = optimistic.submit(make_request())
        clock.on_next_read = lambda: optimistic.cancel(booking.id)

        with pytest.raises(InvalidStatusTransitionException):
            optimistic.edit(booking.id, make_request(start_time=time(11, 0)))

        final = optimistic.get_booking(booking.id)
        assert final.status == BookingStatus.CANCELLED
        assert final.start_at == booking.start_at
        assert final.current_quote_version == 1
        assert _driver_intervals(optimistic.store) == []
        assert [v.reason for v in optimistic.quote_history(booking.id)] == ["initial"]

    def test_confirm_during_edit_is_kept(self, optimistic, clock):
        held = optimistic.hold(make_request())
        clock.on_next_read = lambda: optimistic.confirm(held.id)

        edited = optimistic.edit(held.id, make_request(start_time=time(11, 0)))

        assert edited.status == BookingStatus.CONFIRMED
        final = optimistic.get_booking(held.id)
        assert final.status == BookingStatus.CONFIRMED
        assert final.start_at == utc(18)
        assert final.current_quote_version == 2
        [interval] = _driver_intervals(optimistic.store)
        assert interval.start_at == utc(18)

    def test_cancel_during_requote_wins(self, optimistic, clock):
        booking = optimistic.submit(make_request())
        clock.on_next_read = lambda: optimistic.cancel(booking.id)

        with pytest.raises(InvalidStatusTransitionException):
            optimistic.requote(booking.id)

        assert optimistic.get_booking(booking.id).status == BookingStatus.CANCELLED
        assert len(optimistic.quote_history(booking.id)) == 1

    def test_edit_during_requote_reprices_the_edited_request(self, optimistic, clock):
        booking = optimistic.submit(make_request())
        clock.on_next_read = lambda: optimistic.edit(booking.id, make_request(party_size=8))

        version = optimistic.requote(booking.id)

        assert version.version_number == 3
        assert version.quote.party_size == 8
        history = optimistic.quote_history(booking.id)
        assert [v.reason for v in history] == ["initial", "edited", "requoted"]
        assert optimistic.get_booking(booking.id).current_quote_version == 3

    def test_cancel_during_confirm_wins(self, optimistic, clock):
        held = optimistic.hold(make_request())
        clock.on_next_read = lambda: optimistic.cancel(held.id)

        with pytest.raises(InvalidStatusTransitionException):
            optimistic.confirm(held.id)

        assert optimistic.get_booking(held.id).status == BookingStatus.CANCELLED
        assert _driver_intervals(optimistic.store) == []


class TestVehicleCapacity:
    @pytest.fixture
    def sized(self, make_coordinator, make_settings, store):
        config = make_settings(vehicle_capacities={"van-1": 14, "van-2": 8, "bus-1": 30})
        return make_coordinator(store, config=config)

    def test_vehicle_too_small_for_party_is_rejected(self, sized, dispatcher):
        with pytest.raises(VehicleCapacityException) as exc_info:
            sized.submit(make_request(party_size=10, requested_vehicle_id="van-2"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "INSUFFICIENT_CAPACITY"
        assert exc_info.value.details["capacity"] == 8
        assert sized.store.list_bookings() == []
        assert dispatcher.events == []

    def test_vehicle_without_known_capacity_is_accepted(
        self, make_coordinator, make_settings, store
    ):
        coordinator = make_coordinator(
            store, config=make_settings(vehicle_capacities={"van-2": 8})
        )

        booking = coordinator.submit(make_request(party_size=12, requested_vehicle_id="van-1"))

        assert booking.status == BookingStatus.CONFIRMED

    def test_vehicle_alternatives_seat_the_party_smallest_first(self, sized):
        sized.submit(make_request(requested_vehicle_id="van-1"))

        with pytest.raises(BookingConflictException) as exc_info:
            sized.submit(
                make_request(
                    party_size=10, requested_driver_id="driver-2", requested_vehicle_id="van-1"
                )
            )

        # van-2 seats 8; bus-1 only joins the roster through the capacity map.
        assert exc_info.value.alternatives == {"vehicle": ["bus-1"]}


class TestMaintenanceBlocks:
    @staticmethod
    def _block(start=utc(17), end=utc(23), resource_id="driver-1", **overrides):
        payload = {
            "resource_type": ResourceType.DRIVER,
            "resource_id": resource_id,
            "start_at": start,
            "end_at": end,
            "reason": "annual leave",
        }
        payload.update(overrides)
        return MaintenanceBlockRequest(**payload)

    def test_block_prevents_bookings_until_removed(self, coordinator):
        block = coordinator.block_resource(self._block())

        assert block.booking_id is None
        assert block.end_at == utc(23, 30)
        [stored] = _driver_intervals(coordinator.store)
        assert stored.id == block.id
        assert stored.reason == "annual leave"

        with pytest.raises(BookingConflictException) as exc_info:
            coordinator.submit(make_request())
        [result] = exc_info.value.conflicts
        assert result.conflicts[0].id == block.id
        assert coordinator.store.list_bookings() == []

        removed = coordinator.remove_block(block.id)

        assert removed.id == block.id
        assert _driver_intervals(coordinator.store) == []
        assert coordinator.submit(make_request()).status == BookingStatus.CONFIRMED

    def test_block_is_refused_while_a_booking_overlaps(self, coordinator):
        booking = coordinator.submit(make_request())

        with pytest.raises(MaintenanceConflictException) as exc_info:
            coordinator.block_resource(self._block(start=utc(20), end=utc(21)))

        assert exc_info.value.status_code == 409
        [conflict] = exc_info.value.details["conflicts"]
        assert conflict["booking_id"] == booking.id
        assert [i.booking_id for i in _driver_intervals(coordinator.store)] == [booking.id]

    def test_block_respects_the_buffer_after_a_booking(self, coordinator):
        coordinator.submit(make_request())

        with pytest.raises(MaintenanceConflictException):
            coordinator.block_resource(self._block(start=utc(23), end=utc(23, 45)))

        block = coordinator.block_resource(self._block(start=utc(23, 30), end=utc(23, 45)))
        assert block.start_at == utc(23, 30)

    def test_blocks_on_one_resource_leave_others_bookable(self, coordinator):
        coordinator.block_resource(self._block())

        booking = coordinator.submit(make_request(requested_driver_id="driver-2"))

        assert booking.status == BookingStatus.CONFIRMED

    def test_block_must_align_to_slot_granularity(self, coordinator):
        with pytest.raises(ValidationException) as exc_info:
            coordinator.block_resource(self._block(start=utc(17, 5)))

        assert exc_info.value.code == "INVALID_BLOCK_WINDOW"
        assert _driver_intervals(coordinator.store) == []

    def test_removing_unknown_block_is_404(self, coordinator):
        with pytest.raises(MaintenanceBlockNotFoundException) as exc_info:
            coordinator.remove_block("01J0000000000000000000000Z")

        assert exc_info.value.status_code == 404

    def test_booking_interval_cannot_be_removed_as_a_block(self, coordinator):
        coordinator.submit(make_request())
        [interval] = _driver_intervals(coordinator.store)

        with pytest.raises(MaintenanceBlockNotFoundException):
            coordinator.remove_block(interval.id)

        assert len(_driver_intervals(coordinator.store)) == 1


class TestAvailableSlots:
    def test_slots_cover_the_operating_day(self, coordinator):
        slots = coordinator.available_slots(WEEKDAY, Decimal("4"), driver_id="driver-1")

        # 08:00 to 18:00 local starts, 15:00 to 01:00 UTC.
        assert [slot.start_at for slot in slots] == [
            utc(15) + timedelta(hours=offset) for offset in range(11)
        ]
        assert all(slot.available for slot in slots)
        assert all(slot.end_at - slot.start_at == timedelta(hours=4) for slot in slots)
        assert {slot.vehicle_id for slot in slots} == {"van-1"}

    def test_booked_driver_blocks_overlapping_slots(self, coordinator):
        coordinator.submit(make_request(start_time=time(14, 0), duration_hours=Decimal("4")))

        slots = coordinator.available_slots(WEEKDAY, Decimal("4"), driver_id="driver-1")

        free = [slot.start_at for slot in slots if slot.available]
        assert free == [utc(15), utc(16)]
        blocked = [slot for slot in slots if not slot.available]
        assert all(
            [ref.resource_id for ref in slot.blocked_resources] == ["driver-1"]
            for slot in blocked
        )

    def test_vehicle_is_picked_smallest_first(self, make_coordinator, make_settings, store):
        coordinator = make_coordinator(
            store, config=make_settings(vehicle_capacities={"van-1": 14, "van-2": 8})
        )
        coordinator.submit(
            make_request(
                start_time=time(14, 0),
                duration_hours=Decimal("4"),
                requested_driver_id="driver-2",
                requested_vehicle_id="van-2",
            )
        )

        slots = coordinator.available_slots(
            WEEKDAY, Decimal("4"), party_size=6, driver_id="driver-1"
        )

        assert all(slot.available for slot in slots)
        assert [slot.vehicle_id for slot in slots[:3]] == ["van-2", "van-2", "van-1"]

    def test_party_larger_than_every_vehicle_has_no_slots(
        self, make_coordinator, make_settings, store
    ):
        coordinator = make_coordinator(
            store, config=make_settings(vehicle_capacities={"van-1": 14, "van-2": 8})
        )

        slots = coordinator.available_slots(WEEKDAY, Decimal("4"), party_size=20)

        assert slots
        assert not any(slot.available for slot in slots)
        assert all(slot.vehicle_id is None for slot in slots)

    def test_named_vehicle_is_checked_directly(self, coordinator):
        coordinator.submit(make_request(requested_vehicle_id="van-1"))

        slots = coordinator.available_slots(WEEKDAY, Decimal("8"), vehicle_id="van-1")

        assert not any(slot.available for slot in slots)
        assert all(slot.vehicle_id is None for slot in slots)

    def test_invalid_duration_is_rejected(self, coordinator):
        with pytest.raises(ValidationException) as exc_info:
            coordinator.available_slots(WEEKDAY, Decimal("2"))

        assert exc_info.value.code == "INVALID_DURATION"
