"""Unit tests for quote_ledger.py and the booking event publisher."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from booking_engine.core.enums import BookingEventType, BookingStatus
from booking_engine.events.booking_events import BookingEvent
from booking_engine.events.publisher import EventPublisher, LoggingDispatcher
from booking_engine.schemas.pricing import CalendarFacts
from booking_engine.services.pricing_calculator import compute_quote
from booking_engine.services.quote_ledger import QuoteLedger
from tests._utils import SCENARIO_RATE_TABLE, RecordingDispatcher, make_request


@pytest.fixture
def quote():
    return compute_quote(make_request(), SCENARIO_RATE_TABLE, CalendarFacts())


def _event(quote, **overrides):
    values = {
        "booking_id": "01J8Z0000000000000000000AB",
        "event_type": BookingEventType.SUBMITTED,
        "quote": quote,
        "status": BookingStatus.CONFIRMED,
        "occurred_at": datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc),
        "quote_version": 1,
    }
    values.update(overrides)
    return BookingEvent(**values)


class TestQuoteLedger:
    def test_prepare_builds_unsaved_version(self, quote):
        version = QuoteLedger.prepare("B1", 3, quote, "edited")

        assert version.version_number == 3
        assert version.reason == "edited"
        assert version.created_at.tzinfo is not None

    def test_history_is_sorted_and_latest_is_last(self, quote):
        store = MagicMock()
        store.list_quote_versions.return_value = [
            QuoteLedger.prepare("B1", 2, quote, "requoted"),
            QuoteLedger.prepare("B1", 1, quote, "initial"),
        ]
        ledger = QuoteLedger(store)

        assert [v.version_number for v in ledger.history("B1")] == [1, 2]
        assert ledger.latest("B1").reason == "requoted"

    def test_latest_without_versions(self):
        store = MagicMock()
        store.list_quote_versions.return_value = []

        assert QuoteLedger(store).latest("B1") is None

    def test_append_delegates_to_store(self, quote):
        store = MagicMock()
        store.append_quote_version.return_value = QuoteLedger.prepare("B1", 2, quote, "requoted")
        ledger = QuoteLedger(store)

        version = ledger.append("B1", quote, "requoted")

        assert version.version_number == 2
        args = store.append_quote_version.call_args[0]
        assert args[:3] == ("B1", quote, "requoted")


class TestEventPublisher:
    def test_event_payload_is_json_ready(self, quote):
        payload = _event(quote, context={"reason": "hold_expired"}).to_dict()

        assert payload["event_type"] == "booking.submitted"
        assert payload["status"] == "confirmed"
        assert payload["occurred_at"] == "2025-06-01T12:00:00+00:00"
        assert payload["quote"]["total"] == "1089.00"
        assert payload["context"] == {"reason": "hold_expired"}

    def test_publish_hands_event_to_dispatcher(self, quote):
        dispatcher = RecordingDispatcher()

        assert EventPublisher(dispatcher).publish(_event(quote)) is True
        assert dispatcher.event_types == ["booking.submitted"]

    def test_dispatch_failure_is_logged_and_counted(self, quote):
        publisher = EventPublisher(RecordingDispatcher(fail=True))

        with patch(
            "booking_engine.events.publisher.prometheus_metrics.inc_event_dispatch_failure"
        ) as counter:
            assert publisher.publish(_event(quote)) is False

        counter.assert_called_once_with("booking.submitted")

    def test_logging_dispatcher(self, caplog):
        with caplog.at_level("INFO", logger="booking_engine.events.publisher"):
            LoggingDispatcher().dispatch("booking.cancelled", {"booking_id": "B1"})

        assert any(record.getMessage() == "booking_event" for record in caplog.records)
