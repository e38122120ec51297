# backend/tests/conftest.py
"""
Pytest configuration for the booking engine.

Every test builds its own store. The process-level database settings are
pointed at an in-memory SQLite database before any application import so
that nothing under test can touch a real database file.
"""

import os
import sys

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOCK_BACKEND", "local")

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from typing import Any, Callable, Iterator, Optional

import pytest
from sqlalchemy.engine import Engine

from booking_engine.core.config import Settings
from booking_engine.core.resource_lock import LocalLockBackend, ResourceLockManager
from booking_engine.database import build_engine, build_session_factory, init_db
from booking_engine.events.publisher import EventPublisher
from booking_engine.repositories.booking_store import BookingStore
from booking_engine.repositories.in_memory_store import InMemoryBookingStore
from booking_engine.repositories.sqlalchemy_store import SqlAlchemyBookingStore
from booking_engine.schemas.pricing import RateCatalog
from booking_engine.services.booking_coordinator import BookingCoordinator
from booking_engine.services.rate_table_provider import RateTableProvider
from tests._utils import SCENARIO_RATE_TABLE, FakeClock, RecordingDispatcher

DRIVER_ROSTER = ["driver-1", "driver-2", "driver-3"]
VEHICLE_ROSTER = ["van-1", "van-2"]


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "store_backend": "memory",
            "database_url": "sqlite://",
            "operator_timezone": "America/Los_Angeles",
            "resource_buffer_minutes": 30,
            "slot_granularity_minutes": 15,
            "concurrency_strategy": "pessimistic",
            "lock_backend": "local",
            "lock_timeout_seconds": 10.0,
            "hold_expiration_minutes": 15,
            "driver_roster": DRIVER_ROSTER,
            "vehicle_roster": VEHICLE_ROSTER,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def test_settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest.fixture
def rate_provider() -> RateTableProvider:
    return RateTableProvider(RateCatalog(default=SCENARIO_RATE_TABLE))


@pytest.fixture
def memory_store() -> InMemoryBookingStore:
    return InMemoryBookingStore(slot_minutes=15)


@pytest.fixture
def sql_engine() -> Iterator[Engine]:
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine: Engine) -> SqlAlchemyBookingStore:
    return SqlAlchemyBookingStore(build_session_factory(sql_engine), slot_minutes=15)


@pytest.fixture(params=["memory", "sqlalchemy"])
def store(request: pytest.FixtureRequest) -> BookingStore:
    """Both store implementations must satisfy the same contract."""
    if request.param == "memory":
        return request.getfixturevalue("memory_store")
    return request.getfixturevalue("sql_store")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def make_coordinator(
    test_settings: Settings,
    rate_provider: RateTableProvider,
    clock: FakeClock,
    dispatcher: RecordingDispatcher,
) -> Callable[..., BookingCoordinator]:
    def _make(
        store: BookingStore,
        config: Optional[Settings] = None,
        **kwargs: Any,
    ) -> BookingCoordinator:
        config = config or test_settings
        kwargs.setdefault("rate_provider", rate_provider)
        kwargs.setdefault(
            "lock_manager",
            ResourceLockManager(LocalLockBackend(), timeout_s=config.lock_timeout_seconds),
        )
        kwargs.setdefault("publisher", EventPublisher(dispatcher))
        kwargs.setdefault("clock", clock)
        return BookingCoordinator(store, config=config, **kwargs)

    return _make


@pytest.fixture
def coordinator(
    make_coordinator: Callable[..., BookingCoordinator], store: BookingStore
) -> BookingCoordinator:
    return make_coordinator(store)
