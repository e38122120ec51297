"""End-to-end wiring through create_app and the repository factory."""

from fastapi.testclient import TestClient

from booking_engine.main import create_app
from booking_engine.repositories.factory import RepositoryFactory
from booking_engine.repositories.in_memory_store import InMemoryBookingStore
from booking_engine.repositories.sqlalchemy_store import SqlAlchemyBookingStore


def test_factory_selects_memory_store(make_settings):
    store = RepositoryFactory.create_booking_store(
        make_settings(store_backend="memory", slot_granularity_minutes=5)
    )

    assert isinstance(store, InMemoryBookingStore)
    assert store.slot_minutes == 5


def test_factory_builds_sql_store_for_other_database(make_settings, tmp_path):
    store = RepositoryFactory.create_booking_store(
        make_settings(store_backend="sqlalchemy", database_url=f"sqlite:///{tmp_path / 'x.db'}")
    )

    assert isinstance(store, SqlAlchemyBookingStore)


def test_sqlalchemy_app_books_with_default_rates(make_settings):
    config = make_settings(store_backend="sqlalchemy", database_url="sqlite://")
    app = create_app(config)

    assert isinstance(app.state.booking_coordinator.store, SqlAlchemyBookingStore)
    with TestClient(app) as client:
        response = client.post(
            "/api/bookings",
            json={
                "date": "2025-06-10",
                "start_time": "10:00:00",
                "duration_hours": "6",
                "party_size": 6,
                "requested_driver_id": "driver-1",
                "requested_vehicle_id": "van-1",
                "selected_add_ons": ["winery_stop_1", "photography"],
            },
        )
        booking_id = response.json()["booking"]["id"]
        fetched = client.get(f"/api/bookings/{booking_id}")

    assert response.status_code == 201, response.text
    quote = response.json()["quote"]
    assert quote["rate_table_version"] == "2025.1"
    assert quote["tour_services_subtotal"] == "1150.00"
    assert quote["tax_amount"] == "104.65"
    assert quote["tbd_estimate"]["tasting"] == "150.00"
    assert fetched.json()["booking"]["status"] == "confirmed"


def test_memory_app_uses_configured_store(make_settings):
    app = create_app(make_settings(store_backend="memory"))

    assert isinstance(app.state.booking_coordinator.store, InMemoryBookingStore)
