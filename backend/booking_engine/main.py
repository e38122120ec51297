# backend/booking_engine/main.py
"""
FastAPI application factory for the booking engine.

Run locally with:
    uvicorn booking_engine.main:create_app --factory --app-dir backend --reload
"""

import logging
from typing import Optional

from fastapi import FastAPI

from .core.config import Settings, settings
from .events.publisher import EventPublisher, LoggingDispatcher
from .repositories.booking_store import BookingStore
from .repositories.factory import RepositoryFactory
from .routes import availability_router, bookings_router, metrics_router
from .services.booking_coordinator import BookingCoordinator

logger = logging.getLogger(__name__)


def configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(
    config: Optional[Settings] = None,
    *,
    store: Optional[BookingStore] = None,
    coordinator: Optional[BookingCoordinator] = None,
) -> FastAPI:
    config = config or settings
    configure_logging(config)

    if coordinator is None:
        if store is None:
            session_factory = None
            if config.store_backend == "sqlalchemy":
                from .database import build_engine, build_session_factory, init_db

                db_engine = build_engine(config.database_url)
                init_db(bind=db_engine)
                session_factory = build_session_factory(db_engine)
            store = RepositoryFactory.create_booking_store(config, session_factory)
        coordinator = BookingCoordinator(
            store,
            config=config,
            publisher=EventPublisher(LoggingDispatcher()),
        )

    app = FastAPI(
        title="Tour Booking Engine",
        description="Scheduling and pricing for tour bookings",
        version="1.0.0",
    )
    app.state.settings = config
    app.state.booking_coordinator = coordinator

    app.include_router(bookings_router, prefix="/api/bookings")
    app.include_router(availability_router, prefix="/api")
    app.include_router(metrics_router)

    logger.info(
        "booking_engine_started",
        extra={
            "environment": config.environment,
            "concurrency_strategy": config.concurrency_strategy,
            "lock_backend": config.lock_backend,
        },
    )
    return app
