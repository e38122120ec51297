# backend/booking_engine/repositories/factory.py
"""
Repository Factory for the booking engine.

Provides centralized creation of repository instances and of the
BookingStore implementation selected for the process.
"""

from typing import TYPE_CHECKING, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..core.config import Settings

if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .booking_store import BookingStore
    from .quote_version_repository import QuoteVersionRepository
    from .resource_interval_repository import ResourceIntervalRepository, SlotClaimRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_resource_interval_repository(db: Session) -> "ResourceIntervalRepository":
        from .resource_interval_repository import ResourceIntervalRepository

        return ResourceIntervalRepository(db)

    @staticmethod
    def create_slot_claim_repository(db: Session) -> "SlotClaimRepository":
        from .resource_interval_repository import SlotClaimRepository

        return SlotClaimRepository(db)

    @staticmethod
    def create_quote_version_repository(db: Session) -> "QuoteVersionRepository":
        from .quote_version_repository import QuoteVersionRepository

        return QuoteVersionRepository(db)

    @staticmethod
    def create_booking_store(
        config: Settings, session_factory: Optional[sessionmaker] = None
    ) -> "BookingStore":
        """
        Store selected by ``config.store_backend``.

        The SQL store uses ``session_factory`` when given, otherwise one bound
        to ``config.database_url``.
        """
        if config.store_backend == "memory":
            from .in_memory_store import InMemoryBookingStore

            return InMemoryBookingStore(slot_minutes=config.slot_granularity_minutes)

        from .sqlalchemy_store import SqlAlchemyBookingStore

        if session_factory is None:
            from ..core.config import settings as process_settings
            from ..database import SessionLocal, build_engine, build_session_factory

            if config.database_url == process_settings.database_url:
                session_factory = SessionLocal
            else:
                session_factory = build_session_factory(build_engine(config.database_url))
        return SqlAlchemyBookingStore(
            session_factory, slot_minutes=config.slot_granularity_minutes
        )
