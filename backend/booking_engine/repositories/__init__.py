# backend/booking_engine/repositories/__init__.py
"""
Repository layer for the booking engine.

Key Components:
- BookingStore: transactional interface consumed by the coordinator
- SqlAlchemyBookingStore: SQL implementation (one session per unit of work)
- InMemoryBookingStore: process-local implementation with the same constraints
- BaseRepository and the per-table repositories used by the SQL store
- RepositoryFactory: creates repositories and the configured store

Usage:
    from booking_engine.repositories import RepositoryFactory

    store = RepositoryFactory.create_booking_store(settings)
"""

from .base_repository import BaseRepository
from .booking_store import BookingStore
from .factory import RepositoryFactory
from .in_memory_store import InMemoryBookingStore
from .sqlalchemy_store import SqlAlchemyBookingStore

__all__ = [
    "BaseRepository",
    "BookingStore",
    "InMemoryBookingStore",
    "RepositoryFactory",
    "SqlAlchemyBookingStore",
]
