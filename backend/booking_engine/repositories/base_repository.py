# backend/booking_engine/repositories/base_repository.py
"""
Base Repository Pattern for the booking engine.

Repositories wrap one table each and never commit: the unit of work that
owns the session (SqlAlchemyBookingStore) decides when to commit or roll
back. SQLAlchemy errors are translated into RepositoryException, and
uniqueness violations into the specific conflict errors the coordinator
retries on.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    QuoteVersionConflictError,
    RepositoryException,
    SlotClaimConflictError,
)

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


def classify_integrity_error(exc: IntegrityError) -> RepositoryException:
    """Map a constraint violation to the repository error callers can act on."""
    message = str(exc.orig if exc.orig is not None else exc)
    if "resource_slot_claims" in message:
        return SlotClaimConflictError(message)
    if "quote_versions" in message:
        return QuoteVersionConflictError(message)
    return RepositoryException(f"Integrity constraint violated: {message}")


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by the store's unit of work)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by the store.
        """
        entity = self.model(**kwargs)
        self.db.add(entity)
        self._flush()
        return entity

    def create_many(self, rows: List[Dict[str, Any]]) -> List[T]:
        """Insert several rows with a single flush."""
        if not rows:
            return []
        entities = [self.model(**row) for row in rows]
        self.db.add_all(entities)
        self._flush()
        return entities

    def delete_by(self, **kwargs: Any) -> int:
        """Bulk delete rows matching the criteria; returns the row count."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting {self.model.__name__} rows: {str(e)}")
            raise RepositoryException(f"Failed to delete {self.model.__name__}: {str(e)}")

    def flush(self) -> None:
        """Flush pending ORM changes."""
        self._flush()

    def _flush(self) -> None:
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.logger.info(
                "Integrity error writing %s: %s", self.model.__name__, exc.orig or exc
            )
            raise classify_integrity_error(exc) from exc
        except SQLAlchemyError as e:
            self.logger.error(f"Error writing {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to write {self.model.__name__}: {str(e)}")
