# backend/booking_engine/repositories/quote_version_repository.py
"""Data access for the append-only quote ledger."""

from typing import List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.quote_version import QuoteVersionModel
from .base_repository import BaseRepository


class QuoteVersionRepository(BaseRepository[QuoteVersionModel]):
    """Insert-only; the ledger has no update or delete helpers."""

    def __init__(self, db: Session):
        super().__init__(db, QuoteVersionModel)

    def latest_version_number(self, booking_id: str) -> int:
        try:
            latest = (
                self.db.query(func.max(QuoteVersionModel.version_number))
                .filter(QuoteVersionModel.booking_id == booking_id)
                .scalar()
            )
            return int(latest or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error reading quote versions for {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to read quote versions: {str(e)}")

    def list_for_booking(self, booking_id: str) -> List[QuoteVersionModel]:
        try:
            return (
                self.db.query(QuoteVersionModel)
                .filter(QuoteVersionModel.booking_id == booking_id)
                .order_by(QuoteVersionModel.version_number)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing quote versions for {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to list quote versions: {str(e)}")
