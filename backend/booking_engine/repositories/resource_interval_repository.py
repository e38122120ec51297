# backend/booking_engine/repositories/resource_interval_repository.py
"""Data access for resource intervals and their slot claims."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ResourceType
from ..core.exceptions import RepositoryException
from ..models.resource_interval import ResourceIntervalModel, ResourceSlotClaim
from .base_repository import BaseRepository


class ResourceIntervalRepository(BaseRepository[ResourceIntervalModel]):
    def __init__(self, db: Session):
        super().__init__(db, ResourceIntervalModel)

    def list_for_resource(
        self,
        resource_type: ResourceType,
        resource_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[ResourceIntervalModel]:
        try:
            query = self.db.query(ResourceIntervalModel).filter(
                ResourceIntervalModel.resource_type == ResourceType(resource_type).value,
                ResourceIntervalModel.resource_id == resource_id,
            )
            if window_end is not None:
                query = query.filter(ResourceIntervalModel.start_at < window_end)
            if window_start is not None:
                query = query.filter(ResourceIntervalModel.service_end_at > window_start)
            return query.order_by(ResourceIntervalModel.start_at).all()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error loading intervals for {resource_type}:{resource_id}: {str(e)}"
            )
            raise RepositoryException(f"Failed to load intervals: {str(e)}")


class SlotClaimRepository(BaseRepository[ResourceSlotClaim]):
    def __init__(self, db: Session):
        super().__init__(db, ResourceSlotClaim)
