# backend/booking_engine/routes/availability.py
"""
Availability routes - free-slot search and maintenance blocks for dispatchers.
"""

import asyncio
from datetime import date
from decimal import Decimal
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from ..core.exceptions import DomainException
from ..schemas.availability import MaintenanceBlockRequest, ResourceInterval, SlotSearchResponse
from ..services.booking_coordinator import BookingCoordinator
from .bookings import ULID_PATH_PATTERN, handle_domain_exception
from .dependencies import get_booking_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability"])


@router.get("/availability/slots", response_model=SlotSearchResponse)
async def search_slots(
    tour_date: date = Query(..., alias="date"),
    duration_hours: Decimal = Query(..., gt=0),
    party_size: Optional[int] = Query(None, ge=1),
    driver_id: Optional[str] = Query(None, min_length=1),
    vehicle_id: Optional[str] = Query(None, min_length=1),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> SlotSearchResponse:
    """Start times across the operating day and whether each one is free."""
    try:
        slots = await asyncio.to_thread(
            coordinator.available_slots,
            tour_date,
            duration_hours,
            party_size=party_size,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
        )
        return SlotSearchResponse(tour_date=tour_date, duration_hours=duration_hours, slots=slots)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/maintenance-blocks",
    response_model=ResourceInterval,
    status_code=status.HTTP_201_CREATED,
)
async def create_maintenance_block(
    payload: MaintenanceBlockRequest,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> ResourceInterval:
    """Take a resource out of service (409 while bookings overlap the window)."""
    try:
        return await asyncio.to_thread(coordinator.block_resource, payload)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/maintenance-blocks/{block_id}", response_model=ResourceInterval)
async def delete_maintenance_block(
    block_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> ResourceInterval:
    try:
        return await asyncio.to_thread(coordinator.remove_block, block_id)
    except DomainException as e:
        handle_domain_exception(e)
