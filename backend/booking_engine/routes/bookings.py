# backend/booking_engine/routes/bookings.py
"""
Booking routes - inbound API for UI and CRM callers.

Handlers are thin: they run the synchronous coordinator in a worker thread
and translate domain exceptions with ``to_http_exception()``.
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path, status

from ..core.exceptions import DomainException
from ..schemas.booking import BookingRequest, BookingResponse, QuoteHistoryResponse
from ..schemas.pricing import Quote
from ..services.booking_coordinator import BookingCoordinator
from .dependencies import get_booking_coordinator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _with_quote(coordinator: BookingCoordinator, booking_id: str) -> BookingResponse:
    booking = coordinator.get_booking(booking_id)
    return BookingResponse(booking=booking, quote=coordinator.current_quote(booking_id))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def submit_booking(
    payload: BookingRequest,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> BookingResponse:
    """Reserve resources and create a confirmed booking (409 on conflict)."""
    try:

        def _submit() -> BookingResponse:
            booking = coordinator.submit(payload)
            return _with_quote(coordinator, booking.id)

        return await asyncio.to_thread(_submit)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/price-preview", response_model=Quote)
async def price_preview(
    payload: BookingRequest,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> Quote:
    """Price a request without checking availability or reserving anything."""
    try:
        return await asyncio.to_thread(coordinator.price_preview, payload)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/holds", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_hold(
    payload: BookingRequest,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> BookingResponse:
    """Create a pending booking that blocks its resources until confirmed."""
    try:

        def _hold() -> BookingResponse:
            booking = coordinator.hold(payload)
            return _with_quote(coordinator, booking.id)

        return await asyncio.to_thread(_hold)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Routes for a single booking
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> BookingResponse:
    try:
        return await asyncio.to_thread(_with_quote, coordinator, booking_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}/quotes", response_model=QuoteHistoryResponse)
async def get_quote_history(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> QuoteHistoryResponse:
    """Every quote version for the booking, oldest first."""
    try:
        versions = await asyncio.to_thread(coordinator.quote_history, booking_id)
        return QuoteHistoryResponse(booking_id=booking_id, versions=versions)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}", response_model=BookingResponse)
async def edit_booking(
    payload: BookingRequest,
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> BookingResponse:
    """Move or resize a booking and append a new quote version."""
    try:

        def _edit() -> BookingResponse:
            coordinator.edit(booking_id, payload)
            return _with_quote(coordinator, booking_id)

        return await asyncio.to_thread(_edit)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> BookingResponse:
    try:

        def _confirm() -> BookingResponse:
            coordinator.confirm(booking_id)
            return _with_quote(coordinator, booking_id)

        return await asyncio.to_thread(_confirm)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
) -> BookingResponse:
    """Cancel a booking; cancelling twice returns the same cancelled booking."""
    try:

        def _cancel() -> BookingResponse:
            coordinator.cancel(booking_id)
            return _with_quote(coordinator, booking_id)

        return await asyncio.to_thread(_cancel)
    except DomainException as e:
        handle_domain_exception(e)


__all__ = ["router"]
