"""FastAPI dependencies for the booking routes."""

from fastapi import Request

from ..services.booking_coordinator import BookingCoordinator


def get_booking_coordinator(request: Request) -> BookingCoordinator:
    """The coordinator created once per application in ``create_app``."""
    coordinator: BookingCoordinator = request.app.state.booking_coordinator
    return coordinator
