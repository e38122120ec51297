# backend/booking_engine/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when caller input is malformed or out of range."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        *,
        field: Optional[str] = None,
    ) -> None:
        details = dict(details or {})
        if field is not None:
            details.setdefault("field", field)
            details.setdefault("reason", message)
        super().__init__(message, code=code, details=details)

    @property
    def field(self) -> Optional[str]:
        return self.details.get("field")


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class PersistenceException(DomainException):
    """
    Raised when the transactional store is unavailable or a transaction fails.

    The message shown to callers is deliberately generic; the underlying
    error is logged where it is caught.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: Optional[str] = None, *, retryable: bool = True) -> None:
        super().__init__(
            message=message or "The booking service is temporarily unavailable. Please try again.",
            code="PERSISTENCE_ERROR",
            details={"retryable": retryable},
        )

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "2"}
        return exc


# Pricing input errors


class InvalidDurationException(ValidationException):
    """Raised when a duration cannot be matched to a priced bucket."""

    def __init__(self, message: str, *, duration_hours: Any = None) -> None:
        super().__init__(
            message,
            code="INVALID_DURATION",
            details={"duration_hours": str(duration_hours)},
            field="duration_hours",
        )


class InvalidPartySizeException(ValidationException):
    """Raised when the party size is not a positive integer."""

    def __init__(self, party_size: Any) -> None:
        super().__init__(
            "Party size must be at least 1",
            code="INVALID_PARTY_SIZE",
            details={"party_size": party_size},
            field="party_size",
        )


class UnknownAddOnException(ValidationException):
    """Raised when a requested add-on is not in the rate table's catalog."""

    def __init__(self, add_on_ids: List[str]) -> None:
        super().__init__(
            f"Unknown add-on(s): {', '.join(sorted(add_on_ids))}",
            code="UNKNOWN_ADD_ON",
            details={"add_on_ids": sorted(add_on_ids)},
            field="selected_add_ons",
        )


class VehicleCapacityException(ValidationException):
    """Raised when the requested vehicle seats fewer guests than the party."""

    def __init__(self, vehicle_id: str, capacity: int, party_size: int) -> None:
        super().__init__(
            f"Vehicle {vehicle_id} seats {capacity}, party size is {party_size}",
            code="INSUFFICIENT_CAPACITY",
            details={"vehicle_id": vehicle_id, "capacity": capacity, "party_size": party_size},
            field="requested_vehicle_id",
        )


# Booking lifecycle errors


class BookingNotFoundException(NotFoundException):
    def __init__(self, booking_id: str) -> None:
        super().__init__(
            f"Booking {booking_id} not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class BookingConflictException(ConflictException):
    """
    Raised when a requested resource window overlaps an existing interval.

    ``conflicts`` holds one availability result per requested resource so
    callers can present alternatives for every resource at once.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        conflicts: Optional[List[Any]] = None,
        alternatives: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.conflicts = list(conflicts or [])
        self.alternatives = dict(alternatives or {})
        payload = dict(details or {})
        if self.conflicts:
            payload["resources"] = [
                result.model_dump(mode="json") if hasattr(result, "model_dump") else result
                for result in self.conflicts
            ]
        if self.alternatives:
            payload["alternatives"] = self.alternatives
        super().__init__(
            message=message or "This time window conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=payload,
        )


class LockTimeoutException(ConflictException):
    """Raised when resource locks cannot be acquired in time; safe to retry."""

    def __init__(self, keys: List[str], timeout_s: float) -> None:
        super().__init__(
            message="The requested resources are busy. Please try again.",
            code="LOCK_TIMEOUT",
            details={"lock_keys": keys, "timeout_seconds": timeout_s, "retryable": True},
        )


class ConcurrentWriteException(ConflictException):
    """Raised when optimistic writes keep colliding after the retry budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            message="Another booking claimed this window at the same time. Please try again.",
            code="CONCURRENT_WRITE",
            details={"attempts": attempts, "retryable": True},
        )


class MaintenanceConflictException(ConflictException):
    """Raised when a maintenance block would overlap a booking or another block."""

    def __init__(self, conflicts: List[Any]) -> None:
        super().__init__(
            message="Cannot block this window, the resource is already booked or blocked",
            code="MAINTENANCE_CONFLICT",
            details={
                "conflicts": [interval.model_dump(mode="json") for interval in conflicts]
            },
        )


class MaintenanceBlockNotFoundException(NotFoundException):
    def __init__(self, block_id: str) -> None:
        super().__init__(
            f"Maintenance block {block_id} not found",
            code="MAINTENANCE_BLOCK_NOT_FOUND",
            details={"block_id": block_id},
        )


class InvalidStatusTransitionException(BusinessRuleException):
    def __init__(self, booking_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot transition booking from {current} to {requested}",
            code="INVALID_STATUS_TRANSITION",
            details={"booking_id": booking_id, "current": current, "requested": requested},
        )


class HoldExpiredException(BusinessRuleException):
    def __init__(self, booking_id: str, expired_at: Any) -> None:
        super().__init__(
            f"Hold on booking {booking_id} expired and its resources were released",
            code="HOLD_EXPIRED",
            details={"booking_id": booking_id, "expired_at": str(expired_at)},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class SlotClaimConflictError(RepositoryException):
    """A reservation collided with an existing slot claim."""


class QuoteVersionConflictError(RepositoryException):
    """Another writer appended the same quote version number first."""


class BookingStateConflictError(RepositoryException):
    """The booking row no longer has the status or quote version the writer read."""
