"""Domain errors and their HTTP mapping."""

from typing import Any, Dict, Optional

from fastapi import status


class GatepassError(Exception):
    """Base error with a user-safe message and a machine-readable code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "Internal server error."

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.extra}


class InvalidRequest(GatepassError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_request"
    message = "Invalid request."


class AuthenticationFailed(GatepassError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    message = "Unauthorized. Missing or invalid Bearer token."


class PermissionDenied(GatepassError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Forbidden."


class ActiveEventLimitReached(PermissionDenied):
    code = "active_event_limit"
    message = "Limit exceeded. Organizers can have a limited number of active events at a time."


class EventNotFound(GatepassError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "event_not_found"
    message = "Event not found."


class BookingNotFound(GatepassError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "booking_not_found"
    message = "Booking not found."


class EventInactive(GatepassError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "event_inactive"
    message = "This event is no longer active."


class InsufficientCapacity(GatepassError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_capacity"

    def __init__(self, seats_available: int, seats_requested: int) -> None:
        super().__init__(
            f"Insufficient seats available. Only {seats_available} seats remaining.",
            seats_available=seats_available,
            seats_requested=seats_requested,
        )
        self.seats_available = seats_available
        self.seats_requested = seats_requested


class DuplicateUser(GatepassError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_user"
    message = "A user with this email or phone already exists."


class ReservationFailed(GatepassError):
    code = "reservation_failed"
    message = "Internal server error while processing booking transaction."


class PassError(GatepassError):
    """Raised when a presented pass fails the cryptographic check."""

    status_code = status.HTTP_400_BAD_REQUEST
    reason: str = "invalid"


class PassMissing(PassError):
    code = "pass_missing"
    reason = "missing"
    message = "Missing qr_token in request body."


class PassExpired(PassError):
    code = "pass_expired"
    reason = "expired"
    message = "QR Token has expired."


class PassTampered(PassError):
    code = "pass_invalid"
    reason = "invalid"
    message = "Invalid or corrupted QR Token."
