"""Typed booking failures and their HTTP rendering."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for every user-facing failure raised by the booking core."""

    code = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Booking request rejected"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context: Dict[str, Any] = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message, "code": self.code}
        for key, value in self.context.items():
            payload[key] = float(value) if isinstance(value, Decimal) else value
        return payload


class PastBookingError(BookingError):
    code = "past_booking"
    default_message = "Reservations cannot start in the past"


class AlignmentError(BookingError):
    code = "misaligned_start"
    default_message = "Reservations must start on the hour (e.g. 09:00, 10:00)"


class UnsupportedDurationError(BookingError):
    code = "unsupported_duration"
    default_message = "Only one-hour reservations are supported"


class InvalidTimeRangeError(BookingError):
    code = "invalid_time_range"
    default_message = "End time must be after start time"


class InvalidTimezoneError(BookingError):
    code = "invalid_timezone"
    default_message = "Unknown timezone"


class RoomConflictError(BookingError):
    code = "room_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The room is already booked for this time slot"


class ConsecutiveBookingError(BookingError):
    code = "consecutive_booking"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Consecutive reservations are not allowed; leave at least one free hour between bookings"


class WeeklyQuotaExceededError(BookingError):
    code = "weekly_quota_exceeded"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_hours: Decimal, requested_hours: int, limit: int) -> None:
        self.current_hours = current_hours
        self.requested_hours = requested_hours
        self.limit = limit
        super().__init__(
            f"This reservation would exceed your weekly limit of {limit} hours. "
            f"Current usage: {current_hours} hours, requested: {requested_hours} hours",
            current_hours=current_hours,
            requested_hours=requested_hours,
            limit=limit,
        )


class MissingUserTypeError(BookingError):
    code = "missing_user_type"
    status_code = status.HTTP_409_CONFLICT
    default_message = "User has no membership tier assigned; bookings are disabled until one is set"


class InvalidStatusTransitionError(BookingError):
    code = "invalid_status_transition"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Reservation status cannot change from its current value"


class UserNotFoundError(BookingError):
    code = "user_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class RoomNotFoundError(BookingError):
    code = "room_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Room not found or inactive"


class ReservationNotFoundError(BookingError):
    code = "reservation_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Reservation not found"


class ForbiddenError(BookingError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You can only modify your own reservations"


class StorageError(BookingError):
    code = "storage_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Storage failure, please try again later"


class SlotTakenError(StorageError):
    """The confirmed (room, start) uniqueness constraint rejected a write."""

    code = "slot_taken"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The room slot was taken concurrently"


def booking_error_handler(_: Request, exc: BookingError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error("storage failure surfaced to client: %s", exc.code)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    """Render BookingError subclasses as JSON responses."""

    app.add_exception_handler(BookingError, booking_error_handler)
