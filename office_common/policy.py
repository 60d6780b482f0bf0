"""Reservation admission, cancellation and authorization rules.

The engine is built per request around a ReservationStore, the room and
user directories and a timezone provider. It never mutates rooms or quota
tiers; reservations are the only records it writes, and each admission
performs all of its reads before the single insert.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .errors import (
    AlignmentError,
    ConsecutiveBookingError,
    ForbiddenError,
    InvalidStatusTransitionError,
    InvalidTimeRangeError,
    MissingUserTypeError,
    PastBookingError,
    ReservationNotFoundError,
    RoomConflictError,
    RoomNotFoundError,
    SlotTakenError,
    UnsupportedDurationError,
    UserNotFoundError,
    WeeklyQuotaExceededError,
)
from .models import Reservation, ReservationStatus, RoleEnum, Room, User
from .rooms import RoomDirectory
from .store import ReservationStore
from .timezone import TimezoneProvider, to_system_time
from .users import UserDirectory

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS = {
    ReservationStatus.CONFIRMED: {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED},
    ReservationStatus.CANCELLED: set(),
    ReservationStatus.COMPLETED: set(),
}


@dataclass(frozen=True)
class OneHourDuration:
    """Reservation length. One hour is the only length the policy accepts."""

    hours: int = 1

    def __post_init__(self) -> None:
        if isinstance(self.hours, bool) or self.hours != 1:
            raise UnsupportedDurationError(
                f"Unsupported duration of {self.hours} hours; reservations last exactly 1 hour",
                duration=self.hours,
            )
        object.__setattr__(self, "hours", 1)

    @property
    def delta(self) -> timedelta:
        return timedelta(hours=self.hours)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: RoleEnum

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN


@dataclass(frozen=True)
class WeeklyUsage:
    limit: Optional[int]
    used: Decimal
    remaining: Optional[Decimal]
    unlimited: bool
    week_start: datetime
    week_end: datetime


def can_modify(principal: Principal, reservation: Reservation) -> bool:
    return principal.is_admin or reservation.user_id == principal.user_id


def ensure_can_modify(principal: Principal, reservation: Reservation) -> None:
    if not can_modify(principal, reservation):
        raise ForbiddenError(reservation_id=reservation.id)


def is_hour_aligned(moment: datetime) -> bool:
    return moment.minute == 0 and moment.second == 0 and moment.microsecond == 0


def week_window(moment: datetime, week_start: int = 0) -> Tuple[datetime, datetime]:
    """Return ``[start, end)`` of the calendar week containing ``moment``."""

    day = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    start = day - timedelta(days=(day.weekday() - week_start) % 7)
    return start, start + timedelta(days=7)


class ReservationPolicyEngine:
    def __init__(
        self,
        store: ReservationStore,
        rooms: RoomDirectory,
        users: UserDirectory,
        timezone_provider: TimezoneProvider,
        week_start: int = 0,
    ) -> None:
        self.store = store
        self.rooms = rooms
        self.users = users
        self.timezone_provider = timezone_provider
        self.week_start = week_start

    def _local(self, moment: datetime) -> datetime:
        return to_system_time(moment, self.timezone_provider.get_system_timezone())

    def _check_start(self, start: datetime) -> None:
        now = self.timezone_provider.now_in_system_timezone()
        if start < now:
            raise PastBookingError(start_time=start.isoformat(), now=now.isoformat())
        if not is_hour_aligned(start):
            raise AlignmentError(start_time=start.isoformat())

    def _active_room(self, room_id: int) -> Room:
        room = self.rooms.get_active(room_id)
        if room is None:
            raise RoomNotFoundError(room_id=room_id)
        return room

    def _ensure_room_free(self, room_id: int, start: datetime, end: datetime, exclude_id: Optional[int] = None) -> None:
        if self.store.find_overlapping(room_id, start, end, ReservationStatus.CONFIRMED, exclude_id=exclude_id):
            raise RoomConflictError(room_id=room_id, start_time=start.isoformat())

    def _check_user_limits(
        self, user: User, start: datetime, length: OneHourDuration, exclude_id: Optional[int] = None
    ) -> None:
        end = start + length.delta
        if self.store.find_adjacent(user.id, start, end, ReservationStatus.CONFIRMED, exclude_id=exclude_id):
            raise ConsecutiveBookingError(start_time=start.isoformat())

        user_type = user.user_type
        if user_type is None:
            raise MissingUserTypeError(user_id=user.id)
        if user_type.is_unlimited:
            return
        week_start, week_end = week_window(start, self.week_start)
        current_hours = self.store.sum_hours_in_window(
            user.id, week_start, week_end, ReservationStatus.CONFIRMED, exclude_id=exclude_id
        )
        if current_hours + length.hours > user_type.weekly_hours_limit:
            raise WeeklyQuotaExceededError(current_hours, length.hours, user_type.weekly_hours_limit)

    def request_reservation(
        self,
        user_id: int,
        room_id: int,
        start_time: datetime,
        duration: Any = 1,
        purpose: Optional[str] = None,
    ) -> Reservation:
        start = self._local(start_time)
        try:
            self._check_start(start)
            length = OneHourDuration(duration)
            end = start + length.delta

            user = self.users.get(user_id)
            if user is None:
                raise UserNotFoundError(user_id=user_id)
            self._active_room(room_id)

            self._ensure_room_free(room_id, start, end)
            self._check_user_limits(user, start, length)
        except (PastBookingError, AlignmentError, UnsupportedDurationError, RoomConflictError,
                ConsecutiveBookingError, MissingUserTypeError, WeeklyQuotaExceededError) as exc:
            logger.info("reservation rejected user=%s room=%s start=%s rule=%s", user_id, room_id, start, exc.code)
            raise

        reservation = Reservation(
            user_id=user_id,
            room_id=room_id,
            start_time=start,
            end_time=end,
            status=ReservationStatus.CONFIRMED,
            purpose=purpose,
            total_hours=Decimal(length.hours),
        )
        try:
            reservation = self.store.insert(reservation)
        except SlotTakenError as exc:
            logger.info("reservation lost slot race user=%s room=%s start=%s", user_id, room_id, start)
            raise RoomConflictError(room_id=room_id, start_time=start.isoformat()) from exc
        logger.info("reservation %s confirmed user=%s room=%s start=%s", reservation.id, user_id, room_id, start)
        return reservation

    def get_reservation(self, reservation_id: int, principal: Principal) -> Reservation:
        reservation = self.store.find_by_id(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id=reservation_id)
        ensure_can_modify(principal, reservation)
        return reservation

    def list_reservations(self) -> List[Reservation]:
        return self.store.find_all()

    def list_my_reservations(self, user_id: int) -> List[Reservation]:
        return self.store.find_by_user(user_id)

    @staticmethod
    def _check_transition(current: ReservationStatus, target: ReservationStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransitionError(
                f"Cannot change reservation status from {current.value} to {target.value}",
                current_status=current.value,
                requested_status=target.value,
            )

    def cancel_reservation(self, reservation_id: int, principal: Principal) -> Reservation:
        reservation = self.get_reservation(reservation_id, principal)
        if reservation.status == ReservationStatus.CANCELLED:
            return reservation
        self._check_transition(reservation.status, ReservationStatus.CANCELLED)
        reservation = self.store.update_status(reservation, ReservationStatus.CANCELLED)
        logger.info("reservation %s cancelled by user=%s", reservation.id, principal.user_id)
        return reservation

    def update_reservation(self, reservation_id: int, patch: Dict[str, Any], principal: Principal) -> Reservation:
        reservation = self.get_reservation(reservation_id, principal)
        changes = dict(patch)
        new_status = changes.pop("status", None)
        if new_status is not None:
            new_status = ReservationStatus(new_status)
        # An explicit null leaves the field as it is.
        moves: Dict[str, Any] = {}
        for key in ("room_id", "start_time"):
            value = changes.pop(key, None)
            if value is not None:
                moves[key] = value

        reschedule = bool(moves)
        if reschedule and not principal.is_admin:
            raise ForbiddenError("Only administrators can move a reservation", reservation_id=reservation.id)

        if new_status is not None and new_status != reservation.status:
            if new_status == ReservationStatus.COMPLETED and not principal.is_admin:
                raise ForbiddenError("Only administrators can complete a reservation", reservation_id=reservation.id)
            self._check_transition(reservation.status, new_status)

        if reschedule:
            if reservation.status != ReservationStatus.CONFIRMED:
                raise InvalidStatusTransitionError(
                    "Only confirmed reservations can be rescheduled",
                    current_status=reservation.status.value,
                )
            room_id = moves.get("room_id", reservation.room_id)
            start = self._local(moves.get("start_time", reservation.start_time))
            self._check_start(start)
            length = OneHourDuration(1)
            end = start + length.delta
            self._active_room(room_id)
            self._ensure_room_free(room_id, start, end, exclude_id=reservation.id)
            if new_status in (None, ReservationStatus.CONFIRMED):
                owner = self.users.get(reservation.user_id)
                if owner is None:
                    raise UserNotFoundError(user_id=reservation.user_id)
                self._check_user_limits(owner, start, length, exclude_id=reservation.id)
            reservation.room_id = room_id
            reservation.start_time = start
            reservation.end_time = end

        if "purpose" in changes:
            reservation.purpose = changes["purpose"]
        if new_status is not None:
            reservation.status = new_status

        try:
            reservation = self.store.save(reservation)
        except SlotTakenError as exc:
            raise RoomConflictError(room_id=reservation.room_id, start_time=reservation.start_time.isoformat()) from exc
        logger.info("reservation %s updated by user=%s", reservation.id, principal.user_id)
        return reservation

    def list_available_rooms(self, start: datetime, end: datetime) -> List[Room]:
        start, end = self._local(start), self._local(end)
        if end <= start:
            raise InvalidTimeRangeError(start_time=start.isoformat(), end_time=end.isoformat())
        return self.rooms.list_available(start, end)

    def weekly_usage(self, user_id: int) -> WeeklyUsage:
        user = self.users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id=user_id)
        week_start, week_end = week_window(self.timezone_provider.now_in_system_timezone(), self.week_start)
        used = self.store.sum_hours_in_window(user_id, week_start, week_end, ReservationStatus.CONFIRMED)
        user_type = user.user_type
        if user_type is not None and user_type.is_unlimited:
            return WeeklyUsage(None, used, None, True, week_start, week_end)
        limit = user_type.weekly_hours_limit if user_type is not None else 0
        remaining = max(Decimal(limit) - used, Decimal("0"))
        return WeeklyUsage(limit, used, remaining, False, week_start, week_end)
