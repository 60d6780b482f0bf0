"""Durable reservation records plus the range queries the policy engine needs."""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import SlotTakenError, StorageError
from .models import Reservation, ReservationStatus

logger = logging.getLogger(__name__)

SLOT_INDEX_NAME = "uq_reservations_room_slot"
# SQLite reports the columns instead of the index name.
_SQLITE_SLOT_MARKER = "reservations.room_id, reservations.start_time"


def _is_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return SLOT_INDEX_NAME in message or _SQLITE_SLOT_MARKER in message


class ReservationStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit(self, reservation: Reservation) -> Reservation:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if _is_slot_violation(exc):
                raise SlotTakenError(room_id=reservation.room_id) from exc
            logger.error("reservation write rejected by database: %s", exc.orig)
            raise StorageError() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("reservation write failed: %s", exc)
            raise StorageError() from exc
        self.db.refresh(reservation)
        return reservation

    def insert(self, reservation: Reservation) -> Reservation:
        self.db.add(reservation)
        return self._commit(reservation)

    def save(self, reservation: Reservation) -> Reservation:
        return self._commit(reservation)

    def update_status(self, reservation: Reservation, new_status: ReservationStatus) -> Reservation:
        reservation.status = new_status
        return self._commit(reservation)

    def find_by_id(self, reservation_id: int) -> Optional[Reservation]:
        return self.db.query(Reservation).filter(Reservation.id == reservation_id).first()

    def find_by_user(self, user_id: int) -> List[Reservation]:
        return (
            self.db.query(Reservation)
            .filter(Reservation.user_id == user_id)
            .order_by(Reservation.start_time.desc())
            .all()
        )

    def find_all(self) -> List[Reservation]:
        return self.db.query(Reservation).order_by(Reservation.start_time.desc()).all()

    def find_overlapping(
        self,
        room_id: int,
        start: datetime,
        end: datetime,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        exclude_id: Optional[int] = None,
    ) -> List[Reservation]:
        query = self.db.query(Reservation).filter(
            Reservation.room_id == room_id,
            Reservation.status == status,
            Reservation.start_time < end,
            Reservation.end_time > start,
        )
        if exclude_id is not None:
            query = query.filter(Reservation.id != exclude_id)
        return query.all()

    def find_adjacent(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        exclude_id: Optional[int] = None,
    ) -> List[Reservation]:
        query = self.db.query(Reservation).filter(
            Reservation.user_id == user_id,
            Reservation.status == status,
            or_(Reservation.end_time == start, Reservation.start_time == end),
        )
        if exclude_id is not None:
            query = query.filter(Reservation.id != exclude_id)
        return query.all()

    def sum_hours_in_window(
        self,
        user_id: int,
        window_start: datetime,
        window_end: datetime,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        exclude_id: Optional[int] = None,
    ) -> Decimal:
        query = self.db.query(func.sum(Reservation.total_hours)).filter(
            Reservation.user_id == user_id,
            Reservation.status == status,
            Reservation.start_time >= window_start,
            Reservation.start_time < window_end,
        )
        if exclude_id is not None:
            query = query.filter(Reservation.id != exclude_id)
        total = query.scalar()
        return Decimal(str(total)) if total is not None else Decimal("0")
