"""Room catalogue access. No booking policy lives here."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .models import Reservation, ReservationStatus, Room


class RoomDirectory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, room_id: int) -> Optional[Room]:
        return self.db.query(Room).filter(Room.id == room_id).first()

    def get_active(self, room_id: int) -> Optional[Room]:
        return self.db.query(Room).filter(Room.id == room_id, Room.is_active.is_(True)).first()

    def list_active(self) -> List[Room]:
        return self.db.query(Room).filter(Room.is_active.is_(True)).order_by(Room.name.asc()).all()

    def list_all(self) -> List[Room]:
        return self.db.query(Room).order_by(Room.name.asc()).all()

    def create(self, data: Dict[str, Any]) -> Room:
        room = Room(**data)
        self.db.add(room)
        self.db.commit()
        self.db.refresh(room)
        return room

    def update(self, room: Room, data: Dict[str, Any]) -> Room:
        for key, value in data.items():
            setattr(room, key, value)
        self.db.commit()
        self.db.refresh(room)
        return room

    def deactivate(self, room: Room) -> Room:
        """Soft delete: existing reservations keep pointing at the row."""

        room.is_active = False
        self.db.commit()
        self.db.refresh(room)
        return room

    def list_available(self, start: datetime, end: datetime) -> List[Room]:
        busy_rooms = (
            self.db.query(Reservation.room_id)
            .filter(
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.start_time < end,
                Reservation.end_time > start,
            )
            .distinct()
        )
        return (
            self.db.query(Room)
            .filter(Room.is_active.is_(True), Room.id.not_in(busy_rooms))
            .order_by(Room.name.asc())
            .all()
        )
