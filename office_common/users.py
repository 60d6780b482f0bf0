"""User and quota tier lookups."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from .models import User, UserType


class UserDirectory:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return (
            self.db.query(User)
            .options(joinedload(User.user_type))
            .filter(User.id == user_id, User.is_active.is_(True))
            .first()
        )

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def list_active(self) -> List[User]:
        return self.db.query(User).filter(User.is_active.is_(True)).order_by(User.id.asc()).all()

    def list_user_types(self) -> List[UserType]:
        return self.db.query(UserType).order_by(UserType.weekly_hours_limit.asc()).all()

    def get_user_type(self, user_type_id: int) -> Optional[UserType]:
        return self.db.query(UserType).filter(UserType.id == user_type_id).first()

    def get_user_type_by_name(self, name: str) -> Optional[UserType]:
        return self.db.query(UserType).filter(UserType.name == name).first()
