"""Reusable FastAPI dependencies for auth, database access and the policy engine."""
from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .auth import decode_token
from .config import get_settings
from .database import get_db
from .models import RoleEnum, User
from .policy import Principal, ReservationPolicyEngine
from .rooms import RoomDirectory
from .store import ReservationStore
from .timezone import SystemConfigTimezoneProvider, TimezoneProvider
from .users import UserDirectory

settings = get_settings()
oauth_scheme = OAuth2PasswordBearer(tokenUrl="/users/login")


def get_current_user(token: str = Depends(oauth_scheme), db: Session = Depends(get_db)) -> User:
    payload = decode_token(token)
    username: str | None = payload.get("sub")
    if username is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing subject in token")
    user = db.query(User).filter(User.username == username).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return current_user


def get_current_principal(current_user: User = Depends(get_current_active_user)) -> Principal:
    return Principal(user_id=current_user.id, role=current_user.role)


def allow_roles(*roles: RoleEnum) -> Callable[[User], User]:
    def dependency(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return dependency


def get_timezone_provider(db: Session = Depends(get_db)) -> TimezoneProvider:
    return SystemConfigTimezoneProvider(db)


def get_policy_engine(
    db: Session = Depends(get_db),
    timezone_provider: TimezoneProvider = Depends(get_timezone_provider),
) -> ReservationPolicyEngine:
    return ReservationPolicyEngine(
        store=ReservationStore(db),
        rooms=RoomDirectory(db),
        users=UserDirectory(db),
        timezone_provider=timezone_provider,
        week_start=settings.week_start_day,
    )
