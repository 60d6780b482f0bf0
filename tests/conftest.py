import os
from datetime import datetime
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")

from office_common.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from office_common.auth import create_user_token, get_password_hash  # noqa: E402
from office_common.database import Base, SessionLocal, engine  # noqa: E402
from office_common.dependencies import get_timezone_provider  # noqa: E402
from office_common.models import UNLIMITED_WEEKLY_HOURS, RoleEnum, Room, User, UserType  # noqa: E402
from office_common.timezone import StaticTimezoneProvider  # noqa: E402
from services.reservations.app import app as reservations_app  # noqa: E402
from services.rooms.app import app as rooms_app  # noqa: E402
from services.rooms.app import room_list_cache  # noqa: E402
from services.system_config.app import app as system_config_app  # noqa: E402
from services.users.app import app as users_app  # noqa: E402

SYSTEM_TIMEZONE = "America/Mexico_City"
# Monday 2030-01-07 08:00 in the system timezone.
FROZEN_NOW = datetime(2030, 1, 7, 8, 0)


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    room_list_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> StaticTimezoneProvider:
    return StaticTimezoneProvider(SYSTEM_TIMEZONE, now=FROZEN_NOW)


@pytest.fixture()
def frozen_clock(clock) -> Generator[StaticTimezoneProvider, None, None]:
    apps = (reservations_app, rooms_app, users_app)
    for fastapi_app in apps:
        fastapi_app.dependency_overrides[get_timezone_provider] = lambda: clock
    yield clock
    for fastapi_app in apps:
        fastapi_app.dependency_overrides.pop(get_timezone_provider, None)


@pytest.fixture()
def basic_tier(db_session) -> UserType:
    tier = UserType(name="Basic", weekly_hours_limit=4, description="4 hours per week")
    db_session.add(tier)
    db_session.commit()
    return tier


@pytest.fixture()
def unlimited_tier(db_session) -> UserType:
    tier = UserType(name="Unlimited", weekly_hours_limit=UNLIMITED_WEEKLY_HOURS)
    db_session.add(tier)
    db_session.commit()
    return tier


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    def factory(username: str, role: RoleEnum = RoleEnum.USER, user_type: UserType | None = None) -> User:
        user = User(
            name=username.title(),
            username=username,
            email=f"{username}@example.com",
            hashed_password=get_password_hash("Passw0rd!"),
            role=role,
            user_type_id=user_type.id if user_type else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


@pytest.fixture()
def admin(make_user, unlimited_tier) -> User:
    return make_user("admin", RoleEnum.ADMIN, unlimited_tier)


@pytest.fixture()
def alice(make_user, basic_tier) -> User:
    return make_user("alice", RoleEnum.USER, basic_tier)


@pytest.fixture()
def bob(make_user, basic_tier) -> User:
    return make_user("bob", RoleEnum.USER, basic_tier)


@pytest.fixture()
def make_room(db_session) -> Callable[..., Room]:
    def factory(name: str = "Sala Ejecutiva", capacity: int = 8, **extra) -> Room:
        room = Room(name=name, capacity=capacity, equipment=extra.pop("equipment", ["WiFi"]), **extra)
        db_session.add(room)
        db_session.commit()
        db_session.refresh(room)
        return room

    return factory


@pytest.fixture()
def room(make_room) -> Room:
    return make_room()


@pytest.fixture()
def auth_header() -> Callable[[User], dict[str, str]]:
    def build(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_user_token(user)}"}

    return build


@pytest.fixture()
def reservations_client() -> Generator[TestClient, None, None]:
    with TestClient(reservations_app) as client:
        yield client


@pytest.fixture()
def rooms_client() -> Generator[TestClient, None, None]:
    with TestClient(rooms_app) as client:
        yield client


@pytest.fixture()
def users_client() -> Generator[TestClient, None, None]:
    with TestClient(users_app) as client:
        yield client


@pytest.fixture()
def system_config_client() -> Generator[TestClient, None, None]:
    with TestClient(system_config_app) as client:
        yield client
