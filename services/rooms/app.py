from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from circuitbreaker import circuit
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from office_common.cache import RoomListingCache
from office_common.config import get_settings
from office_common.database import Base, engine, get_db
from office_common.dependencies import allow_roles, get_current_active_user, get_policy_engine
from office_common.errors import register_error_handlers
from office_common.logging_middleware import add_audit_middleware
from office_common.models import RoleEnum, Room, User
from office_common.policy import ReservationPolicyEngine
from office_common.rate_limit import apply_rate_limiter, limiter
from office_common.rooms import RoomDirectory
from office_common.schemas import RoomCreate, RoomRead, RoomUpdate

settings = get_settings()
room_list_cache: RoomListingCache[list[RoomRead]] = RoomListingCache(ttl=settings.room_cache_ttl)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Rooms Service", version="0.3.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "rooms")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "rooms"}


def _get_room_or_404(db: Session, room_id: int) -> Room:
    room = RoomDirectory(db).get(room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


@app.post("/rooms", response_model=RoomRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def add_room(
    request: Request,
    room_in: RoomCreate,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> Room:
    room = RoomDirectory(db).create(room_in.model_dump())
    room_list_cache.invalidate()
    return room


@app.get("/rooms", response_model=List[RoomRead])
@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=SQLAlchemyError)
def list_rooms(
    request: Request,
    capacity: Optional[int] = None,
    equipment: Optional[List[str]] = Query(default=None),
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> List[RoomRead]:
    if include_inactive and current_user.role != RoleEnum.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    cache_key = room_list_cache.listing_key(capacity, equipment, include_inactive)
    cached = room_list_cache.get(cache_key)
    if cached is not None:
        return cached

    directory = RoomDirectory(db)
    rooms = directory.list_all() if include_inactive else directory.list_active()
    if capacity:
        rooms = [room for room in rooms if room.capacity >= capacity]
    if equipment:
        rooms = [room for room in rooms if set(equipment).issubset(set(room.equipment or []))]
    payload = [RoomRead.model_validate(room) for room in rooms]
    room_list_cache.set(cache_key, payload)
    return payload


@app.get("/rooms/available", response_model=List[RoomRead])
@limiter.limit("40/minute")
def available_rooms(
    request: Request,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    _: User = Depends(get_current_active_user),
    policy: ReservationPolicyEngine = Depends(get_policy_engine),
) -> List[Room]:
    return policy.list_available_rooms(start_time, end_time)


@app.get("/rooms/{room_id}", response_model=RoomRead)
@limiter.limit("60/minute")
def get_room(
    request: Request,
    room_id: int,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Room:
    room = RoomDirectory(db).get_active(room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


@app.put("/rooms/{room_id}", response_model=RoomRead)
@limiter.limit("15/minute")
def update_room(
    request: Request,
    room_id: int,
    room_update: RoomUpdate,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> Room:
    room = _get_room_or_404(db, room_id)
    room = RoomDirectory(db).update(room, room_update.model_dump(exclude_unset=True))
    room_list_cache.invalidate()
    return room


@app.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("15/minute")
def delete_room(
    request: Request,
    room_id: int,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> None:
    room = _get_room_or_404(db, room_id)
    RoomDirectory(db).deactivate(room)
    room_list_cache.invalidate()
