from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from office_common.config import get_settings
from office_common.database import Base, engine
from office_common.dependencies import allow_roles, get_current_principal, get_policy_engine
from office_common.errors import register_error_handlers
from office_common.logging_middleware import add_audit_middleware
from office_common.models import Reservation, RoleEnum, User
from office_common.policy import Principal, ReservationPolicyEngine, WeeklyUsage
from office_common.rate_limit import BOOKING_WRITE_LIMIT, apply_rate_limiter, booking_rate_key, limiter
from office_common.schemas import ReservationCreate, ReservationRead, ReservationUpdate, WeeklyUsageRead

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Reservations Service", version="0.3.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "reservations")
    Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "reservations"}


@app.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(BOOKING_WRITE_LIMIT, key_func=booking_rate_key)
def create_reservation(
    request: Request,
    reservation_in: ReservationCreate,
    principal: Principal = Depends(get_current_principal),
    engine: ReservationPolicyEngine = Depends(get_policy_engine),
) -> Reservation:
    return engine.request_reservation(
        user_id=principal.user_id,
        room_id=reservation_in.room_id,
        start_time=reservation_in.start_time,
        duration=reservation_in.duration,
        purpose=reservation_in.purpose,
    )


@app.get("/reservations", response_model=List[ReservationRead])
@limiter.limit("30/minute")
def list_reservations(
    request: Request,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    engine: ReservationPolicyEngine = Depends(get_policy_engine),
) -> List[Reservation]:
    return engine.list_reservations()


@app.get("/reservations/me", response_model=List[ReservationRead])
@limiter.limit("30/minute")
def list_my_reservations(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    engine: ReservationPolicyEngine = Depends(get_policy_engine),
) -> List[Reservation]:
    return engine.list_my_reservations(principal.user_id)


@app.get("/reservations/usage/me", response_model=WeeklyUsageRead)
@limiter.limit("30/minute")
def my_weekly_usage(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    engine: ReservationPolicyEngine = Depends(get_policy_engine),
) -> WeeklyUsage:
    return engine.weekly_usage(principal.user_id)


@app.get("/reservations/{reservation_id}", response_model=ReservationRead)
@limiter.limit("60/minute")
def get_reservation(
    request: Request,
    reservation_id: int,
    principal: Principal = Depends(get_current_principal),
    engine: ReservationPolicyEngine = Depends(get_policy_engine),
) -> Reservation:
    return engine.get_reservation(reservation_id, principal)


@app.patch("/reservations/{reservation_id}", response_model=ReservationRead)
@limiter.limit(BOOKING_WRITE_LIMIT, key_func=booking_rate_key)
def update_reservation(
    request: Request,
    reservation_id: int,
    reservation_update: ReservationUpdate,
    principal: Principal = Depends(get_current_principal),
    engine: ReservationPolicyEngine = Depends(get_policy_engine),
) -> Reservation:
    return engine.update_reservation(reservation_id, reservation_update.model_dump(exclude_unset=True), principal)


@app.patch("/reservations/{reservation_id}/cancel", response_model=ReservationRead)
@limiter.limit(BOOKING_WRITE_LIMIT, key_func=booking_rate_key)
def cancel_reservation(
    request: Request,
    reservation_id: int,
    principal: Principal = Depends(get_current_principal),
    engine: ReservationPolicyEngine = Depends(get_policy_engine),
) -> Reservation:
    return engine.cancel_reservation(reservation_id, principal)
