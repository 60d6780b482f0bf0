from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from office_common.config import get_settings
from office_common.database import Base, engine, get_db
from office_common.dependencies import allow_roles, get_current_active_user
from office_common.errors import register_error_handlers
from office_common.logging_middleware import add_audit_middleware
from office_common.models import RoleEnum, SystemConfig, User
from office_common.rate_limit import apply_rate_limiter, limiter
from office_common.schemas import SystemConfigRead, SystemConfigSet, TimezoneRead, TimezoneUpdate
from office_common.timezone import TIMEZONE_KEY, SystemConfigTimezoneProvider

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="System Config Service", version="0.3.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "system_config")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "system_config"}


@app.get("/system-config", response_model=List[SystemConfigRead])
@limiter.limit("30/minute")
def list_configs(
    request: Request,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> List[SystemConfig]:
    return SystemConfigTimezoneProvider(db).list_configs()


@app.get("/system-config/timezone", response_model=TimezoneRead)
@limiter.limit("60/minute")
def get_timezone(
    request: Request,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> TimezoneRead:
    return TimezoneRead(timezone=SystemConfigTimezoneProvider(db).get_system_timezone())


@app.post("/system-config/timezone", response_model=SystemConfigRead)
@limiter.limit("10/minute")
def update_timezone(
    request: Request,
    timezone_in: TimezoneUpdate,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> SystemConfig:
    return SystemConfigTimezoneProvider(db).set_system_timezone(timezone_in.timezone)


@app.post("/system-config/config", response_model=SystemConfigRead)
@limiter.limit("10/minute")
def set_config(
    request: Request,
    config_in: SystemConfigSet,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> SystemConfig:
    provider = SystemConfigTimezoneProvider(db)
    if config_in.key == TIMEZONE_KEY:
        return provider.set_system_timezone(config_in.value)
    return provider.set_config(config_in.key, config_in.value, config_in.description)
