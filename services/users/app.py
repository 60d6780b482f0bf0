from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from office_common import auth
from office_common.config import get_settings
from office_common.database import Base, engine, get_db
from office_common.dependencies import allow_roles, get_current_active_user, get_current_principal, get_policy_engine
from office_common.errors import ForbiddenError, register_error_handlers
from office_common.logging_middleware import add_audit_middleware
from office_common.models import RoleEnum, User, UserType
from office_common.policy import Principal, ReservationPolicyEngine, WeeklyUsage
from office_common.rate_limit import apply_rate_limiter, limiter
from office_common.schemas import (
    Token,
    UserCreate,
    UserRead,
    UserTypeAssignment,
    UserTypeCreate,
    UserTypeRead,
    WeeklyUsageRead,
)
from office_common.users import UserDirectory

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Users Service", version="0.3.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "users")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "users"}


@app.post("/users/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register_user(request: Request, user_in: UserCreate, db: Session = Depends(get_db)) -> User:
    if db.query(User).filter((User.username == user_in.username) | (User.email == user_in.email)).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username or email already exists")

    directory = UserDirectory(db)
    user_type_id = user_in.user_type_id
    if user_type_id is not None and directory.get_user_type(user_type_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User type not found")

    # Only the very first account may claim the admin role on its own.
    admins_exist = db.query(User).filter(User.role == RoleEnum.ADMIN).first() is not None
    role = user_in.role if not admins_exist else RoleEnum.USER

    user = User(
        name=user_in.name,
        username=user_in.username,
        email=user_in.email,
        role=role,
        user_type_id=user_type_id,
        hashed_password=auth.get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@app.post("/users/login", response_model=Token)
@limiter.limit("10/minute")
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> Token:
    user = auth.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password")
    return Token(access_token=auth.create_user_token(user))


@app.get("/users/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_active_user)) -> User:
    return current_user


@app.get("/users", response_model=list[UserRead])
@limiter.limit("20/minute")
def list_users(
    request: Request,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> list[User]:
    return UserDirectory(db).list_active()


@app.get("/users/{user_id}/usage", response_model=WeeklyUsageRead)
@limiter.limit("30/minute")
def user_weekly_usage(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    policy: ReservationPolicyEngine = Depends(get_policy_engine),
) -> WeeklyUsage:
    if not principal.is_admin and principal.user_id != user_id:
        raise ForbiddenError("You can only view your own usage")
    return policy.weekly_usage(user_id)


@app.put("/users/{user_id}/user-type", response_model=UserRead)
@limiter.limit("10/minute")
def assign_user_type(
    request: Request,
    user_id: int,
    assignment: UserTypeAssignment,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> User:
    directory = UserDirectory(db)
    user = directory.get(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if directory.get_user_type(assignment.user_type_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User type not found")
    user.user_type_id = assignment.user_type_id
    db.commit()
    db.refresh(user)
    return user


@app.get("/user-types", response_model=list[UserTypeRead])
@limiter.limit("30/minute")
def list_user_types(
    request: Request,
    _: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> list[UserType]:
    return UserDirectory(db).list_user_types()


@app.post("/user-types", response_model=UserTypeRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_user_type(
    request: Request,
    user_type_in: UserTypeCreate,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> UserType:
    if UserDirectory(db).get_user_type_by_name(user_type_in.name):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User type already exists")
    user_type = UserType(**user_type_in.model_dump())
    db.add(user_type)
    db.commit()
    db.refresh(user_type)
    return user_type
