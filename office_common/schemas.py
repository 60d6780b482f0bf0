"""Pydantic schemas shared across the services."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .models import ReservationStatus, RoleEnum


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserTypeBase(BaseModel):
    name: str = Field(..., max_length=50)
    weekly_hours_limit: int = Field(..., ge=0)
    description: Optional[str] = None


class UserTypeCreate(UserTypeBase):
    pass


class UserTypeRead(UserTypeBase):
    id: int

    model_config = {"from_attributes": True}


class UserBase(BaseModel):
    name: str = Field(..., max_length=100)
    username: str = Field(..., max_length=50)
    email: EmailStr
    role: RoleEnum = RoleEnum.USER


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    user_type_id: Optional[int] = None


class UserRead(UserBase):
    id: int
    user_type_id: Optional[int] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserTypeAssignment(BaseModel):
    user_type_id: int


class RoomBase(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    capacity: int = Field(..., gt=0)
    equipment: List[str] = Field(default_factory=list)
    hourly_rate: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = True

    @field_validator("equipment")
    @classmethod
    def dedupe_equipment(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, gt=0)
    equipment: Optional[List[str]] = None
    hourly_rate: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("equipment")
    @classmethod
    def dedupe_equipment(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return list(dict.fromkeys(value)) if value is not None else None


class RoomRead(RoomBase):
    id: int

    model_config = {"from_attributes": True}


class ReservationCreate(BaseModel):
    room_id: int
    start_time: datetime
    # Validated by the policy engine so callers get a typed rejection.
    duration: int = 1
    purpose: Optional[str] = Field(None, max_length=1000)


class ReservationUpdate(BaseModel):
    room_id: Optional[int] = None
    start_time: Optional[datetime] = None
    purpose: Optional[str] = Field(None, max_length=1000)
    status: Optional[ReservationStatus] = None


class ReservationRead(BaseModel):
    id: int
    user_id: int
    room_id: int
    start_time: datetime
    end_time: datetime
    status: ReservationStatus
    purpose: Optional[str] = None
    total_hours: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WeeklyUsageRead(BaseModel):
    limit: Optional[int]
    used: Decimal
    remaining: Optional[Decimal]
    unlimited: bool
    week_start: datetime
    week_end: datetime

    model_config = {"from_attributes": True}


class TimezoneRead(BaseModel):
    timezone: str


class TimezoneUpdate(BaseModel):
    timezone: str = Field(..., min_length=1)


class SystemConfigSet(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., min_length=1)
    description: Optional[str] = None


class SystemConfigRead(BaseModel):
    config_key: str
    config_value: str
    description: Optional[str] = None
    updated_at: datetime

    model_config = {"from_attributes": True}


class LoginRequest(BaseModel):
    username: str
    password: str
