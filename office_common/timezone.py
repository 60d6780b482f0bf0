"""System timezone lookup and wall-clock conversion helpers.

Every timestamp the booking core compares is a naive wall-clock time in the
configured system timezone. Aware datetimes coming from clients are converted
into that zone before the tzinfo is dropped.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from .config import get_settings
from .errors import InvalidTimezoneError
from .models import SystemConfig

logger = logging.getLogger(__name__)

TIMEZONE_KEY = "system_timezone"
TIMEZONE_DESCRIPTION = "Timezone configuration for the office manager system"


class TimezoneProvider(Protocol):
    def get_system_timezone(self) -> str: ...

    def now_in_system_timezone(self) -> datetime: ...


def validate_timezone(name: str) -> ZoneInfo:
    if not name:
        raise InvalidTimezoneError("Timezone is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(f"Invalid timezone: {name}", timezone=name) from exc


def to_system_time(moment: datetime, tz_name: str) -> datetime:
    """Express ``moment`` as naive wall-clock time in ``tz_name``."""

    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


class StaticTimezoneProvider:
    """Fixed timezone, optionally with a frozen clock."""

    def __init__(self, timezone: str, now: Optional[datetime] = None) -> None:
        validate_timezone(timezone)
        self.timezone = timezone
        self._now = now

    def get_system_timezone(self) -> str:
        return self.timezone

    def now_in_system_timezone(self) -> datetime:
        if self._now is not None:
            return to_system_time(self._now, self.timezone)
        return datetime.now(ZoneInfo(self.timezone)).replace(tzinfo=None)


class SystemConfigTimezoneProvider:
    """Timezone provider backed by the ``system_config`` key-value table."""

    def __init__(self, db: Session, default_timezone: Optional[str] = None) -> None:
        self.db = db
        self.default_timezone = default_timezone or get_settings().default_timezone

    def get_config(self, key: str) -> Optional[str]:
        config = self.db.query(SystemConfig).filter(SystemConfig.config_key == key).first()
        return config.config_value if config else None

    def set_config(self, key: str, value: str, description: Optional[str] = None) -> SystemConfig:
        config = self.db.query(SystemConfig).filter(SystemConfig.config_key == key).first()
        if config:
            config.config_value = value
            if description:
                config.description = description
        else:
            config = SystemConfig(config_key=key, config_value=value, description=description or "")
            self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        return config

    def list_configs(self) -> List[SystemConfig]:
        return self.db.query(SystemConfig).order_by(SystemConfig.config_key.asc()).all()

    def get_system_timezone(self) -> str:
        return self.get_config(TIMEZONE_KEY) or self.default_timezone

    def set_system_timezone(self, timezone: str) -> SystemConfig:
        validate_timezone(timezone)
        logger.info("system timezone set to %s", timezone)
        return self.set_config(TIMEZONE_KEY, timezone, TIMEZONE_DESCRIPTION)

    def now_in_system_timezone(self) -> datetime:
        return datetime.now(ZoneInfo(self.get_system_timezone())).replace(tzinfo=None)
