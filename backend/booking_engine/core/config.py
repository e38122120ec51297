# backend/booking_engine/core/config.py
from datetime import time, timedelta, tzinfo
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime configuration for the scheduling and pricing engine."""

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    store_backend: Literal["sqlalchemy", "memory"] = "sqlalchemy"
    database_url: str = Field(default="sqlite:///./booking_engine.db")

    # Tour dates and start times are local to the operator.
    operator_timezone: str = Field(default="America/Los_Angeles")

    resource_buffer_minutes: int = Field(default=30, ge=0)
    slot_granularity_minutes: int = Field(default=15, gt=0, le=15)

    concurrency_strategy: Literal["pessimistic", "optimistic"] = "pessimistic"
    optimistic_max_attempts: int = Field(default=3, ge=1)

    lock_backend: Literal["local", "redis"] = "local"
    redis_url: str = Field(default="redis://localhost:6379/0")
    lock_namespace: str = Field(default="booking-engine")
    lock_timeout_seconds: float = Field(default=5.0, gt=0)
    lock_ttl_seconds: int = Field(default=90, gt=0)
    lock_retry_interval_seconds: float = Field(default=0.05, gt=0)

    hold_expiration_minutes: int = Field(default=15, gt=0)

    rate_table_path: Optional[Path] = None

    # Known resources, used to suggest substitutes when a requested one is taken.
    driver_roster: List[str] = Field(default_factory=list)
    vehicle_roster: List[str] = Field(default_factory=list)
    # Seats per vehicle id; vehicles listed here join the roster.
    vehicle_capacities: Dict[str, int] = Field(default_factory=dict)

    # Local operating day searched for free slots.
    operating_day_start: time = Field(default=time(8, 0))
    operating_day_end: time = Field(default=time(22, 0))
    slot_search_step_minutes: int = Field(default=60, gt=0)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("operator_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("slot_granularity_minutes")
    @classmethod
    def _granularity_divides_quarter_hour(cls, value: int) -> int:
        if 15 % value != 0:
            raise ValueError("slot_granularity_minutes must divide 15 (quarter-hour durations)")
        return value

    @field_validator("vehicle_capacities")
    @classmethod
    def _positive_capacities(cls, value: Dict[str, int]) -> Dict[str, int]:
        for vehicle_id, capacity in value.items():
            if capacity < 1:
                raise ValueError(f"Vehicle {vehicle_id} must seat at least one guest")
        return value

    @model_validator(mode="after")
    def _operating_day_ordered(self) -> "Settings":
        if self.operating_day_end <= self.operating_day_start:
            raise ValueError("operating_day_end must be after operating_day_start")
        return self

    @model_validator(mode="after")
    def _buffer_aligned_to_slots(self) -> "Settings":
        # Slot claims are only exact when the buffer is a whole number of slots.
        if self.resource_buffer_minutes % self.slot_granularity_minutes != 0:
            raise ValueError(
                "resource_buffer_minutes must be a multiple of slot_granularity_minutes"
            )
        return self

    @property
    def operator_tz(self) -> tzinfo:
        return pytz.timezone(self.operator_timezone)

    @property
    def resource_buffer(self) -> timedelta:
        return timedelta(minutes=self.resource_buffer_minutes)

    @property
    def vehicle_ids(self) -> List[str]:
        """Roster vehicles followed by any vehicle only named in the capacity map."""
        return list(dict.fromkeys([*self.vehicle_roster, *self.vehicle_capacities]))


settings = Settings()
