"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from datetime import date as Date, time
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pendulum
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .domain.exceptions import ConfigError
from .domain.models import DEFAULT_TIMEZONE, SLOT_INTERVAL_MINUTES, BusinessHours

logger = logging.getLogger(__name__)

WEEKDAY_KEYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

SCHEDULE_CONFIG_KEY = "schedule.weekly"

FALLBACK_OPEN_TIME = time(9, 0)
FALLBACK_CLOSE_TIME = time(19, 0)


class DayHours(BaseModel):
    """
    One weekday entry of the business-hours document.

    Mirrors the stored shape ``{"enabled": true, "startTime": "09:00",
    "endTime": "19:00"}``.
    """
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = True
    start_time: Optional[time] = Field(default=None, alias="startTime")
    end_time: Optional[time] = Field(default=None, alias="endTime")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_time_text(cls, value: Any) -> Any:
        """Accept only "HH:MM" strings (YAML turns unquoted 10:00 into an int)."""
        if value is None or isinstance(value, time):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Times must be quoted 'HH:MM' strings, got {value!r}")
        return value.strip()

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_alignment(cls, value: Optional[time]) -> Optional[time]:
        """Opening and closing must sit on the slot grid."""
        if value is not None and (value.minute % SLOT_INTERVAL_MINUTES or value.second):
            raise ValueError(
                f"Business hours must be aligned to {SLOT_INTERVAL_MINUTES}-minute "
                f"intervals, got {value:%H:%M}"
            )
        return value

    @model_validator(mode="after")
    def validate_window(self) -> "DayHours":
        """An open day needs both times and must close after it opens."""
        if not self.enabled:
            return self
        if self.start_time is None or self.end_time is None:
            raise ValueError("Enabled days need both startTime and endTime")
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be later than startTime")
        return self

    def to_business_hours(self) -> BusinessHours:
        if not self.enabled:
            return BusinessHours.closed()
        return BusinessHours(enabled=True, open_time=self.start_time, close_time=self.end_time)


def fallback_business_hours() -> BusinessHours:
    """The documented default window used when configuration is unusable."""
    return BusinessHours(enabled=True, open_time=FALLBACK_OPEN_TIME, close_time=FALLBACK_CLOSE_TIME)


def weekday_key(day: Date) -> str:
    """Return the lowercase English weekday name used as document key."""
    return WEEKDAY_KEYS[day.weekday()]


def parse_schedule_document(document: Any) -> Optional[Dict[str, Any]]:
    """
    Turn a stored weekly schedule into a mapping.

    Accepts an already-decoded mapping or JSON/YAML text. Returns None when
    the document is missing or cannot be decoded.
    """
    if document is None:
        return None

    if isinstance(document, (str, bytes)):
        try:
            document = yaml.safe_load(document)
        except yaml.YAMLError as exc:
            logger.warning("Could not parse weekly schedule document: %s", exc)
            return None

    if not isinstance(document, Mapping):
        logger.warning("Weekly schedule must be a mapping, got %s", type(document).__name__)
        return None

    return {str(key).lower(): value for key, value in document.items()}


def resolve_business_hours(
    document: Any,
    day: Date,
    fallback: Optional[BusinessHours] = None,
) -> BusinessHours:
    """
    Resolve the business hours for ``day`` from a weekly schedule document.

    Never raises: a missing document, a missing day or an invalid day entry
    all yield the fallback window, so the public availability read keeps
    working with a misconfigured schedule.
    """
    fallback = fallback or fallback_business_hours()
    key = weekday_key(day)

    schedule = parse_schedule_document(document)
    if schedule is None:
        logger.warning("No usable weekly schedule, using fallback hours %s", fallback)
        return fallback

    day_entry = schedule.get(key)
    if day_entry is None:
        logger.warning("No config found for day '%s', using fallback hours %s", key, fallback)
        return fallback

    try:
        hours = DayHours.model_validate(day_entry).to_business_hours()
    except ValidationError as exc:
        logger.error("Invalid schedule entry for '%s', using fallback hours: %s", key, exc)
        return fallback

    logger.debug("Business hours for %s: %s", key, hours)
    return hours


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = DEFAULT_TIMEZONE
    slot_interval_minutes: int = SLOT_INTERVAL_MINUTES
    fallback_hours: DayHours = Field(
        default_factory=lambda: DayHours(start_time=FALLBACK_OPEN_TIME, end_time=FALLBACK_CLOSE_TIME)
    )
    # Kept undecoded so a broken day degrades to the fallback at read time.
    schedule: Optional[Dict[str, Any]] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("slot_interval_minutes")
    @classmethod
    def validate_slot_interval(cls, value: int) -> int:
        """The booking grid is fixed; refuse configs that pretend otherwise."""
        if value != SLOT_INTERVAL_MINUTES:
            raise ValueError(f"slot_interval_minutes must be {SLOT_INTERVAL_MINUTES}, got {value}")
        return value

    @field_validator("fallback_hours")
    @classmethod
    def validate_fallback_hours(cls, value: DayHours) -> DayHours:
        if not value.enabled:
            raise ValueError("fallback_hours must describe an open day")
        return value

    def fallback_business_hours(self) -> BusinessHours:
        return self.fallback_hours.to_business_hours()

    def business_hours_for(self, day: Date) -> BusinessHours:
        return resolve_business_hours(self.schedule, day, self.fallback_business_hours())

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping at the root level.")

        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
