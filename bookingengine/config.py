"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import OperatingHours, Resource, ResourceStatus


def _validate_hour(value: int) -> int:
    if not 0 <= value <= 23:
        raise ValueError(f"Hour must be between 0 and 23, got {value}")
    return value


def _validate_minute(value: int) -> int:
    if not 0 <= value <= 59:
        raise ValueError(f"Minute must be between 0 and 59, got {value}")
    return value


class EngineConfig(BaseModel):
    """Limits that keep every computation bounded."""
    recurrence_horizon_days: int = 365
    max_expansion: int = 500
    max_range_days: int = 92

    @field_validator("recurrence_horizon_days", "max_expansion", "max_range_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("engine limits must be greater than zero")
        return value


class ResourceDefaults(BaseModel):
    """Rules applied to resources that do not override them."""
    open_hour: int = 8
    open_minute: int = 0
    close_hour: int = 18
    close_minute: int = 0
    slot_granularity_minutes: int = 60
    min_advance_minutes: int = 30
    max_duration_minutes: int = 480

    @field_validator("open_hour", "close_hour")
    @classmethod
    def validate_hour(cls, value: int) -> int:
        """Validate hour is between 0 and 23."""
        return _validate_hour(value)

    @field_validator("open_minute", "close_minute")
    @classmethod
    def validate_minute(cls, value: int) -> int:
        return _validate_minute(value)

    @field_validator("slot_granularity_minutes", "max_duration_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("min_advance_minutes")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("min_advance_minutes cannot be negative")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "ResourceDefaults":
        """Ensure the default window opens before it closes."""
        if (self.close_hour, self.close_minute) <= (self.open_hour, self.open_minute):
            raise ValueError("close time must be later than open time")
        return self


class ResourceConfig(BaseModel):
    """A bookable space declared in the config file."""
    id: str
    name: str = ""
    capacity: int
    requires_approval: bool = False
    status: ResourceStatus = ResourceStatus.AVAILABLE
    closed_weekdays: List[int] = Field(default_factory=list)  # 0=Sunday
    open_hour: Optional[int] = None
    open_minute: Optional[int] = None
    close_hour: Optional[int] = None
    close_minute: Optional[int] = None
    slot_granularity_minutes: Optional[int] = None
    min_advance_minutes: Optional[int] = None
    max_duration_minutes: Optional[int] = None

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("capacity must be greater than zero")
        return value

    @field_validator("closed_weekdays")
    @classmethod
    def validate_closed_weekdays(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"closed_weekdays must be between 0 and 6, got {invalid_days}")
        return sorted(set(value))

    def to_resource(self, defaults: ResourceDefaults, timezone: str) -> Resource:
        """Resolve unset fields from the defaults and build the domain resource."""

        def pick(name: str):
            value = getattr(self, name)
            return getattr(defaults, name) if value is None else value

        hours = OperatingHours(
            open=time(_validate_hour(pick("open_hour")), _validate_minute(pick("open_minute"))),
            close=time(_validate_hour(pick("close_hour")), _validate_minute(pick("close_minute"))),
            closed_weekdays=frozenset(self.closed_weekdays),
            timezone=timezone,
        )
        return Resource(
            id=self.id,
            name=self.name,
            capacity=self.capacity,
            operating_hours=hours,
            slot_granularity_minutes=pick("slot_granularity_minutes"),
            min_advance_minutes=pick("min_advance_minutes"),
            max_duration_minutes=pick("max_duration_minutes"),
            requires_approval=self.requires_approval,
            status=self.status,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    log_level: str = "WARNING"
    engine: EngineConfig = Field(default_factory=EngineConfig)
    defaults: ResourceDefaults = Field(default_factory=ResourceDefaults)
    resources: List[ResourceConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("resources")
    @classmethod
    def validate_resources(cls, value: List[ResourceConfig]) -> List[ResourceConfig]:
        """Ensure resource ids are unique."""
        seen: set[str] = set()
        for resource in value:
            if resource.id in seen:
                raise ValueError(f"Duplicate resource id detected: {resource.id}")
            seen.add(resource.id)
        return value

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
            ValueError: If config is invalid
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
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def build_resources(self) -> List[Resource]:
        """Domain resources for every configured space."""
        return [resource.to_resource(self.defaults, self.timezone) for resource in self.resources]

    def find_resource(self, identifier: str) -> ResourceConfig | None:
        """Find a resource by id or, case-insensitively, by name."""
        for resource in self.resources:
            if resource.id == identifier or resource.name.lower() == identifier.lower():
                return resource
        return None


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
