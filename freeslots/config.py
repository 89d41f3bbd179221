"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from pathlib import Path
from typing import List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.clock import TimeZoneClock
from .domain.exceptions import InvalidWorkingHoursError, InvalidZoneError
from .domain.models import WorkingHours

TIMEZONE_ENV_VAR = "FREESLOTS_TIMEZONE"


class WorkingHoursConfig(BaseModel):
    """Default working window used when a request does not supply one."""
    start: str = "09:00"
    end: str = "18:00"

    @model_validator(mode="after")
    def validate_window(self) -> "WorkingHoursConfig":
        """Ensure both ends parse and the window opens before it closes."""
        try:
            self.to_domain()
        except InvalidWorkingHoursError as exc:
            raise ValueError(str(exc)) from exc
        return self

    def to_domain(self) -> WorkingHours:
        return WorkingHours(start=self.start, end=self.end)


class AppConfig(BaseModel):
    """Application configuration."""
    client_id: str = ""
    tenant_id: str = "common"
    timezone: str = "Asia/Tokyo"
    working_hours: WorkingHoursConfig = Field(default_factory=WorkingHoursConfig)
    min_duration_minutes: int = 30
    fetch_timeout_seconds: float = 8.0
    calendars: List[str] = Field(default_factory=list)
    exclude_days: List[int] = Field(default_factory=list)
    token_cache_file: Optional[Path] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject identifiers missing from the tz database."""
        try:
            TimeZoneClock().validate_zone(value)
        except InvalidZoneError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @field_validator("min_duration_minutes")
    @classmethod
    def validate_min_duration(cls, value: int) -> int:
        """Ensure the minimum slot length is positive."""
        if value <= 0:
            raise ValueError("min_duration_minutes must be greater than zero")
        return value

    @field_validator("fetch_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("fetch_timeout_seconds must be greater than zero")
        return value

    @field_validator("exclude_days")
    @classmethod
    def validate_exclude_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"exclude_days must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Return a copy with values taken from environment variables."""
        environ = os.environ if environ is None else environ
        timezone = environ.get(TIMEZONE_ENV_VAR)
        if not timezone:
            return self
        return self.model_validate({**self.model_dump(), "timezone": timezone})

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


def load_config(config_path: Path | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
    """
    Load configuration, falling back to built-in defaults.

    An explicitly given path must exist; when no path is given and no
    config.yaml can be found, the defaults are used.
    """
    if config_path is not None:
        config = AppConfig.load_from_yaml(config_path)
    else:
        default_path = get_default_config_path()
        config = AppConfig.load_from_yaml(default_path) if default_path.exists() else AppConfig()

    return config.with_env_overrides(environ)
