"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import PRIORITIES, SchedulingPolicy
from .domain.time_arithmetic import is_valid_time, to_minutes


class BusinessHoursConfig(BaseModel):
    """Opening and (soft) closing time of the working day."""
    opening: str = "09:00"
    closing: str = "18:00"

    @field_validator("opening", "closing")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate the value is an HH:MM time."""
        if not is_valid_time(v):
            raise ValueError(f"Expected an HH:MM time, got {v!r}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure the day opens before it closes."""
        if to_minutes(self.closing) <= to_minutes(self.opening):
            raise ValueError("closing must be later than opening")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    site_url: str
    api_key: str = ""
    api_secret: Optional[str] = None
    timezone: str = "Asia/Dubai"
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    min_gap_minutes: int = 15
    slot_step_minutes: int = 15
    derive_free_slots: bool = False
    request_timeout_seconds: float = 10.0
    step_timeout_seconds: Optional[float] = None
    default_priority: str = "Medium"
    default_work_title: str = "Site Inspection"
    assigned_by: Optional[str] = None

    @field_validator("site_url")
    @classmethod
    def validate_site_url(cls, value: str) -> str:
        """Require an absolute http(s) URL without a trailing slash."""
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"site_url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")

    @field_validator("min_gap_minutes", "slot_step_minutes")
    @classmethod
    def validate_positive_minutes(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("minute settings must be greater than zero")
        return value

    @field_validator("request_timeout_seconds", "step_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("timeouts must be greater than zero")
        return value

    @field_validator("default_priority")
    @classmethod
    def validate_priority(cls, value: str) -> str:
        if value not in PRIORITIES:
            raise ValueError(f"default_priority must be one of {', '.join(PRIORITIES)}")
        return value

    def scheduling_policy(self) -> SchedulingPolicy:
        """Build the domain policy from the configured business hours."""
        return SchedulingPolicy(
            opening=self.business_hours.opening,
            closing=self.business_hours.closing,
            min_gap_minutes=self.min_gap_minutes,
            slot_step_minutes=self.slot_step_minutes,
        )

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
