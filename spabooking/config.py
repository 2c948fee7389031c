"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

CONFIRMATION_FUNCTION_PATH = "/functions/v1/send-booking-confirmation"


class BackendConfig(BaseModel):
    """Connection settings for the booking backend (REST + functions)."""
    base_url: str = ""
    api_key: str = ""
    timeout_seconds: float = 30.0

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        """Require an http(s) URL and strip the trailing slash."""
        if value and not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure the request timeout is positive."""
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value


class NotificationConfig(BaseModel):
    """Settings for booking confirmation messages."""
    enabled: bool = True
    endpoint: Optional[str] = None  # Defaults to the backend's confirmation function


class AppConfig(BaseModel):
    """Application configuration."""
    provider_slug: str = ""
    timezone: str = "America/New_York"
    backend: BackendConfig = Field(default_factory=BackendConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    mock_data_file: Optional[Path] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("provider_slug")
    @classmethod
    def validate_slug(cls, value: str) -> str:
        """Normalise the booking page slug."""
        return value.strip().lower()

    def notification_endpoint(self) -> str:
        """Get the URL the confirmation notice is posted to."""
        if self.notifications.endpoint:
            return self.notifications.endpoint
        return f"{self.backend.base_url}{CONFIRMATION_FUNCTION_PATH}"

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
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
