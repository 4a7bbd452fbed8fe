"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import AvailabilityRule, CalendarAccount, LocalTime
from .domain.timezone_clock import PendulumTimeZoneDatabase


class BookingDefaults(BaseModel):
    """Default booking policy."""
    slot_duration_minutes: int = 30
    min_notice_hours: float = 0
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    lookahead_days: int = 7
    fetch_timeout_seconds: float = 10.0
    fail_closed: bool = False
    validator_applies_buffers: bool = False

    @field_validator("slot_duration_minutes", "lookahead_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations and horizons are positive."""
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("min_notice_hours", "buffer_before_minutes", "buffer_after_minutes")
    @classmethod
    def validate_not_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    @field_validator("fetch_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("fetch_timeout_seconds must be greater than zero")
        return value


class RuleConfig(BaseModel):
    """One weekly availability window (0=Sunday ... 6=Saturday)."""
    weekday: int
    start_time: str
    end_time: str
    active: bool = True
    name: str = "Default"

    @field_validator("weekday")
    @classmethod
    def validate_weekday(cls, value: int) -> int:
        if value not in range(7):
            raise ValueError(f"weekday must be between 0 and 6, got {value}")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Normalise to zero-padded HH:MM."""
        return str(LocalTime.parse(value))

    @model_validator(mode="after")
    def validate_order(self) -> "RuleConfig":
        """Ensure the window opens before it closes."""
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be later than start_time")
        return self

    def to_rule(self, owner_id: str) -> AvailabilityRule:
        return AvailabilityRule.from_strings(
            self.weekday,
            self.start_time,
            self.end_time,
            active=self.active,
            owner_id=owner_id,
            name=self.name,
        )


class CalendarAccountConfig(BaseModel):
    """Connected calendar account."""
    id: str
    provider: Literal["google", "outlook"] = "google"
    calendar_id: str = "primary"
    account_email: str = ""
    access_token: str = ""
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    include_in_availability: bool = True

    def to_account(self) -> CalendarAccount:
        return CalendarAccount(**self.model_dump())


class GoogleOAuthConfig(BaseModel):
    client_id: str
    client_secret: str


class MicrosoftOAuthConfig(BaseModel):
    client_id: str
    tenant_id: str
    client_secret: str

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class AppConfig(BaseModel):
    """Application configuration."""
    owner_id: str = "default"
    timezone: str = "Europe/Berlin"
    defaults: BookingDefaults = Field(default_factory=BookingDefaults)
    rules: List[RuleConfig] = Field(default_factory=list)
    calendar_accounts: List[CalendarAccountConfig] = Field(default_factory=list)
    google: Optional[GoogleOAuthConfig] = None
    microsoft: Optional[MicrosoftOAuthConfig] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject names the timezone database does not know."""
        PendulumTimeZoneDatabase().get(value)
        return value

    @field_validator("calendar_accounts")
    @classmethod
    def validate_accounts(cls, value: List[CalendarAccountConfig]) -> List[CalendarAccountConfig]:
        """Ensure account ids are unique."""
        seen: set[str] = set()
        for account in value:
            if account.id in seen:
                raise ValueError(f"Duplicate calendar account id detected: {account.id}")
            seen.add(account.id)
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

    def availability_rules(self) -> List[AvailabilityRule]:
        return [rule.to_rule(self.owner_id) for rule in self.rules]

    def accounts(self) -> List[CalendarAccount]:
        return [account.to_account() for account in self.calendar_accounts]


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
