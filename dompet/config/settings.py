"""
Configuration Management for Dompet

One pydantic-settings class per collaborator, each with its own env
prefix: GOOGLE_SHEETS_*, GEMINI_*, TELEGRAM_*, SCHEDULER_*, DISPATCH_*.
App-wide values (data directory, pending TTL) have no prefix.

DESIGN DECISION: Sub-settings are built on first access, so the bot can
run with Sheets or Gemini unconfigured. A malformed schedule is the one
setting that stops startup.
"""

import re
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class ConfigurationError(Exception):
    """
    Configuration is unusable (e.g. a malformed schedule).

    Raised at startup only. The scheduler refuses to start rather than
    run with an undefined cadence.
    """
    pass


def parse_clock(value: str) -> tuple[int, int]:
    """Parse an HH:MM string into (hour, minute)."""
    match = _CLOCK_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid clock time {value!r}, expected HH:MM")
    return int(match.group(1)), int(match.group(2))


class GoogleSheetsSettings(BaseSettings):
    """Spreadsheet holding the ledger and the audit trail."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account JSON key file"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet id from the sheet URL"
    )

    # Worksheet titles
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet holding the ledger"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet for audit events"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing file only warns; it may be mounted after the settings load."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account file {v} does not exist yet; "
                "Sheets storage will fail until it does."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini model used for the monthly insight text."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="API key from Google AI Studio"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Model id passed to GenerativeModel"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="max_output_tokens for one insight"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class TelegramSettings(BaseSettings):
    """Telegram bot configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TELEGRAM_",
        extra="ignore"
    )

    bot_token: str = Field(
        ...,
        description="Bot token from BotFather"
    )
    parse_mode: str = Field(
        default="Markdown",
        description="Parse mode used for outgoing notifications"
    )


class SchedulerSettings(BaseSettings):
    """
    Notification schedule configuration.

    Times are wall-clock times in `timezone`. The monthly job runs on a
    fixed day that exists in every month, so it is capped at 28.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        extra="ignore"
    )

    timezone: str = Field(
        default="Asia/Jakarta",
        description="IANA timezone for all schedules"
    )

    daily_enabled: bool = True
    daily_time: str = Field(
        default="21:00",
        description="Daily recap time (HH:MM)"
    )

    weekly_enabled: bool = True
    weekly_day: str = Field(
        default="sun",
        description="Weekday of the weekly recap (mon..sun)"
    )
    weekly_time: str = Field(
        default="18:00",
        description="Weekly recap time (HH:MM)"
    )

    monthly_enabled: bool = True
    monthly_day: int = Field(
        default=28,
        ge=1,
        le=28,
        description="Day of month for monthly insights"
    )
    monthly_time: str = Field(
        default="20:00",
        description="Monthly insights time (HH:MM)"
    )

    misfire_grace_seconds: int = Field(
        default=3600,
        ge=1,
        description="How late a missed firing may still run"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator('daily_time', 'weekly_time', 'monthly_time')
    @classmethod
    def validate_clock(cls, v: str) -> str:
        parse_clock(v)
        return v.strip()

    @field_validator('weekly_day')
    @classmethod
    def validate_weekday(cls, v: str) -> str:
        day = v.strip().lower()[:3]
        if day not in WEEKDAYS:
            raise ValueError(f"Invalid weekday: {v}")
        return day

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class DispatchSettings(BaseSettings):
    """Notification delivery policy."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        extra="ignore"
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Delivery attempts per recipient"
    )
    backoff_initial_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Wait after the first failed attempt; doubles each retry"
    )
    backoff_max_seconds: float = Field(
        default=4.0,
        ge=0.0,
        description="Upper bound for a single backoff wait"
    )
    inter_recipient_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Pause between recipients in one batch (rate limits)"
    )
    send_timeout_seconds: float = Field(
        default=15.0,
        gt=0.0,
        description="Abandon a single send attempt after this long"
    )


class AppSettings(BaseSettings):
    """Unprefixed app-wide values, also read from .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Deployment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Local key-value state (members, notification preferences)
    data_dir: str = Field(
        default="data",
        description="Directory for JSON state files"
    )

    # Confirmation workflow
    pending_ttl_minutes: int = Field(
        default=10,
        ge=1,
        le=24 * 60,
        description="How long an unconfirmed transaction is kept"
    )

    # Sanity limits for parsed transactions
    max_transaction_amount: float = Field(
        default=1_000_000_000.0,
        description="Largest amount accepted from chat input"
    )

    @property
    def members_path(self) -> Path:
        return Path(self.data_dir) / "users.json"

    @property
    def preferences_path(self) -> Path:
        return Path(self.data_dir) / "user-settings.json"


class Settings(BaseSettings):
    """Entry point to every settings section."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Built per access so a missing section only fails where it is used

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def telegram(self) -> TelegramSettings:
        return TelegramSettings()

    @property
    def scheduler(self) -> SchedulerSettings:
        return SchedulerSettings()

    @property
    def dispatch(self) -> DispatchSettings:
        return DispatchSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings; tests call get_settings.cache_clear() after changing env."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to build every settings section.

    Maps each section name to whether it loaded. A failed section also
    gets a `<name>_error` entry with the reason. Used for the startup log
    line in app.main.
    """
    results = {}
    settings = get_settings()
    for name in ("google_sheets", "gemini", "telegram", "scheduler", "dispatch", "app"):
        try:
            getattr(settings, name)
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
        else:
            results[name] = True
    return results
