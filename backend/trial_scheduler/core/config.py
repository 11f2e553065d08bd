# trial_scheduler/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "Trial Lifecycle Scheduler"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./trial_scheduler.db"

    # Links rendered into notification emails
    FRONTEND_URL: str = "http://localhost:3000"

    # Scheduler
    TRIAL_SCHEDULER_ENABLED: bool = True
    TRIAL_REMINDERS_ENABLED: bool = True
    SCHEDULER_INTERVAL_SECONDS: int = 60
    SCHEDULER_TIMEZONE: str = "UTC"

    # Trial windows (minutes relative to the scheduled start)
    ACCESS_WINDOW_MINUTES: int = 30
    NOTIFY_WINDOW_MINUTES: int = 30
    GRACE_WINDOW_MINUTES: int = 60

    # Countdown reminders
    REMINDER_DAYS: str = "4,3,2,1"
    REMINDER_CHECK_HOUR: int = 9

    # Email delivery
    EMAIL_PROVIDER: str = "dev"  # dev | resend
    EMAIL_FROM: str = ""
    RESEND_API_KEY: str = ""
    EMAIL_MAX_RETRIES: int = 3
    EMAIL_RETRY_DELAY_SECONDS: float = 2.0
    EMAIL_TIMEOUT_SECONDS: float = 20.0

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator(
        "ACCESS_WINDOW_MINUTES",
        "NOTIFY_WINDOW_MINUTES",
        "GRACE_WINDOW_MINUTES",
        mode="after",
    )
    @classmethod
    def non_negative_window(cls, v: int) -> int:
        if v < 0:
            raise ValueError("window minutes must be >= 0")
        return v

    @field_validator("SCHEDULER_INTERVAL_SECONDS", "EMAIL_MAX_RETRIES", mode="after")
    @classmethod
    def positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("REMINDER_CHECK_HOUR", mode="after")
    @classmethod
    def valid_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("REMINDER_CHECK_HOUR must be between 0 and 23")
        return v

    @field_validator("REMINDER_DAYS", mode="after")
    @classmethod
    def valid_reminder_days(cls, v: str) -> str:
        _parse_reminder_days(v)
        return v

    @field_validator("EMAIL_PROVIDER", mode="before")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def reminder_days_list(self) -> List[int]:
        """Reminder day-offsets, farthest to nearest (e.g. [4, 3, 2, 1])"""
        return _parse_reminder_days(self.REMINDER_DAYS)


# Reminder offsets map onto the reminder_{n}_day(s) latch columns
SUPPORTED_REMINDER_DAYS = (1, 2, 3, 4)


def _parse_reminder_days(raw: str) -> List[int]:
    items = [part.strip() for part in (raw or "").split(",") if part.strip()]
    if not items:
        raise ValueError("REMINDER_DAYS must list at least one offset")

    out: List[int] = []
    for item in items:
        try:
            day = int(item)
        except ValueError:
            raise ValueError(f"Invalid reminder offset: {item!r}")
        if day not in SUPPORTED_REMINDER_DAYS:
            raise ValueError(f"Unsupported reminder offset {day}; allowed: {SUPPORTED_REMINDER_DAYS}")
        if day not in out:
            out.append(day)

    return sorted(out, reverse=True)


# Create settings instance
settings = Settings()
