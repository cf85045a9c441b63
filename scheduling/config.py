"""Scheduling policy and service settings, read from the environment."""

import os

from pydantic import BaseModel, Field

from scheduling.schema import TIME_PATTERN


class SchedulingPolicy(BaseModel):
    """Booking policy applied to every doctor of the practice."""

    buffer_minutes: int = Field(default=15, ge=0, le=120)
    minimum_notice_hours: int = Field(default=24, ge=0)
    advance_booking_days: int = Field(default=90, ge=1)
    default_duration_minutes: int = Field(default=60, ge=5, le=240)
    timezone: str = Field(default="America/New_York", description="IANA timezone of rule windows")
    grid_start: str = Field(default="07:00", pattern=TIME_PATTERN)
    grid_end: str = Field(default="21:00", pattern=TIME_PATTERN)

    @classmethod
    def from_env(cls) -> "SchedulingPolicy":
        env = os.environ
        return cls(
            buffer_minutes=int(env.get("SCHEDULING_BUFFER_MINUTES", "15")),
            minimum_notice_hours=int(env.get("SCHEDULING_MIN_NOTICE_HOURS", "24")),
            advance_booking_days=int(env.get("SCHEDULING_ADVANCE_BOOKING_DAYS", "90")),
            default_duration_minutes=int(
                env.get("SCHEDULING_DEFAULT_DURATION_MINUTES", "60")
            ),
            timezone=env.get("SCHEDULING_TIMEZONE", "America/New_York"),
            grid_start=env.get("SCHEDULING_GRID_START", "07:00"),
            grid_end=env.get("SCHEDULING_GRID_END", "21:00"),
        )


class EmailSettings(BaseModel):
    """Settings for the Resend e-mail notifier."""

    api_key: str = ""
    base_url: str = "https://api.resend.com"
    from_email: str = "appointments@example.com"
    from_name: str = "Appointments"
    site_url: str = "http://localhost:8000"

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "EmailSettings":
        env = os.environ
        return cls(
            api_key=env.get("RESEND_API_KEY", ""),
            base_url=env.get("RESEND_BASE_URL", "https://api.resend.com").rstrip("/"),
            from_email=env.get("RESEND_FROM_EMAIL", "appointments@example.com"),
            from_name=env.get("RESEND_FROM_NAME", "Appointments"),
            site_url=env.get("SITE_URL", "http://localhost:8000").rstrip("/"),
        )


def log_level() -> str:
    return os.environ.get("SCHEDULING_LOG_LEVEL", "INFO").upper()
