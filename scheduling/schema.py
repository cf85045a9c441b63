"""Pydantic models for the booking domain and the HTTP request/response bodies."""

from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from scheduling.intervals import TimeInterval

# 00:00-23:59, plus 24:00 which only works as an end time.
TIME_PATTERN = r"^(?:(?:[01]\d|2[0-3]):[0-5]\d(?::[0-5]\d)?|24:00(?::00)?)$"

Locale = Literal["en", "es"]


def parse_time(s: str) -> tuple[int, int]:
    """Parse HH:MM (or HH:MM:SS) to (hour, minute)."""
    parts = s.split(":")
    return int(parts[0]), int(parts[1])


def _minutes_of_day(s: str) -> int:
    h, m = parse_time(s)
    return h * 60 + m


# --- Availability ---


class AvailabilityRule(BaseModel):
    """
    Recurring weekly or one-off availability window for a doctor.
    day_of_week uses 1=Monday .. 7=Sunday. Blocked rules remove time instead of granting it.
    """

    id: Optional[str] = None
    doctor_id: Optional[str] = None
    is_recurring: bool
    day_of_week: Optional[int] = Field(default=None, ge=1, le=7)
    specific_date: Optional[date] = None
    start_time: str = Field(..., pattern=TIME_PATTERN, description="Start time HH:MM")
    end_time: str = Field(..., pattern=TIME_PATTERN, description="End time HH:MM")
    is_blocked: bool = False
    block_reason: Optional[str] = None

    @model_validator(mode="after")
    def check_rule(self) -> "AvailabilityRule":
        if self.is_recurring and self.day_of_week is None:
            raise ValueError("recurring rules require day_of_week")
        if not self.is_recurring and self.specific_date is None:
            raise ValueError("date-specific rules require specific_date")
        if _minutes_of_day(self.start_time) >= _minutes_of_day(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def kind(self) -> str:
        return "recurring" if self.is_recurring else "specific_date"

    def applies_to(self, day: date) -> bool:
        if self.is_recurring:
            return self.day_of_week == day.isoweekday()
        return self.specific_date == day


class AppointmentType(BaseModel):
    """Bookable service with a fixed duration."""

    id: str
    name: str = ""
    display_name: str
    display_name_es: Optional[str] = None
    duration_minutes: int = Field(..., ge=5, le=240)
    is_active: bool = True

    def label(self, locale: Locale = "en") -> str:
        if locale == "es" and self.display_name_es:
            return self.display_name_es
        return self.display_name


# --- Appointments ---


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class CancelledBy(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


class PatientContact(BaseModel):
    name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str = Field(..., pattern=r"^\+?1?\d{10,14}$")
    locale: Locale = "en"
    reason_for_visit: Optional[str] = None


class Appointment(BaseModel):
    """Persisted booking. start_time/end_time serialize as ISO-8601 instants."""

    id: str
    doctor_id: str
    appointment_type_id: str
    start_time: datetime
    end_time: datetime
    timezone: str = "America/New_York"
    status: AppointmentStatus = AppointmentStatus.PENDING
    patient: PatientContact
    booking_token: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[CancelledBy] = None
    cancellation_reason: Optional[str] = None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start_time, end=self.end_time)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


# --- Slots ---


class Slot(BaseModel):
    """Candidate slot of one appointment type's duration."""

    start: datetime
    end: datetime
    available: bool = True

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start, end=self.end)


# --- Request / Response ---


class BookingRequest(BaseModel):
    """Request body for POST /appointments."""

    doctor_id: str
    appointment_type_id: str
    start_time: datetime = Field(..., description="ISO 8601 start datetime")
    timezone: str = Field(default="America/New_York", description="IANA timezone of the patient")
    patient: PatientContact

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone {v!r}")
        return v


class CancelRequest(BaseModel):
    """Request body for POST /appointments/{id}/cancel."""

    reason: Optional[str] = None
    token: Optional[str] = Field(
        default=None,
        description="Booking token; when present the patient is cancelling",
    )


class RescheduleRequest(BaseModel):
    """Request body for POST /appointments/{id}/reschedule."""

    new_start_time: datetime
    new_end_time: Optional[datetime] = Field(
        default=None,
        description="Defaults to the new start plus the current duration",
    )


class OpenIntervalsResponse(BaseModel):
    doctor_id: str
    date: date
    intervals: list[TimeInterval]


class SlotsResponse(BaseModel):
    doctor_id: str
    date: date
    duration_minutes: int
    slots: list[Slot]
