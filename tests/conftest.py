"""Pytest configuration and fixtures."""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from scheduling.booking import BookingService
from scheduling.config import SchedulingPolicy
from scheduling.notifier import Notifier
from scheduling.schema import (
    AppointmentType,
    AvailabilityRule,
    BookingRequest,
    PatientContact,
)
from scheduling.store import InMemoryStore

DOCTOR = "dr-rivera"

# Monday noon UTC; WEDNESDAY is two days later and well inside the booking window.
NOW = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)
WEDNESDAY = date(2025, 3, 5)


def at(hour: int, minute: int = 0, day: date = WEDNESDAY) -> datetime:
    """UTC instant on `day`."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> SchedulingPolicy:
    """Production defaults with rule windows interpreted in UTC."""
    return SchedulingPolicy(timezone="UTC")


@pytest.fixture
def store(policy) -> InMemoryStore:
    """Wednesday 10:00-18:00 open, with the usual appointment types."""
    s = InMemoryStore(policy)
    s.add_rule(
        AvailabilityRule(
            id="rule-wed",
            doctor_id=DOCTOR,
            is_recurring=True,
            day_of_week=3,
            start_time="10:00",
            end_time="18:00",
        )
    )
    s.add_appointment_type(
        AppointmentType(id="consult-30", display_name="Consultation", duration_minutes=30)
    )
    s.add_appointment_type(
        AppointmentType(
            id="eval-45",
            display_name="Evaluation",
            display_name_es="Evaluación",
            duration_minutes=45,
        )
    )
    s.add_appointment_type(
        AppointmentType(id="therapy-60", display_name="Therapy", duration_minutes=60)
    )
    s.add_appointment_type(
        AppointmentType(
            id="legacy", display_name="Legacy", duration_minutes=30, is_active=False
        )
    )
    return s


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock(spec=Notifier)


@pytest.fixture
def service(store, notifier, policy) -> BookingService:
    return BookingService(store=store, notifier=notifier, policy=policy, clock=lambda: NOW)


@pytest.fixture
def patient() -> PatientContact:
    return PatientContact(name="Ana Lopez", email="ana@example.com", phone="+12015550123")


@pytest.fixture
def booking_request(patient):
    """Factory for booking requests on Wednesday."""

    def make(start: datetime, type_id: str = "consult-30", tz: str = "UTC") -> BookingRequest:
        return BookingRequest(
            doctor_id=DOCTOR,
            appointment_type_id=type_id,
            start_time=start,
            timezone=tz,
            patient=patient,
        )

    return make
