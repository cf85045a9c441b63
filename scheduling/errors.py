"""Booking error taxonomy and the outcome value returned by booking operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from scheduling.schema import Appointment


class ErrorKind(str, Enum):
    OUT_OF_BOOKING_WINDOW = "out_of_booking_window"
    OUTSIDE_AVAILABILITY = "outside_availability"
    SLOT_UNAVAILABLE = "slot_unavailable"
    INVALID_APPOINTMENT_TYPE = "invalid_appointment_type"
    INVALID_INTERVAL = "invalid_interval"
    ALREADY_CANCELLED = "already_cancelled"
    APPOINTMENT_NOT_FOUND = "appointment_not_found"
    APPOINTMENT_IN_PAST = "appointment_in_past"
    INVALID_BOOKING_TOKEN = "invalid_booking_token"
    STORE_UNAVAILABLE = "store_unavailable"


MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.OUT_OF_BOOKING_WINDOW: (
        "Appointments must be booked at least {minimum_notice_hours} hours in advance "
        "and no more than {advance_booking_days} days out."
    ),
    ErrorKind.OUTSIDE_AVAILABILITY: (
        "Appointment must be during available hours. Please check the schedule."
    ),
    ErrorKind.SLOT_UNAVAILABLE: (
        "This time slot is no longer available. Please select a different time."
    ),
    ErrorKind.INVALID_APPOINTMENT_TYPE: (
        "Invalid appointment type. Please select a valid appointment type."
    ),
    ErrorKind.INVALID_INTERVAL: "End time must be after start time.",
    ErrorKind.ALREADY_CANCELLED: "This appointment is already cancelled.",
    ErrorKind.APPOINTMENT_NOT_FOUND: "Appointment not found.",
    ErrorKind.APPOINTMENT_IN_PAST: "Past appointments cannot be changed.",
    ErrorKind.INVALID_BOOKING_TOKEN: "Invalid booking token.",
    ErrorKind.STORE_UNAVAILABLE: "Something went wrong on our side. Please try again.",
}


@dataclass(frozen=True)
class BookingFailure:
    """Expected rejection with a user-displayable message."""

    kind: ErrorKind
    message: str

    @classmethod
    def of(cls, kind: ErrorKind, **params: object) -> "BookingFailure":
        return cls(kind=kind, message=MESSAGES[kind].format(**params))


@dataclass(frozen=True)
class BookingOutcome:
    """Either the resulting appointment or the reason it was rejected."""

    appointment: Optional[Appointment] = None
    error: Optional[BookingFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, appointment: Appointment) -> "BookingOutcome":
        return cls(appointment=appointment)

    @classmethod
    def failure(cls, kind: ErrorKind, **params: object) -> "BookingOutcome":
        return cls(error=BookingFailure.of(kind, **params))
