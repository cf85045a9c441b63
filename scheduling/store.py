"""Record store contract for rules, appointment types and appointments.

`InMemoryStore` is the reference implementation. Its insert/update enforce the
per-doctor exclusion constraint (buffer-padded, active appointments only) at
write time, which is what makes concurrent bookings safe; the validator is only
a pre-check.
"""

from abc import ABC, abstractmethod
from typing import Optional

from scheduling.config import SchedulingPolicy
from scheduling.intervals import TimeInterval, overlaps, pad
from scheduling.schema import Appointment, AppointmentType, AvailabilityRule


class StoreError(Exception):
    """Persistence failed for reasons unrelated to booking validation."""


class SlotTakenError(Exception):
    """Write rejected by the no-double-booking constraint."""


class SchedulingStore(ABC):
    @abstractmethod
    async def list_rules(self, doctor_id: str) -> list[AvailabilityRule]:
        ...

    @abstractmethod
    async def list_appointment_types(self, active_only: bool = True) -> list[AppointmentType]:
        ...

    @abstractmethod
    async def get_appointment_type(self, type_id: str) -> Optional[AppointmentType]:
        ...

    @abstractmethod
    async def list_active_appointments(
        self,
        doctor_id: str,
        window: TimeInterval,
        exclude_id: Optional[str] = None,
    ) -> list[Appointment]:
        """Pending/confirmed appointments of a doctor overlapping `window`."""

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    @abstractmethod
    async def get_appointment_by_token(self, token: str) -> Optional[Appointment]:
        ...

    @abstractmethod
    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        """Atomically insert. Raises SlotTakenError on a constraint violation."""

    @abstractmethod
    async def update_appointment(self, appointment: Appointment) -> Appointment:
        """Atomically replace by id. Raises SlotTakenError on a constraint violation."""


class InMemoryStore(SchedulingStore):
    """Dict-backed store. Constraint check and write never suspend, so each write is atomic."""

    def __init__(self, policy: Optional[SchedulingPolicy] = None) -> None:
        # Same policy as the BookingService so the commit guard and pre-check agree.
        self.buffer_minutes = (policy or SchedulingPolicy()).buffer_minutes
        self._rules: list[AvailabilityRule] = []
        self._types: dict[str, AppointmentType] = {}
        self._appointments: dict[str, Appointment] = {}

    # =========================================================================
    # Seeding (admin side)
    # =========================================================================

    def add_rule(self, rule: AvailabilityRule) -> AvailabilityRule:
        self._rules.append(rule)
        return rule

    def add_appointment_type(self, appointment_type: AppointmentType) -> AppointmentType:
        self._types[appointment_type.id] = appointment_type
        return appointment_type

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_rules(self, doctor_id: str) -> list[AvailabilityRule]:
        return [r for r in self._rules if r.doctor_id in (None, doctor_id)]

    async def list_appointment_types(self, active_only: bool = True) -> list[AppointmentType]:
        types = sorted(self._types.values(), key=lambda t: t.duration_minutes)
        return [t for t in types if t.is_active or not active_only]

    async def get_appointment_type(self, type_id: str) -> Optional[AppointmentType]:
        return self._types.get(type_id)

    async def list_active_appointments(
        self,
        doctor_id: str,
        window: TimeInterval,
        exclude_id: Optional[str] = None,
    ) -> list[Appointment]:
        result = [
            appt.model_copy(deep=True)
            for appt in self._appointments.values()
            if appt.doctor_id == doctor_id
            and appt.is_active
            and appt.id != exclude_id
            and overlaps(appt.interval, window)
        ]
        return sorted(result, key=lambda a: a.start_time)

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        appt = self._appointments.get(appointment_id)
        return appt.model_copy(deep=True) if appt else None

    async def get_appointment_by_token(self, token: str) -> Optional[Appointment]:
        for appt in self._appointments.values():
            if appt.booking_token == token:
                return appt.model_copy(deep=True)
        return None

    # =========================================================================
    # Writes
    # =========================================================================

    def _check_constraint(self, appointment: Appointment) -> None:
        if not appointment.is_active:
            return
        for other in self._appointments.values():
            if (
                other.id != appointment.id
                and other.doctor_id == appointment.doctor_id
                and other.is_active
                and overlaps(pad(other.interval, self.buffer_minutes), appointment.interval)
            ):
                raise SlotTakenError(
                    f"appointment {appointment.id} conflicts with {other.id}"
                )

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.id in self._appointments:
            raise StoreError(f"duplicate appointment id {appointment.id}")
        if any(a.booking_token == appointment.booking_token for a in self._appointments.values()):
            raise StoreError("duplicate booking token")
        self._check_constraint(appointment)
        self._appointments[appointment.id] = appointment.model_copy(deep=True)
        return appointment

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.id not in self._appointments:
            raise StoreError(f"unknown appointment {appointment.id}")
        self._check_constraint(appointment)
        self._appointments[appointment.id] = appointment.model_copy(deep=True)
        return appointment
