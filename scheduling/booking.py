"""Booking transactions: book, confirm, cancel and reschedule appointments.

Each operation is a short request-scoped unit of work: read rules and active
appointments, validate, then commit through a single atomic store write. The
store's constraint is the authoritative guard against double booking; the
validation pass only gives fast, specific feedback.
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from scheduling.availability import blocked_intervals, resolve_open_intervals
from scheduling.config import SchedulingPolicy
from scheduling.errors import BookingOutcome, ErrorKind
from scheduling.grid import GridSlot, weekly_grid
from scheduling.intervals import TimeInterval, pad
from scheduling.notifier import LoggingNotifier, Notifier
from scheduling.scheduler import compute_slots
from scheduling.schema import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    BookingRequest,
    CancelledBy,
    Slot,
    SlotsResponse,
)
from scheduling.store import SchedulingStore, SlotTakenError, StoreError
from scheduling.validator import validate_booking

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime, tz_name: str) -> datetime:
    """Naive datetimes are wall-clock times in `tz_name`."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt.astimezone(timezone.utc)


class BookingService:
    """Composes availability resolution, validation, commit and notification."""

    def __init__(
        self,
        store: SchedulingStore,
        notifier: Optional[Notifier] = None,
        policy: Optional[SchedulingPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.policy = policy or SchedulingPolicy()
        self.clock = clock
        self.tz = ZoneInfo(self.policy.timezone)

    # =========================================================================
    # Queries
    # =========================================================================

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(self.tz).date()

    async def get_open_intervals(self, doctor_id: str, day: date) -> list[TimeInterval]:
        rules = await self.store.list_rules(doctor_id)
        return resolve_open_intervals(day, rules, self.tz)

    async def get_active_appointments(
        self,
        doctor_id: str,
        window: TimeInterval,
        exclude_id: Optional[str] = None,
    ) -> list[TimeInterval]:
        appointments = await self.store.list_active_appointments(doctor_id, window, exclude_id)
        return [a.interval for a in appointments]

    async def list_appointment_types(self) -> list[AppointmentType]:
        return await self.store.list_appointment_types(active_only=True)

    async def available_slots(
        self,
        doctor_id: str,
        day: date,
        appointment_type_id: Optional[str] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> SlotsResponse:
        """
        Every candidate slot of the day, flagged with whether it can be booked now.
        While rescheduling, `exclude_appointment_id` names the appointment being moved
        so its own slot and buffer neighbours show as free.
        """
        duration = self.policy.default_duration_minutes
        if appointment_type_id:
            appointment_type = await self.store.get_appointment_type(appointment_type_id)
            if appointment_type is None:
                logger.warning(
                    "Unknown appointment type %s, using default duration", appointment_type_id
                )
            else:
                duration = appointment_type.duration_minutes

        rules = await self.store.list_rules(doctor_id)
        open_intervals = resolve_open_intervals(day, rules, self.tz)
        slots: list[Slot] = []
        if open_intervals:
            window = pad(
                TimeInterval(start=open_intervals[0].start, end=open_intervals[-1].end),
                self.policy.buffer_minutes,
            )
            existing = await self.get_active_appointments(
                doctor_id, window, exclude_appointment_id
            )
            slots = compute_slots(
                open_intervals,
                existing,
                blocked_intervals(day, rules, self.tz),
                duration,
                self.policy,
                self.clock(),
            )
        return SlotsResponse(doctor_id=doctor_id, date=day, duration_minutes=duration, slots=slots)

    async def weekly_grid(
        self,
        doctor_id: str,
        week_start: date,
        duration_minutes: int,
    ) -> list[list[GridSlot]]:
        """Admin display grid for Monday..Saturday of the week starting at `week_start`."""
        rules = await self.store.list_rules(doctor_id)
        window = TimeInterval(
            start=datetime.combine(week_start, datetime.min.time(), self.tz),
            end=datetime.combine(week_start + timedelta(days=7), datetime.min.time(), self.tz),
        )
        appointments = await self.store.list_active_appointments(doctor_id, window)
        return weekly_grid(
            week_start,
            duration_minutes,
            rules,
            appointments,
            self.policy,
            self.clock(),
        )

    async def get_appointment_by_token(self, token: str) -> Optional[Appointment]:
        return await self.store.get_appointment_by_token(token)

    # =========================================================================
    # Transactions
    # =========================================================================

    async def _check_interval(
        self,
        doctor_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> Optional[BookingOutcome]:
        """Pre-check a proposed interval. Returns a failure outcome or None."""
        if end <= start:
            return BookingOutcome.failure(ErrorKind.INVALID_INTERVAL)
        day = self.local_date(start)
        rules = await self.store.list_rules(doctor_id)
        candidate = TimeInterval(start=start, end=end)
        existing = await self.get_active_appointments(
            doctor_id, pad(candidate, self.policy.buffer_minutes), exclude_id
        )
        failure = validate_booking(
            start,
            end,
            resolve_open_intervals(day, rules, self.tz),
            existing,
            self.policy,
            self.clock(),
            blocked=blocked_intervals(day, rules, self.tz),
        )
        if failure is not None:
            logger.warning("Booking for doctor %s rejected: %s", doctor_id, failure.kind.value)
            return BookingOutcome(error=failure)
        return None

    async def book_appointment(self, request: BookingRequest) -> BookingOutcome:
        """Validate and commit a new pending appointment, then notify the patient."""
        try:
            appointment_type = await self.store.get_appointment_type(request.appointment_type_id)
            if appointment_type is None or not appointment_type.is_active:
                return BookingOutcome.failure(ErrorKind.INVALID_APPOINTMENT_TYPE)

            start = _as_utc(request.start_time, request.timezone)
            end = start + timedelta(minutes=appointment_type.duration_minutes)
            rejected = await self._check_interval(request.doctor_id, start, end)
            if rejected is not None:
                return rejected

            now = self.clock()
            appointment = Appointment(
                id=str(uuid.uuid4()),
                doctor_id=request.doctor_id,
                appointment_type_id=appointment_type.id,
                start_time=start,
                end_time=end,
                timezone=request.timezone,
                status=AppointmentStatus.PENDING,
                patient=request.patient,
                booking_token=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
            )
            created = await self.store.insert_appointment(appointment)
        except SlotTakenError:
            logger.warning("Slot taken at commit for doctor %s", request.doctor_id)
            return BookingOutcome.failure(ErrorKind.SLOT_UNAVAILABLE)
        except StoreError:
            logger.exception("Store failure while booking for doctor %s", request.doctor_id)
            return BookingOutcome.failure(ErrorKind.STORE_UNAVAILABLE)

        logger.info("Booked appointment %s for doctor %s", created.id, created.doctor_id)
        await self._notify(self.notifier.appointment_booked, created, appointment_type)
        return BookingOutcome.success(created)

    async def confirm_appointment(self, appointment_id: str) -> BookingOutcome:
        """pending -> confirmed. Confirming twice is a no-op."""
        try:
            appointment = await self.store.get_appointment(appointment_id)
            if appointment is None:
                return BookingOutcome.failure(ErrorKind.APPOINTMENT_NOT_FOUND)
            if appointment.status == AppointmentStatus.CANCELLED:
                return BookingOutcome.failure(ErrorKind.ALREADY_CANCELLED)
            if appointment.status == AppointmentStatus.CONFIRMED:
                return BookingOutcome.success(appointment)

            confirmed = appointment.model_copy(
                update={"status": AppointmentStatus.CONFIRMED, "updated_at": self.clock()}
            )
            confirmed = await self.store.update_appointment(confirmed)
        except SlotTakenError:
            return BookingOutcome.failure(ErrorKind.SLOT_UNAVAILABLE)
        except StoreError:
            logger.exception("Store failure while confirming %s", appointment_id)
            return BookingOutcome.failure(ErrorKind.STORE_UNAVAILABLE)

        logger.info("Confirmed appointment %s", appointment_id)
        return BookingOutcome.success(confirmed)

    async def cancel_appointment(
        self,
        appointment_id: str,
        actor: CancelledBy = CancelledBy.DOCTOR,
        reason: Optional[str] = None,
        token: Optional[str] = None,
    ) -> BookingOutcome:
        """
        Cancel an active appointment. A booking token identifies a patient
        cancellation and must match the appointment's token.
        """
        try:
            appointment = await self.store.get_appointment(appointment_id)
            if appointment is None:
                return BookingOutcome.failure(ErrorKind.APPOINTMENT_NOT_FOUND)
            if token is not None:
                if token != appointment.booking_token:
                    return BookingOutcome.failure(ErrorKind.INVALID_BOOKING_TOKEN)
                actor = CancelledBy.PATIENT
            if appointment.status == AppointmentStatus.CANCELLED:
                return BookingOutcome.failure(ErrorKind.ALREADY_CANCELLED)
            now = self.clock()
            if appointment.start_time < now:
                return BookingOutcome.failure(ErrorKind.APPOINTMENT_IN_PAST)

            cancelled = appointment.model_copy(
                update={
                    "status": AppointmentStatus.CANCELLED,
                    "cancelled_at": now,
                    "cancelled_by": actor,
                    "cancellation_reason": reason,
                    "updated_at": now,
                }
            )
            cancelled = await self.store.update_appointment(cancelled)
        except StoreError:
            logger.exception("Store failure while cancelling %s", appointment_id)
            return BookingOutcome.failure(ErrorKind.STORE_UNAVAILABLE)

        logger.info("Cancelled appointment %s by %s", appointment_id, actor.value)
        await self._notify_change(self.notifier.appointment_cancelled, cancelled)
        return BookingOutcome.success(cancelled)

    async def reschedule_appointment(
        self,
        appointment_id: str,
        new_start: datetime,
        new_end: Optional[datetime] = None,
    ) -> BookingOutcome:
        """Move an active appointment, validating against every other active appointment."""
        try:
            appointment = await self.store.get_appointment(appointment_id)
            if appointment is None:
                return BookingOutcome.failure(ErrorKind.APPOINTMENT_NOT_FOUND)
            if appointment.status == AppointmentStatus.CANCELLED:
                return BookingOutcome.failure(ErrorKind.ALREADY_CANCELLED)
            if appointment.start_time < self.clock():
                return BookingOutcome.failure(ErrorKind.APPOINTMENT_IN_PAST)

            start = _as_utc(new_start, appointment.timezone)
            if new_end is None:
                end = start + (appointment.end_time - appointment.start_time)
            else:
                end = _as_utc(new_end, appointment.timezone)
            rejected = await self._check_interval(
                appointment.doctor_id, start, end, exclude_id=appointment.id
            )
            if rejected is not None:
                return rejected

            previous = appointment.interval
            moved = appointment.model_copy(
                update={"start_time": start, "end_time": end, "updated_at": self.clock()}
            )
            moved = await self.store.update_appointment(moved)
        except SlotTakenError:
            logger.warning("Slot taken at commit while rescheduling %s", appointment_id)
            return BookingOutcome.failure(ErrorKind.SLOT_UNAVAILABLE)
        except StoreError:
            logger.exception("Store failure while rescheduling %s", appointment_id)
            return BookingOutcome.failure(ErrorKind.STORE_UNAVAILABLE)

        logger.info("Rescheduled appointment %s to %s", appointment_id, start.isoformat())
        await self._notify_change(self.notifier.appointment_rescheduled, moved, previous)
        return BookingOutcome.success(moved)

    async def _notify(self, send: Callable[..., Awaitable[None]], *args) -> None:
        """Notification failures are logged and never affect the committed outcome."""
        try:
            await send(*args)
        except Exception:
            logger.exception("Notification %s failed", getattr(send, "__name__", send))

    async def _notify_change(
        self, send: Callable[..., Awaitable[None]], appointment: Appointment, *extra
    ) -> None:
        """Notify about an already committed change. The type lookup only feeds the e-mail."""
        try:
            appointment_type = await self.store.get_appointment_type(
                appointment.appointment_type_id
            )
        except StoreError:
            logger.exception(
                "Could not load appointment type for %s; notification skipped", appointment.id
            )
            return
        if appointment_type is None:
            logger.warning(
                "Appointment type %s is gone; notification for %s skipped",
                appointment.appointment_type_id,
                appointment.id,
            )
            return
        await self._notify(send, appointment, appointment_type, *extra)
