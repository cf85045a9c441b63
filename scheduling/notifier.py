"""Appointment notifications: injected capability with its own lifecycle."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import httpx

from scheduling.config import EmailSettings
from scheduling.intervals import TimeInterval
from scheduling.schema import Appointment, AppointmentType, CancelledBy

logger = logging.getLogger(__name__)

SUBJECTS = {
    "confirmation": {
        "en": "Appointment Confirmed",
        "es": "Cita Confirmada",
    },
    "cancellation": {
        "en": "Appointment Cancelled",
        "es": "Cita Cancelada",
    },
    "reschedule": {
        "en": "Appointment Rescheduled",
        "es": "Cita Reprogramada",
    },
}


def format_local(instant: datetime, tz_name: str) -> str:
    """Human-readable date and time in the patient's timezone."""
    local = instant.astimezone(ZoneInfo(tz_name))
    return local.strftime("%A, %B %d, %Y at %I:%M %p %Z")


class Notifier(ABC):
    """Best-effort delivery of booking lifecycle messages."""

    async def connect(self) -> None:
        return None

    async def verify(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    @abstractmethod
    async def appointment_booked(
        self, appointment: Appointment, appointment_type: AppointmentType
    ) -> None:
        ...

    @abstractmethod
    async def appointment_cancelled(
        self, appointment: Appointment, appointment_type: AppointmentType
    ) -> None:
        ...

    @abstractmethod
    async def appointment_rescheduled(
        self,
        appointment: Appointment,
        appointment_type: AppointmentType,
        previous: TimeInterval,
    ) -> None:
        ...


class LoggingNotifier(Notifier):
    """Used when no e-mail provider is configured."""

    async def appointment_booked(self, appointment, appointment_type) -> None:
        logger.info("Booking %s confirmed (no e-mail provider configured)", appointment.id)

    async def appointment_cancelled(self, appointment, appointment_type) -> None:
        logger.info("Booking %s cancelled (no e-mail provider configured)", appointment.id)

    async def appointment_rescheduled(self, appointment, appointment_type, previous) -> None:
        logger.info("Booking %s rescheduled (no e-mail provider configured)", appointment.id)


class ResendNotifier(Notifier):
    """Sends plain-text e-mails through the Resend HTTP API."""

    def __init__(
        self,
        settings: Optional[EmailSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or EmailSettings.from_env()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        if self._client is not None:
            return
        if not self.settings.api_key:
            raise ValueError("RESEND_API_KEY is required")
        self._client = httpx.AsyncClient(
            base_url=self.settings.base_url,
            headers={
                "Authorization": f"Bearer {self.settings.api_key}",
                "Content-Type": "application/json",
            },
            timeout=15.0,
            transport=self._transport,
        )

    async def verify(self) -> bool:
        """Check that the API key is accepted."""
        await self.connect()
        try:
            resp = await self._client.get("/domains")
        except httpx.HTTPError:
            logger.exception("E-mail provider unreachable")
            return False
        return resp.status_code == 200

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, to: str, subject: str, text: str) -> str:
        """Send one message and return the provider's message id."""
        await self.connect()
        resp = await self._client.post(
            "/emails",
            json={
                "from": f"{self.settings.from_name} <{self.settings.from_email}>",
                "to": [to],
                "subject": f"{subject} - {self.settings.from_name}",
                "text": text,
            },
        )
        resp.raise_for_status()
        message_id = resp.json().get("id", "")
        logger.info("E-mail %r sent: %s", subject, message_id)
        return message_id

    def _manage_url(self, appointment: Appointment) -> str:
        return f"{self.settings.site_url}/appointments/manage?token={appointment.booking_token}"

    async def appointment_booked(
        self, appointment: Appointment, appointment_type: AppointmentType
    ) -> None:
        locale = appointment.patient.locale
        text = (
            f"Hello {appointment.patient.name},\n\n"
            f"Your {appointment_type.label(locale)} appointment is booked for "
            f"{format_local(appointment.start_time, appointment.timezone)}.\n\n"
            f"View or cancel your appointment: {self._manage_url(appointment)}\n"
        )
        await self._send(appointment.patient.email, SUBJECTS["confirmation"][locale], text)

    async def appointment_cancelled(
        self, appointment: Appointment, appointment_type: AppointmentType
    ) -> None:
        locale = appointment.patient.locale
        who = "you" if appointment.cancelled_by == CancelledBy.PATIENT else "the practice"
        text = (
            f"Hello {appointment.patient.name},\n\n"
            f"Your {appointment_type.label(locale)} appointment on "
            f"{format_local(appointment.start_time, appointment.timezone)} "
            f"was cancelled by {who}.\n"
        )
        if appointment.cancellation_reason:
            text += f"\nReason: {appointment.cancellation_reason}\n"
        await self._send(appointment.patient.email, SUBJECTS["cancellation"][locale], text)

    async def appointment_rescheduled(
        self,
        appointment: Appointment,
        appointment_type: AppointmentType,
        previous: TimeInterval,
    ) -> None:
        locale = appointment.patient.locale
        text = (
            f"Hello {appointment.patient.name},\n\n"
            f"Your {appointment_type.label(locale)} appointment has moved from "
            f"{format_local(previous.start, appointment.timezone)} to "
            f"{format_local(appointment.start_time, appointment.timezone)}.\n\n"
            f"View or cancel your appointment: {self._manage_url(appointment)}\n"
        )
        await self._send(appointment.patient.email, SUBJECTS["reschedule"][locale], text)


def build_notifier(settings: Optional[EmailSettings] = None) -> Notifier:
    settings = settings or EmailSettings.from_env()
    if settings.enabled:
        return ResendNotifier(settings)
    return LoggingNotifier()
