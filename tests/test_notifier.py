"""Tests for the e-mail notifier with a mocked HTTP transport."""

import json
import uuid

import httpx
import pytest

from scheduling.config import EmailSettings
from scheduling.intervals import TimeInterval
from scheduling.notifier import LoggingNotifier, ResendNotifier, build_notifier
from scheduling.schema import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    CancelledBy,
    PatientContact,
)
from tests.conftest import DOCTOR, NOW, at

SETTINGS = EmailSettings(
    api_key="re_test",
    base_url="https://mail.test",
    from_email="frontdesk@practice.test",
    from_name="Practice",
    site_url="https://practice.test",
)

EVALUATION = AppointmentType(
    id="eval-45", display_name="Evaluation", display_name_es="Evaluación", duration_minutes=45
)


@pytest.fixture
def sent():
    return []


@pytest.fixture
def notifier(sent):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/domains":
            return httpx.Response(200, json={"data": []})
        sent.append(request)
        return httpx.Response(200, json={"id": "msg_123"})

    return ResendNotifier(SETTINGS, transport=httpx.MockTransport(handler))


def make_appointment(locale="en", **overrides) -> Appointment:
    fields = dict(
        id=str(uuid.uuid4()),
        doctor_id=DOCTOR,
        appointment_type_id="eval-45",
        start_time=at(15),
        end_time=at(15, 45),
        timezone="America/New_York",
        status=AppointmentStatus.PENDING,
        patient=PatientContact(
            name="Ana Lopez", email="ana@example.com", phone="+12015550123", locale=locale
        ),
        booking_token="tok-abc",
        created_at=NOW,
    )
    fields.update(overrides)
    return Appointment(**fields)


@pytest.mark.asyncio
async def test_confirmation_email(notifier, sent):
    """The booking e-mail is posted to the provider with the manage link."""
    await notifier.appointment_booked(make_appointment(), EVALUATION)
    await notifier.close()

    assert len(sent) == 1
    request = sent[0]
    assert request.url.path == "/emails"
    assert request.headers["Authorization"] == "Bearer re_test"
    body = json.loads(request.content)
    assert body["to"] == ["ana@example.com"]
    assert body["from"] == "Practice <frontdesk@practice.test>"
    assert body["subject"].startswith("Appointment Confirmed")
    assert "https://practice.test/appointments/manage?token=tok-abc" in body["text"]
    # 15:00 UTC is 10:00 in New York
    assert "10:00 AM" in body["text"]


@pytest.mark.asyncio
async def test_spanish_locale(notifier, sent):
    """Spanish-speaking patients get the Spanish subject."""
    await notifier.appointment_booked(make_appointment(locale="es"), EVALUATION)
    body = json.loads(sent[0].content)
    assert body["subject"].startswith("Cita Confirmada")
    assert "Evaluación" in body["text"]


@pytest.mark.asyncio
async def test_cancellation_mentions_reason(notifier, sent):
    """The cancellation e-mail includes the reason."""
    appt = make_appointment(
        status=AppointmentStatus.CANCELLED,
        cancelled_at=NOW,
        cancelled_by=CancelledBy.PATIENT,
        cancellation_reason="Feeling better",
    )
    await notifier.appointment_cancelled(appt, EVALUATION)
    body = json.loads(sent[0].content)
    assert body["subject"].startswith("Appointment Cancelled")
    assert "cancelled by you" in body["text"]
    assert "Feeling better" in body["text"]


@pytest.mark.asyncio
async def test_reschedule_mentions_both_times(notifier, sent):
    """The reschedule e-mail shows the old and new times."""
    previous = TimeInterval(start=at(14), end=at(14, 45))
    await notifier.appointment_rescheduled(make_appointment(), EVALUATION, previous)
    body = json.loads(sent[0].content)
    assert "09:00 AM" in body["text"]
    assert "10:00 AM" in body["text"]


@pytest.mark.asyncio
async def test_provider_error_raises(sent):
    """Provider HTTP errors propagate to the caller."""
    failing = ResendNotifier(
        SETTINGS, transport=httpx.MockTransport(lambda r: httpx.Response(500))
    )
    with pytest.raises(httpx.HTTPStatusError):
        await failing.appointment_booked(make_appointment(), EVALUATION)
    await failing.close()


@pytest.mark.asyncio
async def test_verify(notifier):
    """verify reports whether the provider accepts the API key."""
    assert await notifier.verify() is True
    rejected = ResendNotifier(
        SETTINGS, transport=httpx.MockTransport(lambda r: httpx.Response(401))
    )
    assert await rejected.verify() is False
    await notifier.close()
    await rejected.close()


@pytest.mark.asyncio
async def test_connect_requires_api_key():
    """connect fails without an API key."""
    with pytest.raises(ValueError):
        await ResendNotifier(EmailSettings(api_key="")).connect()


def test_build_notifier_without_key_logs_only():
    """Without an API key the logging notifier is used."""
    assert isinstance(build_notifier(EmailSettings(api_key="")), LoggingNotifier)
    assert isinstance(build_notifier(SETTINGS), ResendNotifier)
