"""FastAPI application for appointment booking."""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import FastAPI, HTTPException, Query

from scheduling.booking import BookingService
from scheduling.config import SchedulingPolicy, log_level
from scheduling.errors import BookingOutcome, ErrorKind
from scheduling.grid import weekly_stats
from scheduling.notifier import build_notifier
from scheduling.schema import (
    Appointment,
    AppointmentType,
    BookingRequest,
    CancelledBy,
    CancelRequest,
    OpenIntervalsResponse,
    RescheduleRequest,
    SlotsResponse,
)
from scheduling.store import InMemoryStore, StoreError

logger = logging.getLogger(__name__)

STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.OUT_OF_BOOKING_WINDOW: 400,
    ErrorKind.OUTSIDE_AVAILABILITY: 400,
    ErrorKind.INVALID_APPOINTMENT_TYPE: 400,
    ErrorKind.INVALID_INTERVAL: 400,
    ErrorKind.APPOINTMENT_IN_PAST: 400,
    ErrorKind.INVALID_BOOKING_TOKEN: 403,
    ErrorKind.APPOINTMENT_NOT_FOUND: 404,
    ErrorKind.SLOT_UNAVAILABLE: 409,
    ErrorKind.ALREADY_CANCELLED: 409,
    ErrorKind.STORE_UNAVAILABLE: 503,
}


def _unwrap(outcome: BookingOutcome) -> Appointment:
    """Return the appointment or raise the HTTP error matching the failure kind."""
    if outcome.error is not None:
        raise HTTPException(
            status_code=STATUS_CODES[outcome.error.kind],
            detail={"error": outcome.error.kind.value, "message": outcome.error.message},
        )
    return outcome.appointment


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "error": ErrorKind.STORE_UNAVAILABLE.value,
            "message": "Something went wrong on our side. Please try again.",
        },
    )


def default_service() -> BookingService:
    policy = SchedulingPolicy.from_env()
    return BookingService(
        store=InMemoryStore(policy),
        notifier=build_notifier(),
        policy=policy,
    )


def create_app(service: Optional[BookingService] = None) -> FastAPI:
    logging.basicConfig(level=log_level())
    service = service or default_service()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.notifier.connect()
        if not await service.notifier.verify():
            logger.warning("Notifier verification failed; e-mails may not be delivered")
        yield
        await service.notifier.close()

    app = FastAPI(title="Appointment Booking", version="0.1.0", lifespan=lifespan)
    app.state.service = service

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/appointment-types", response_model=list[AppointmentType])
    async def appointment_types() -> list[AppointmentType]:
        try:
            return await service.list_appointment_types()
        except StoreError:
            logger.exception("Failed to list appointment types")
            raise _store_unavailable()

    @app.get("/doctors/{doctor_id}/open-intervals", response_model=OpenIntervalsResponse)
    async def open_intervals(doctor_id: str, day: date = Query(..., alias="date")):
        try:
            intervals = await service.get_open_intervals(doctor_id, day)
        except StoreError:
            logger.exception("Failed to resolve availability for %s", doctor_id)
            raise _store_unavailable()
        return OpenIntervalsResponse(doctor_id=doctor_id, date=day, intervals=intervals)

    @app.get("/doctors/{doctor_id}/slots", response_model=SlotsResponse)
    async def slots(
        doctor_id: str,
        day: date = Query(..., alias="date"),
        appointment_type_id: Optional[str] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> SlotsResponse:
        """
        All candidate slots for a date. Unavailable slots are included with
        available=false so clients can render them disabled. Pass
        exclude_appointment_id when listing new times for a reschedule.
        """
        try:
            return await service.available_slots(
                doctor_id, day, appointment_type_id, exclude_appointment_id
            )
        except StoreError:
            logger.exception("Failed to compute slots for %s", doctor_id)
            raise _store_unavailable()

    @app.get("/doctors/{doctor_id}/grid")
    async def grid(
        doctor_id: str,
        week_start: date,
        duration: int = Query(default=30, ge=5, le=240),
    ) -> dict:
        """Admin weekly grid (Monday..Saturday) with slot states and totals."""
        try:
            rows = await service.weekly_grid(doctor_id, week_start, duration)
        except StoreError:
            logger.exception("Failed to build grid for %s", doctor_id)
            raise _store_unavailable()
        return {
            "week_start": week_start.isoformat(),
            "days": [[s.model_dump(mode="json") for s in row] for row in rows],
            "stats": weekly_stats(rows),
        }

    @app.post("/appointments", response_model=Appointment, status_code=201)
    async def book(request: BookingRequest) -> Appointment:
        return _unwrap(await service.book_appointment(request))

    @app.get("/appointments/by-token/{token}", response_model=Appointment)
    async def by_token(token: str) -> Appointment:
        """Guest access to a single appointment through its booking token."""
        try:
            appointment = await service.get_appointment_by_token(token)
        except StoreError:
            logger.exception("Failed to look up booking token")
            raise _store_unavailable()
        if appointment is None:
            raise HTTPException(
                status_code=404,
                detail={
                    "error": ErrorKind.APPOINTMENT_NOT_FOUND.value,
                    "message": "Appointment not found. Please check your booking token.",
                },
            )
        return appointment

    @app.post("/appointments/{appointment_id}/confirm", response_model=Appointment)
    async def confirm(appointment_id: str) -> Appointment:
        return _unwrap(await service.confirm_appointment(appointment_id))

    @app.post("/appointments/{appointment_id}/cancel", response_model=Appointment)
    async def cancel(appointment_id: str, body: CancelRequest) -> Appointment:
        """Patients cancel with their booking token; without one the practice is cancelling."""
        outcome = await service.cancel_appointment(
            appointment_id,
            actor=CancelledBy.DOCTOR,
            reason=body.reason,
            token=body.token,
        )
        return _unwrap(outcome)

    @app.post("/appointments/{appointment_id}/reschedule", response_model=Appointment)
    async def reschedule(appointment_id: str, body: RescheduleRequest) -> Appointment:
        outcome = await service.reschedule_appointment(
            appointment_id, body.new_start_time, body.new_end_time
        )
        return _unwrap(outcome)

    return app


app = create_app()
