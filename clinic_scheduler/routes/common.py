import logging
from contextlib import contextmanager
from datetime import datetime

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduler.database import ensure_appointment_schema, ensure_template_schema
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.scheduling.booking import PractitionerSlots
from clinic_scheduler.scheduling.errors import BookingError
from clinic_scheduler.scheduling.slots import Slot
from clinic_scheduler.scheduling.status import AppointmentStatus

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class AppointmentResponse(BaseModel):
    id: int
    practitioner_id: int
    patient_id: int
    area_id: int
    scheduled_at: datetime
    end_at: datetime
    duration_minutes: int
    status: AppointmentStatus
    appointment_type: str | None = None
    source: str | None = None
    reason: str | None = None
    notes: str | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    confirmation_code: str | None = None
    created_by: str | None = None

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    practitioner_id: int
    start: datetime
    end: datetime


class PractitionerAvailabilityResponse(BaseModel):
    practitioner_id: int
    practitioner_name: str
    specialty_id: int | None = None
    slots: list[SlotResponse]


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)


def to_slot_responses(practitioner_id: int, slots: list[Slot]) -> list[SlotResponse]:
    return [SlotResponse(practitioner_id=practitioner_id, start=slot.start, end=slot.end) for slot in slots]


def to_availability_response(entry: PractitionerSlots) -> PractitionerAvailabilityResponse:
    return PractitionerAvailabilityResponse(
        practitioner_id=entry.practitioner.id,
        practitioner_name=entry.practitioner.full_name,
        specialty_id=entry.practitioner.specialty_id,
        slots=to_slot_responses(entry.practitioner.id, entry.slots),
    )


def ensure_database_ready() -> None:
    try:
        ensure_template_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


@contextmanager
def booking_errors(db: Session):
    """Turn booking failures into HTTP errors at the route boundary.

    Domain errors keep their status and carry their code in ``X-Error-Code``.
    Store failures are rolled back and reported as 503, never retried.
    """
    try:
        yield
    except BookingError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail=exc.message,
            headers={'X-Error-Code': exc.code},
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Database error while handling a booking request.')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc
