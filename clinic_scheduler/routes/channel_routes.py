from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from clinic_scheduler.auth.context import CallerContext
from clinic_scheduler.auth.dependencies import get_channel_caller
from clinic_scheduler.database import get_db
from clinic_scheduler.routes.common import (
    AppointmentResponse,
    PractitionerAvailabilityResponse,
    booking_errors,
    ensure_database_ready,
    to_appointment_response,
    to_availability_response,
)
from clinic_scheduler.scheduling import directory
from clinic_scheduler.scheduling.channel import ChannelBookingRequest, ChannelBookingService

router = APIRouter(tags=['channel'])


class ChannelBookRequest(BaseModel):
    practitioner_id: int
    slot_start: datetime
    patient_name: str = Field(min_length=1, max_length=200)
    patient_phone: str = Field(min_length=3, max_length=32)
    duration_minutes: int | None = None
    patient_email: str | None = None
    patient_document_number: str | None = None
    reason: str | None = Field(default=None, max_length=500)

    @field_validator('patient_name', 'patient_phone')
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('Value cannot be blank.')
        return value


class ChannelCancelRequest(BaseModel):
    appointment_id: int | None = None
    patient_phone: str | None = None
    confirmation_code: str | None = None
    reason: str | None = Field(default=None, max_length=500)


class ChannelBookingResponse(BaseModel):
    appointment: AppointmentResponse
    confirmation_code: str
    practitioner_name: str
    message: str


class PractitionerResponse(BaseModel):
    id: int
    full_name: str
    specialty_id: int | None = None


class AreaResponse(BaseModel):
    id: int
    name: str
    color: str | None = None

    class Config:
        from_attributes = True


@router.get('/availability', response_model=list[PractitionerAvailabilityResponse])
def check_availability(
    target_date: date = Query(..., alias='date'),
    practitioner_id: int | None = Query(default=None),
    specialty: str | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_channel_caller),
):
    ensure_database_ready()

    with booking_errors(db):
        entries = ChannelBookingService(db).check_availability(caller, target_date, practitioner_id, specialty)
    return [to_availability_response(entry) for entry in entries]


@router.post('/appointments', response_model=ChannelBookingResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: ChannelBookRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_channel_caller),
):
    ensure_database_ready()

    request = ChannelBookingRequest(
        practitioner_id=data.practitioner_id,
        slot_start=data.slot_start,
        patient_name=data.patient_name,
        patient_phone=data.patient_phone,
        duration_minutes=data.duration_minutes,
        patient_email=data.patient_email,
        patient_document_number=data.patient_document_number,
        reason=data.reason,
    )

    with booking_errors(db):
        appointment = ChannelBookingService(db).book(caller, request)
        practitioner = directory.require_practitioner(db, caller.tenant_id, appointment.practitioner_id)

    return ChannelBookingResponse(
        appointment=to_appointment_response(appointment),
        confirmation_code=appointment.confirmation_code,
        practitioner_name=practitioner.full_name,
        message=(
            f'Appointment booked with {practitioner.full_name} on '
            f'{appointment.scheduled_at:%Y-%m-%d} at {appointment.scheduled_at:%H:%M}.'
        ),
    )


@router.post('/appointments/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    data: ChannelCancelRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_channel_caller),
):
    ensure_database_ready()

    with booking_errors(db):
        appointment = ChannelBookingService(db).cancel(
            caller,
            appointment_id=data.appointment_id,
            patient_phone=data.patient_phone,
            confirmation_code=data.confirmation_code,
            reason=data.reason,
        )
    return to_appointment_response(appointment)


@router.get('/practitioners', response_model=list[PractitionerResponse])
def list_practitioners(
    specialty: str | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_channel_caller),
):
    with booking_errors(db):
        practitioners = directory.list_practitioners(db, caller.tenant_id, specialty=specialty)
    return [
        PractitionerResponse(id=user.id, full_name=user.full_name, specialty_id=user.specialty_id)
        for user in practitioners
    ]


@router.get('/areas', response_model=list[AreaResponse])
def list_areas(
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_channel_caller),
):
    with booking_errors(db):
        return directory.list_areas(db, caller.tenant_id)
