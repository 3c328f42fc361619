from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from clinic_scheduler.auth.context import CLINIC_ADMIN, DOCTOR, SECRETARY, CallerContext
from clinic_scheduler.auth.dependencies import require_roles
from clinic_scheduler.database import get_db
from clinic_scheduler.routes.common import (
    AppointmentResponse,
    booking_errors,
    ensure_database_ready,
    to_appointment_response,
)
from clinic_scheduler.scheduling.booking import (
    MAX_PAGE_SIZE,
    AppointmentFilters,
    BookingService,
)
from clinic_scheduler.scheduling.status import AppointmentStatus

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    practitioner_id: int
    patient_id: int
    area_id: int
    scheduled_at: datetime
    duration_minutes: int | None = None
    appointment_type: str = 'IN_PERSON'
    source: str = 'WALK_IN'
    reason: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator('appointment_type', 'source')
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class UpdateAppointmentRequest(BaseModel):
    scheduled_at: datetime | None = None
    duration_minutes: int | None = None
    practitioner_id: int | None = None
    appointment_type: str | None = None
    reason: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator('appointment_type')
    @classmethod
    def normalize_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().upper()


class UpdateStatusRequest(BaseModel):
    status: AppointmentStatus
    cancel_reason: str | None = Field(default=None, max_length=500)


class AppointmentPageResponse(BaseModel):
    data: list[AppointmentResponse]
    total: int
    page: int
    page_size: int


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY)),
):
    ensure_database_ready()

    with booking_errors(db):
        appointment = BookingService(db).create(
            caller,
            practitioner_id=data.practitioner_id,
            patient_id=data.patient_id,
            area_id=data.area_id,
            scheduled_at=data.scheduled_at,
            duration_minutes=data.duration_minutes,
            appointment_type=data.appointment_type,
            reason=data.reason,
            notes=data.notes,
            source=data.source,
        )
    return to_appointment_response(appointment)


@router.get('', response_model=AppointmentPageResponse)
def list_appointments(
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    practitioner_id: int | None = Query(default=None),
    area_id: int | None = Query(default=None),
    patient_id: int | None = Query(default=None),
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    skip: int = Query(default=0, ge=0),
    take: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY, DOCTOR)),
):
    ensure_database_ready()

    filters = AppointmentFilters(
        start=start_date,
        end=end_date,
        practitioner_id=caller.user_id if caller.is_doctor else practitioner_id,
        area_id=area_id,
        patient_id=patient_id,
        status=appointment_status,
    )

    with booking_errors(db):
        page = BookingService(db).list_appointments(caller.tenant_id, filters, skip=skip, take=take)

    return AppointmentPageResponse(
        data=[to_appointment_response(appointment) for appointment in page.data],
        total=page.total,
        page=page.page,
        page_size=page.page_size,
    )


@router.get('/calendar', response_model=list[AppointmentResponse])
def get_calendar(
    start_date: datetime = Query(...),
    end_date: datetime = Query(...),
    practitioner_id: int | None = Query(default=None),
    area_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY, DOCTOR)),
):
    ensure_database_ready()

    with booking_errors(db):
        appointments = BookingService(db).calendar(caller, start_date, end_date, practitioner_id, area_id)
    return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/my-agenda', response_model=list[AppointmentResponse])
def get_my_agenda(
    day: date | None = Query(default=None, alias='date'),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(DOCTOR)),
):
    ensure_database_ready()

    with booking_errors(db):
        appointments = BookingService(db).agenda(caller.tenant_id, caller.user_id, day)
    return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY, DOCTOR)),
):
    ensure_database_ready()

    with booking_errors(db):
        appointment = BookingService(db).get(caller.tenant_id, appointment_id)
    return to_appointment_response(appointment)


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY)),
):
    ensure_database_ready()

    with booking_errors(db):
        appointment = BookingService(db).reschedule(
            caller,
            appointment_id,
            new_scheduled_at=data.scheduled_at,
            new_duration_minutes=data.duration_minutes,
            new_practitioner_id=data.practitioner_id,
            reason=data.reason,
            notes=data.notes,
            appointment_type=data.appointment_type,
        )
    return to_appointment_response(appointment)


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY, DOCTOR)),
):
    ensure_database_ready()

    with booking_errors(db):
        appointment = BookingService(db).transition_status(
            caller,
            appointment_id,
            data.status,
            cancel_reason=data.cancel_reason,
        )
    return to_appointment_response(appointment)


@router.delete('/{appointment_id}', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    reason: str | None = Query(default=None, max_length=500),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY)),
):
    ensure_database_ready()

    with booking_errors(db):
        appointment = BookingService(db).cancel(caller, appointment_id, reason)
    return to_appointment_response(appointment)
