from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from clinic_scheduler.auth.context import CLINIC_ADMIN, SECRETARY, CallerContext
from clinic_scheduler.auth.dependencies import require_roles
from clinic_scheduler.database import get_db
from clinic_scheduler.routes.common import (
    SlotResponse,
    booking_errors,
    ensure_database_ready,
    to_slot_responses,
)
from clinic_scheduler.scheduling.booking import BookingService
from clinic_scheduler.scheduling.templates import TemplateStore, TemplateWindow

router = APIRouter(tags=['availability'])


class TemplateRequest(BaseModel):
    day_of_week: int = Field(ge=0, le=6, description='0 = Monday ... 6 = Sunday')
    start_time: time
    end_time: time
    slot_duration: int = Field(default=30, gt=0)
    max_concurrent: int = Field(default=1, ge=1)

    def to_window(self) -> TemplateWindow:
        return TemplateWindow(
            day_of_week=self.day_of_week,
            start_time=self.start_time.replace(tzinfo=None),
            end_time=self.end_time.replace(tzinfo=None),
            slot_duration=self.slot_duration,
            max_concurrent=self.max_concurrent,
        )


class TemplateUpdateRequest(BaseModel):
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    start_time: time | None = None
    end_time: time | None = None
    slot_duration: int | None = Field(default=None, gt=0)
    max_concurrent: int | None = Field(default=None, ge=1)
    active: bool | None = None


class TemplateResponse(BaseModel):
    id: int
    practitioner_id: int
    day_of_week: int
    start_time: time
    end_time: time
    slot_duration: int
    max_concurrent: int
    active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


@router.get('/templates/{practitioner_id}', response_model=list[TemplateResponse])
def list_templates(
    practitioner_id: int,
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY)),
):
    ensure_database_ready()

    with booking_errors(db):
        return TemplateStore(db).list_for_practitioner(caller.tenant_id, practitioner_id, include_inactive)


@router.post('/templates/{practitioner_id}', response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
def create_template(
    practitioner_id: int,
    data: TemplateRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN)),
):
    ensure_database_ready()

    with booking_errors(db):
        return TemplateStore(db).create(caller.tenant_id, practitioner_id, data.to_window())


@router.put('/templates/{practitioner_id}/week', response_model=list[TemplateResponse])
def replace_week(
    practitioner_id: int,
    data: list[TemplateRequest],
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN)),
):
    ensure_database_ready()

    with booking_errors(db):
        return TemplateStore(db).replace_week(
            caller.tenant_id,
            practitioner_id,
            [item.to_window() for item in data],
        )


@router.patch('/templates/item/{template_id}', response_model=TemplateResponse)
def update_template(
    template_id: int,
    data: TemplateUpdateRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN)),
):
    ensure_database_ready()

    changes = data.model_dump(exclude_none=True)
    for name in ('start_time', 'end_time'):
        if name in changes:
            changes[name] = changes[name].replace(tzinfo=None)

    with booking_errors(db):
        return TemplateStore(db).update(caller.tenant_id, template_id, **changes)


@router.delete('/templates/item/{template_id}', response_model=TemplateResponse)
def deactivate_template(
    template_id: int,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN)),
):
    ensure_database_ready()

    with booking_errors(db):
        return TemplateStore(db).deactivate(caller.tenant_id, template_id)


@router.get('/slots', response_model=list[SlotResponse])
def list_available_slots(
    target_date: date = Query(..., alias='date'),
    practitioner_id: int | None = Query(default=None),
    area_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(require_roles(CLINIC_ADMIN, SECRETARY)),
):
    if (practitioner_id is None) == (area_id is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Provide exactly one of practitioner_id or area_id.',
        )

    ensure_database_ready()

    with booking_errors(db):
        service = BookingService(db)
        if practitioner_id is not None:
            return to_slot_responses(
                practitioner_id,
                service.available_slots(caller.tenant_id, practitioner_id, target_date),
            )

        slots: list[SlotResponse] = []
        for entry in service.area_availability(caller.tenant_id, area_id, target_date):
            slots.extend(to_slot_responses(entry.practitioner.id, entry.slots))
        slots.sort(key=lambda slot: (slot.start, slot.end, slot.practitioner_id))
        return slots
