"""
Booking orchestration.

Every write follows the same shape: validate input, check tenant membership of
the referenced records, take the practitioner row lock, ask the
``ConflictDetector``, write, commit once. The partial unique index on
``(practitioner_id, scheduled_at)`` catches anything the pre-check misses and
is reported as ``SlotUnavailableError``. Store failures other than that are not
retried here; retrying a booking write blindly can double-book.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinic_scheduler.auth.context import BOT, CallerContext
from clinic_scheduler.core import config
from clinic_scheduler.database import SLOT_UNIQUE_INDEX
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.user import User
from clinic_scheduler.notifications import (
    BookingEvent,
    BookingEventType,
    NotificationDispatcher,
    emit,
    get_dispatcher,
)
from clinic_scheduler.scheduling import directory
from clinic_scheduler.scheduling.clock import clinic_now, to_wall_clock
from clinic_scheduler.scheduling.conflicts import ConflictDetector
from clinic_scheduler.scheduling.errors import (
    ForbiddenError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from clinic_scheduler.scheduling.lifecycle import apply_transition
from clinic_scheduler.scheduling.slots import Slot, SlotGenerator
from clinic_scheduler.scheduling.status import INITIAL_STATUSES, AppointmentStatus

logger = logging.getLogger(__name__)

APPOINTMENT_TYPES = frozenset({'IN_PERSON', 'VIRTUAL'})
APPOINTMENT_SOURCES = frozenset({'WALK_IN', 'PHONE', 'WEB', 'WHATSAPP', 'REFERRAL'})
RESCHEDULABLE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})
# Moving into these states is reserved to the treating practitioner when the caller is a doctor.
CLINICAL_STATUSES = frozenset({AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED})
MAX_PAGE_SIZE = 100
SQLITE_SLOT_COLUMNS = 'appointments.practitioner_id, appointments.scheduled_at'


@dataclass
class AppointmentFilters:
    start: datetime | None = None
    end: datetime | None = None
    practitioner_id: int | None = None
    area_id: int | None = None
    patient_id: int | None = None
    status: AppointmentStatus | None = None


@dataclass
class AppointmentPage:
    data: list[Appointment]
    total: int
    page: int
    page_size: int


@dataclass
class PractitionerSlots:
    practitioner: User
    slots: list[Slot] = field(default_factory=list)


def parse_status(value: AppointmentStatus | str) -> AppointmentStatus:
    if isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus(str(value).strip().upper())
    except ValueError as exc:
        raise ValidationError(f'Unknown appointment status: {value}.') from exc


def validate_duration(duration_minutes: int | None) -> int:
    if duration_minutes is None:
        return config.DEFAULT_APPOINTMENT_DURATION_MINUTES
    if duration_minutes <= 0:
        raise ValidationError('Duration must be a positive number of minutes.')
    if duration_minutes > config.MAX_APPOINTMENT_DURATION_MINUTES:
        raise ValidationError(
            f'Duration cannot exceed {config.MAX_APPOINTMENT_DURATION_MINUTES} minutes.'
        )
    return duration_minutes


def generate_confirmation_code() -> str:
    return secrets.token_hex(3).upper()


def is_slot_collision(exc: IntegrityError) -> bool:
    """True when ``exc`` was raised by the practitioner slot uniqueness index."""
    diag = getattr(exc.orig, 'diag', None)
    if diag is not None and getattr(diag, 'constraint_name', None):
        return diag.constraint_name == SLOT_UNIQUE_INDEX
    message = str(exc.orig)
    # SQLite names the columns instead of the index.
    return SLOT_UNIQUE_INDEX in message or SQLITE_SLOT_COLUMNS in message


def appointment_summary(appointment: Appointment) -> dict:
    return {
        'appointment_id': appointment.id,
        'practitioner_id': appointment.practitioner_id,
        'patient_id': appointment.patient_id,
        'area_id': appointment.area_id,
        'scheduled_at': appointment.scheduled_at.isoformat(),
        'duration_minutes': appointment.duration_minutes,
        'status': AppointmentStatus(appointment.status).value,
        'confirmation_code': appointment.confirmation_code,
    }


class BookingService:
    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] = clinic_now,
    ):
        self.db = db
        self.dispatcher = dispatcher or get_dispatcher()
        self.clock = clock
        self.conflicts = ConflictDetector(db)
        self.slot_generator = SlotGenerator(db)

    def get(self, tenant_id: int, appointment_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.clinic_id == tenant_id,
        ).first()
        if appointment is None:
            raise NotFoundError('Appointment not found.')
        return appointment

    def list_appointments(
        self,
        tenant_id: int,
        filters: AppointmentFilters | None = None,
        skip: int = 0,
        take: int = 50,
    ) -> AppointmentPage:
        filters = filters or AppointmentFilters()
        skip = max(skip, 0)
        take = min(max(take, 1), MAX_PAGE_SIZE)

        query = self.db.query(Appointment).filter(Appointment.clinic_id == tenant_id)
        if filters.start is not None:
            query = query.filter(Appointment.scheduled_at >= to_wall_clock(filters.start))
        if filters.end is not None:
            query = query.filter(Appointment.scheduled_at <= to_wall_clock(filters.end))
        if filters.practitioner_id is not None:
            query = query.filter(Appointment.practitioner_id == filters.practitioner_id)
        if filters.area_id is not None:
            query = query.filter(Appointment.area_id == filters.area_id)
        if filters.patient_id is not None:
            query = query.filter(Appointment.patient_id == filters.patient_id)
        if filters.status is not None:
            query = query.filter(Appointment.status == filters.status)

        total = query.count()
        data = query.order_by(Appointment.scheduled_at.asc(), Appointment.id.asc()).offset(skip).limit(take).all()

        return AppointmentPage(data=data, total=total, page=skip // take + 1, page_size=take)

    def calendar(
        self,
        caller: CallerContext,
        start: datetime,
        end: datetime,
        practitioner_id: int | None = None,
        area_id: int | None = None,
    ) -> list[Appointment]:
        start = to_wall_clock(start)
        end = to_wall_clock(end)
        if end < start:
            raise ValidationError('Calendar end must not be before its start.')

        if caller.is_doctor:
            practitioner_id = caller.user_id

        query = self.db.query(Appointment).filter(
            Appointment.clinic_id == caller.tenant_id,
            Appointment.scheduled_at >= start,
            Appointment.scheduled_at <= end,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        if practitioner_id is not None:
            query = query.filter(Appointment.practitioner_id == practitioner_id)
        if area_id is not None:
            query = query.filter(Appointment.area_id == area_id)

        return query.order_by(Appointment.scheduled_at.asc()).all()

    def agenda(self, tenant_id: int, practitioner_id: int, day: date | None = None) -> list[Appointment]:
        day = day or self.clock().date()
        day_start = datetime.combine(day, time.min)

        return self.db.query(Appointment).filter(
            Appointment.clinic_id == tenant_id,
            Appointment.practitioner_id == practitioner_id,
            Appointment.scheduled_at >= day_start,
            Appointment.scheduled_at < day_start + timedelta(days=1),
        ).order_by(Appointment.scheduled_at.asc()).all()

    def available_slots(self, tenant_id: int, practitioner_id: int, target_date: date) -> list[Slot]:
        directory.require_practitioner(self.db, tenant_id, practitioner_id)
        return self.slot_generator.generate_slots(practitioner_id, target_date, self.clock())

    def area_availability(self, tenant_id: int, area_id: int, target_date: date) -> list[PractitionerSlots]:
        directory.require_area(self.db, tenant_id, area_id)
        now = self.clock()

        result: list[PractitionerSlots] = []
        for practitioner in directory.list_practitioners(self.db, tenant_id, area_id=area_id):
            slots = self.slot_generator.generate_slots(practitioner.id, target_date, now)
            if slots:
                result.append(PractitionerSlots(practitioner=practitioner, slots=slots))
        return result

    def create(
        self,
        caller: CallerContext,
        practitioner_id: int,
        patient_id: int,
        area_id: int,
        scheduled_at: datetime,
        duration_minutes: int | None = None,
        appointment_type: str = 'IN_PERSON',
        reason: str | None = None,
        notes: str | None = None,
        source: str = 'WALK_IN',
        initial_status: AppointmentStatus | str = AppointmentStatus.SCHEDULED,
    ) -> Appointment:
        duration_minutes = validate_duration(duration_minutes)
        scheduled_at = to_wall_clock(scheduled_at)
        initial_status = parse_status(initial_status)

        if scheduled_at <= self.clock():
            raise ValidationError('Appointments must be scheduled in the future.')
        if initial_status not in INITIAL_STATUSES:
            raise ValidationError(f'Appointments cannot be created as {initial_status.value}.')
        if initial_status is not AppointmentStatus.SCHEDULED and caller.role != BOT:
            raise ForbiddenError('Only automated channels may choose the initial status.')
        if appointment_type not in APPOINTMENT_TYPES:
            raise ValidationError('Invalid appointment type.')
        if source not in APPOINTMENT_SOURCES:
            raise ValidationError('Invalid appointment source.')

        tenant_id = caller.tenant_id
        directory.require_practitioner(self.db, tenant_id, practitioner_id)
        directory.require_patient(self.db, tenant_id, patient_id)
        directory.require_area(self.db, tenant_id, area_id)

        appointment = Appointment(
            clinic_id=tenant_id,
            practitioner_id=practitioner_id,
            patient_id=patient_id,
            area_id=area_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=initial_status,
            appointment_type=appointment_type,
            source=source,
            reason=reason,
            notes=notes,
            confirmation_code=generate_confirmation_code(),
            created_by=caller.actor,
        )

        try:
            self._lock_practitioner(practitioner_id)
            self._ensure_free(practitioner_id, scheduled_at, duration_minutes)
            self.db.add(appointment)
            self._commit_booking()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(
            'Booked appointment %s for practitioner %s at %s (%s min).',
            appointment.id, practitioner_id, scheduled_at, duration_minutes,
        )
        emit(self.dispatcher, BookingEvent(
            BookingEventType.APPOINTMENT_CREATED,
            tenant_id,
            appointment_summary(appointment),
        ))
        return appointment

    def reschedule(
        self,
        caller: CallerContext,
        appointment_id: int,
        new_scheduled_at: datetime | None = None,
        new_duration_minutes: int | None = None,
        new_practitioner_id: int | None = None,
        reason: str | None = None,
        notes: str | None = None,
        appointment_type: str | None = None,
    ) -> Appointment:
        """Move an appointment and edit its details as one all-or-nothing write.

        Every field is validated before anything is changed.
        """
        if new_duration_minutes is not None:
            validate_duration(new_duration_minutes)
        if appointment_type is not None and appointment_type not in APPOINTMENT_TYPES:
            raise ValidationError('Invalid appointment type.')
        if new_scheduled_at is not None:
            new_scheduled_at = to_wall_clock(new_scheduled_at)

        appointment = self.get(caller.tenant_id, appointment_id)

        scheduled_at = new_scheduled_at or appointment.scheduled_at
        duration_minutes = new_duration_minutes or appointment.duration_minutes
        practitioner_id = new_practitioner_id or appointment.practitioner_id

        move_requested = any(
            value is not None for value in (new_scheduled_at, new_duration_minutes, new_practitioner_id)
        )
        if move_requested and AppointmentStatus(appointment.status) not in RESCHEDULABLE_STATUSES:
            raise ValidationError('Only scheduled or confirmed appointments can be rescheduled.')

        window_changed = (
            scheduled_at != appointment.scheduled_at
            or duration_minutes != appointment.duration_minutes
            or practitioner_id != appointment.practitioner_id
        )
        details_changed = any(value is not None for value in (reason, notes, appointment_type))
        if not window_changed and not details_changed:
            return appointment

        if window_changed:
            if scheduled_at != appointment.scheduled_at and scheduled_at <= self.clock():
                raise ValidationError('Appointments must be scheduled in the future.')
            if practitioner_id != appointment.practitioner_id:
                directory.require_practitioner(self.db, caller.tenant_id, practitioner_id)

        try:
            if window_changed:
                self._lock_practitioner(practitioner_id)
                self._ensure_free(
                    practitioner_id, scheduled_at, duration_minutes, exclude_appointment_id=appointment.id
                )
                appointment.scheduled_at = scheduled_at
                appointment.duration_minutes = duration_minutes
                appointment.practitioner_id = practitioner_id
            if reason is not None:
                appointment.reason = reason
            if notes is not None:
                appointment.notes = notes
            if appointment_type is not None:
                appointment.appointment_type = appointment_type
            self._commit_booking()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        if window_changed:
            logger.info(
                'Rescheduled appointment %s to practitioner %s at %s (%s min).',
                appointment.id, practitioner_id, scheduled_at, duration_minutes,
            )
        return appointment

    def transition_status(
        self,
        caller: CallerContext,
        appointment_id: int,
        target_status: AppointmentStatus | str,
        cancel_reason: str | None = None,
    ) -> Appointment:
        target = parse_status(target_status)
        appointment = self.get(caller.tenant_id, appointment_id)

        if target in CLINICAL_STATUSES and caller.is_doctor and appointment.practitioner_id != caller.user_id:
            raise ForbiddenError('Only the treating practitioner can run this consultation.')

        source = apply_transition(appointment, target, self.clock(), cancel_reason)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info('Appointment %s moved from %s to %s.', appointment.id, source.value, target.value)

        if target is AppointmentStatus.CANCELLED:
            data = appointment_summary(appointment)
            data['cancel_reason'] = appointment.cancel_reason
            emit(self.dispatcher, BookingEvent(BookingEventType.APPOINTMENT_CANCELLED, caller.tenant_id, data))
        elif target is AppointmentStatus.COMPLETED:
            emit(self.dispatcher, BookingEvent(
                BookingEventType.CONSULTATION_COMPLETED,
                caller.tenant_id,
                appointment_summary(appointment),
            ))

        return appointment

    def cancel(self, caller: CallerContext, appointment_id: int, reason: str | None = None) -> Appointment:
        return self.transition_status(caller, appointment_id, AppointmentStatus.CANCELLED, reason)

    def complete(self, caller: CallerContext, appointment_id: int) -> Appointment:
        return self.transition_status(caller, appointment_id, AppointmentStatus.COMPLETED)

    def _lock_practitioner(self, practitioner_id: int) -> None:
        # Row lock on PostgreSQL. SQLite sessions already hold the write lock from BEGIN IMMEDIATE.
        self.db.query(User.id).filter(User.id == practitioner_id).with_for_update().first()

    def _ensure_free(
        self,
        practitioner_id: int,
        start: datetime,
        duration_minutes: int,
        exclude_appointment_id: int | None = None,
    ) -> None:
        conflict = self.conflicts.find_conflict(practitioner_id, start, duration_minutes, exclude_appointment_id)
        if conflict is not None:
            logger.warning(
                'Rejected booking for practitioner %s at %s: overlaps appointment %s.',
                practitioner_id, start, conflict.id,
            )
            raise SlotUnavailableError()

    def _commit_booking(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if not is_slot_collision(exc):
                raise
            logger.warning('Slot uniqueness backstop rejected a booking: %s', exc.orig)
            raise SlotUnavailableError() from exc
