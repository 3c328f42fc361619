"""
Automated-channel (chat bot) booking flow.

A thin adapter over ``BookingService``: it resolves the patient from the
phone number the channel verified, picks the area from the practitioner's
specialty, and books with the channel's initial status. Slot and conflict
rules are exactly the staff ones.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.orm import Session

from clinic_scheduler.auth.context import CallerContext
from clinic_scheduler.core import config
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.area import Area
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.user import User
from clinic_scheduler.scheduling import directory
from clinic_scheduler.scheduling.booking import BookingService, PractitionerSlots, validate_duration
from clinic_scheduler.scheduling.clock import to_wall_clock
from clinic_scheduler.scheduling.errors import NotFoundError, ValidationError
from clinic_scheduler.scheduling.status import AppointmentStatus

logger = logging.getLogger(__name__)


@dataclass
class ChannelBookingRequest:
    practitioner_id: int
    slot_start: datetime
    patient_name: str
    patient_phone: str
    duration_minutes: int | None = None
    patient_email: str | None = None
    patient_document_number: str | None = None
    reason: str | None = None


def split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if not parts:
        raise ValidationError('Patient name is required.')
    return parts[0], ' '.join(parts[1:])


class ChannelBookingService:
    def __init__(self, db: Session, booking: BookingService | None = None):
        self.db = db
        self.booking = booking or BookingService(db)

    def check_availability(
        self,
        caller: CallerContext,
        target_date: date,
        practitioner_id: int | None = None,
        specialty: str | None = None,
    ) -> list[PractitionerSlots]:
        if practitioner_id is not None:
            practitioner = directory.require_practitioner(self.db, caller.tenant_id, practitioner_id)
            slots = self.booking.available_slots(caller.tenant_id, practitioner_id, target_date)
            return [PractitionerSlots(practitioner=practitioner, slots=slots)]

        if specialty and specialty.strip():
            area = directory.find_area_by_name(self.db, caller.tenant_id, specialty)
            if area is None:
                raise NotFoundError(f'No specialty matches "{specialty.strip()}".')
            return self.booking.area_availability(caller.tenant_id, area.id, target_date)

        raise ValidationError('Either a practitioner or a specialty is required.')

    def book(self, caller: CallerContext, request: ChannelBookingRequest) -> Appointment:
        first_name, last_name = split_name(request.patient_name)
        if not request.patient_phone.strip():
            raise ValidationError('Patient phone is required.')
        validate_duration(request.duration_minutes)
        if to_wall_clock(request.slot_start) <= self.booking.clock():
            raise ValidationError('Appointments must be scheduled in the future.')

        practitioner = directory.require_practitioner(self.db, caller.tenant_id, request.practitioner_id)
        area = self._area_for(caller.tenant_id, practitioner)

        try:
            patient = self._find_or_create_patient(caller.tenant_id, request, first_name, last_name)
            return self.booking.create(
                caller,
                practitioner_id=practitioner.id,
                patient_id=patient.id,
                area_id=area.id,
                scheduled_at=request.slot_start,
                duration_minutes=request.duration_minutes,
                reason=request.reason,
                source='WHATSAPP',
                initial_status=config.CHANNEL_DEFAULT_INITIAL_STATUS,
            )
        except Exception:
            self.db.rollback()
            raise

    def cancel(
        self,
        caller: CallerContext,
        appointment_id: int | None = None,
        patient_phone: str | None = None,
        confirmation_code: str | None = None,
        reason: str | None = None,
    ) -> Appointment:
        appointment = self._find_for_cancel(caller.tenant_id, appointment_id, patient_phone, confirmation_code)

        if appointment.scheduled_at < self.booking.clock():
            raise ValidationError('Past appointments cannot be cancelled.')

        return self.booking.cancel(caller, appointment.id, reason or config.CHANNEL_CANCEL_REASON)

    def _find_for_cancel(
        self,
        tenant_id: int,
        appointment_id: int | None,
        patient_phone: str | None,
        confirmation_code: str | None,
    ) -> Appointment:
        if appointment_id is not None:
            return self.booking.get(tenant_id, appointment_id)

        if not patient_phone or not confirmation_code:
            raise ValidationError('An appointment id, or a phone number with a confirmation code, is required.')

        appointment = self.db.query(Appointment).join(Patient, Patient.id == Appointment.patient_id).filter(
            Appointment.clinic_id == tenant_id,
            Appointment.confirmation_code == confirmation_code.strip().upper(),
            Patient.phone == patient_phone.strip(),
            Appointment.status.not_in([AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED]),
        ).first()
        if appointment is None:
            raise NotFoundError('Appointment not found. Check the confirmation code.')
        return appointment

    def _area_for(self, tenant_id: int, practitioner: User) -> Area:
        if practitioner.specialty_id is not None:
            return directory.require_area(self.db, tenant_id, practitioner.specialty_id)

        areas = directory.list_areas(self.db, tenant_id)
        if not areas:
            raise NotFoundError('No active area is configured for this clinic.')
        return areas[0]

    def _find_or_create_patient(
        self,
        tenant_id: int,
        request: ChannelBookingRequest,
        first_name: str,
        last_name: str,
    ) -> Patient:
        phone = request.patient_phone.strip()
        patient = self.db.query(Patient).filter(
            Patient.clinic_id == tenant_id,
            Patient.phone == phone,
            Patient.is_active.is_(True),
        ).first()
        if patient is not None:
            return patient

        patient = Patient(
            clinic_id=tenant_id,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            email=request.patient_email,
            document_number=request.patient_document_number,
            source='WHATSAPP',
        )
        self.db.add(patient)
        # Flushed, not committed: the booking commit persists both or neither.
        self.db.flush()

        logger.info('Registered patient %s from automated channel for clinic %s.', patient.id, tenant_id)
        return patient
