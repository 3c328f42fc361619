"""Overlap detection between a candidate window and a practitioner's bookings."""

from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.scheduling.status import RELEASED_STATUSES


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open overlap: ``[a, b)`` and ``[c, d)`` intersect iff ``a < d and c < b``."""
    return start_a < end_b and start_b < end_a


def booked_intervals(db: Session, practitioner_id: int, target_date: date) -> list[tuple[datetime, datetime]]:
    """Windows held on ``target_date`` by appointments that still occupy their slot.

    Appointments that started the previous evening and run past midnight are
    included, since they still block the early part of the day.
    """
    day_start = datetime.combine(target_date, time.min)
    day_end = day_start + timedelta(days=1)

    appointments = _active_appointments(db, practitioner_id).filter(
        Appointment.scheduled_at < day_end,
        Appointment.scheduled_at >= day_start - timedelta(days=1),
    ).all()

    intervals = [
        (appointment.scheduled_at, appointment.end_at)
        for appointment in appointments
        if overlaps(appointment.scheduled_at, appointment.end_at, day_start, day_end)
    ]
    intervals.sort()
    return intervals


class ConflictDetector:
    """Single source of truth for "is this time free for this practitioner".

    This is a pre-check. Callers writing a booking still rely on the
    transaction and the ``uq_appointments_practitioner_slot`` index.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_conflict(
        self,
        practitioner_id: int,
        start: datetime,
        duration_minutes: int,
        exclude_appointment_id: int | None = None,
    ) -> Appointment | None:
        end = start + timedelta(minutes=duration_minutes)

        # Existing rows can only overlap if they start before our end; the
        # lower bound keeps the scan to a day's worth of rows around ``start``.
        query = _active_appointments(self.db, practitioner_id).filter(
            Appointment.scheduled_at < end,
            Appointment.scheduled_at >= start - timedelta(days=1),
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        for existing in query.order_by(Appointment.scheduled_at.asc()).all():
            if overlaps(existing.scheduled_at, existing.end_at, start, end):
                return existing
        return None

    def has_conflict(
        self,
        practitioner_id: int,
        start: datetime,
        duration_minutes: int,
        exclude_appointment_id: int | None = None,
    ) -> bool:
        return self.find_conflict(practitioner_id, start, duration_minutes, exclude_appointment_id) is not None


def _active_appointments(db: Session, practitioner_id: int):
    return db.query(Appointment).filter(
        Appointment.practitioner_id == practitioner_id,
        Appointment.status.not_in(list(RELEASED_STATUSES)),
    )
