"""
Slot generation from weekly availability templates.

Slots are never stored. Every call re-reads the practitioner's active
templates for the weekday and the bookings that still hold time on that date,
then walks each template window in steps of its ``slot_duration``.

Overlapping templates on the same day are walked independently, so two
templates covering the same hour can yield slots with the same start. Set
``SLOT_DEDUPLICATE`` to collapse identical ``(start, end)`` pairs.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from clinic_scheduler.core import config
from clinic_scheduler.models.availability import AvailabilityTemplate
from clinic_scheduler.scheduling.conflicts import booked_intervals, overlaps


@dataclass(frozen=True, order=True)
class Slot:
    start: datetime
    end: datetime


def walk_template(
    template: AvailabilityTemplate,
    target_date: date,
    booked: list[tuple[datetime, datetime]],
    now: datetime,
) -> list[Slot]:
    """Eligible slots of one template on ``target_date``.

    A slot is eligible when it overlaps no booked interval and starts strictly
    after ``now``.
    """
    if template.slot_duration is None or template.slot_duration <= 0:
        raise ValueError(f'Availability template {template.id} has a non-positive slot duration.')
    if template.start_time >= template.end_time:
        raise ValueError(f'Availability template {template.id} ends before it starts.')

    step = timedelta(minutes=template.slot_duration)
    cursor = datetime.combine(target_date, template.start_time)
    window_end = datetime.combine(target_date, template.end_time)

    slots: list[Slot] = []
    while cursor < window_end:
        slot_end = cursor + step
        occupied = any(overlaps(cursor, slot_end, booked_start, booked_end) for booked_start, booked_end in booked)

        if not occupied and cursor > now:
            slots.append(Slot(start=cursor, end=slot_end))

        cursor = slot_end

    return slots


class SlotGenerator:
    def __init__(self, db: Session, deduplicate: bool | None = None):
        self.db = db
        self.deduplicate = config.SLOT_DEDUPLICATE if deduplicate is None else deduplicate

    def active_templates(self, practitioner_id: int, day_of_week: int) -> list[AvailabilityTemplate]:
        return self.db.query(AvailabilityTemplate).filter(
            AvailabilityTemplate.practitioner_id == practitioner_id,
            AvailabilityTemplate.day_of_week == day_of_week,
            AvailabilityTemplate.active.is_(True),
        ).order_by(AvailabilityTemplate.start_time.asc(), AvailabilityTemplate.id.asc()).all()

    def generate_slots(self, practitioner_id: int, target_date: date, now: datetime) -> list[Slot]:
        templates = self.active_templates(practitioner_id, target_date.weekday())
        if not templates:
            return []

        booked = booked_intervals(self.db, practitioner_id, target_date)

        slots: list[Slot] = []
        for template in templates:
            slots.extend(walk_template(template, target_date, booked, now))

        if self.deduplicate:
            slots = list(set(slots))

        slots.sort()
        return slots
