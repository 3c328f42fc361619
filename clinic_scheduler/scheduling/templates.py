"""
Availability template store.

Templates are edited by clinic administrators only. The booking flow reads
them and never writes. Removal is a soft deactivation so that historical
schedules stay inspectable.
"""

import logging
from dataclasses import dataclass
from datetime import time

from sqlalchemy.orm import Session

from clinic_scheduler.models.availability import AvailabilityTemplate
from clinic_scheduler.scheduling.directory import require_practitioner
from clinic_scheduler.scheduling.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('day_of_week', 'start_time', 'end_time', 'slot_duration', 'max_concurrent', 'active')


@dataclass
class TemplateWindow:
    day_of_week: int
    start_time: time
    end_time: time
    slot_duration: int = 30
    max_concurrent: int = 1


def validate_window(
    day_of_week: int,
    start_time: time,
    end_time: time,
    slot_duration: int,
    max_concurrent: int,
) -> None:
    if not 0 <= day_of_week <= 6:
        raise ValidationError('Day of week must be between 0 (Monday) and 6 (Sunday).')
    if not isinstance(start_time, time) or not isinstance(end_time, time):
        raise ValidationError('Start and end times must be wall-clock times.')
    if start_time >= end_time:
        raise ValidationError('Start time must be before end time.')
    if slot_duration <= 0:
        raise ValidationError('Slot duration must be a positive number of minutes.')
    if max_concurrent < 1:
        raise ValidationError('Max concurrent bookings must be at least 1.')


class TemplateStore:
    def __init__(self, db: Session):
        self.db = db

    def list_for_practitioner(
        self,
        tenant_id: int,
        practitioner_id: int,
        include_inactive: bool = False,
    ) -> list[AvailabilityTemplate]:
        require_practitioner(self.db, tenant_id, practitioner_id)

        query = self.db.query(AvailabilityTemplate).filter(
            AvailabilityTemplate.clinic_id == tenant_id,
            AvailabilityTemplate.practitioner_id == practitioner_id,
        )
        if not include_inactive:
            query = query.filter(AvailabilityTemplate.active.is_(True))

        return query.order_by(
            AvailabilityTemplate.day_of_week.asc(),
            AvailabilityTemplate.start_time.asc(),
        ).all()

    def get(self, tenant_id: int, template_id: int) -> AvailabilityTemplate:
        template = self.db.query(AvailabilityTemplate).filter(
            AvailabilityTemplate.id == template_id,
            AvailabilityTemplate.clinic_id == tenant_id,
        ).first()
        if template is None:
            raise NotFoundError('Availability template not found.')
        return template

    def create(self, tenant_id: int, practitioner_id: int, window: TemplateWindow) -> AvailabilityTemplate:
        validate_window(
            window.day_of_week,
            window.start_time,
            window.end_time,
            window.slot_duration,
            window.max_concurrent,
        )
        require_practitioner(self.db, tenant_id, practitioner_id)

        template = self._build(tenant_id, practitioner_id, window)
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)

        logger.info(
            'Created availability template %s for practitioner %s (day %s, %s-%s).',
            template.id, practitioner_id, window.day_of_week, window.start_time, window.end_time,
        )
        return template

    def update(self, tenant_id: int, template_id: int, **changes) -> AvailabilityTemplate:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f'Unknown template fields: {", ".join(sorted(unknown))}.')

        template = self.get(tenant_id, template_id)
        merged = {name: getattr(template, name) for name in EDITABLE_FIELDS}
        merged.update({name: value for name, value in changes.items() if value is not None})

        validate_window(
            merged['day_of_week'],
            merged['start_time'],
            merged['end_time'],
            merged['slot_duration'],
            merged['max_concurrent'],
        )

        for name, value in merged.items():
            setattr(template, name, value)
        self.db.commit()
        self.db.refresh(template)
        return template

    def deactivate(self, tenant_id: int, template_id: int) -> AvailabilityTemplate:
        template = self.get(tenant_id, template_id)
        template.active = False
        self.db.commit()
        self.db.refresh(template)

        logger.info('Deactivated availability template %s.', template_id)
        return template

    def replace_week(
        self,
        tenant_id: int,
        practitioner_id: int,
        windows: list[TemplateWindow],
    ) -> list[AvailabilityTemplate]:
        for window in windows:
            validate_window(
                window.day_of_week,
                window.start_time,
                window.end_time,
                window.slot_duration,
                window.max_concurrent,
            )
        require_practitioner(self.db, tenant_id, practitioner_id)

        try:
            self.db.query(AvailabilityTemplate).filter(
                AvailabilityTemplate.clinic_id == tenant_id,
                AvailabilityTemplate.practitioner_id == practitioner_id,
                AvailabilityTemplate.active.is_(True),
            ).update({AvailabilityTemplate.active: False}, synchronize_session='fetch')

            for window in windows:
                self.db.add(self._build(tenant_id, practitioner_id, window))

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return self.list_for_practitioner(tenant_id, practitioner_id)

    @staticmethod
    def _build(tenant_id: int, practitioner_id: int, window: TemplateWindow) -> AvailabilityTemplate:
        return AvailabilityTemplate(
            clinic_id=tenant_id,
            practitioner_id=practitioner_id,
            day_of_week=window.day_of_week,
            start_time=window.start_time,
            end_time=window.end_time,
            slot_duration=window.slot_duration,
            max_concurrent=window.max_concurrent,
            active=True,
        )
