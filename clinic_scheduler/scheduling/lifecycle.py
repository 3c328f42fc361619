from datetime import datetime

from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.scheduling.status import AppointmentStatus, ensure_transition


def apply_transition(
    appointment: Appointment,
    target: AppointmentStatus,
    now: datetime,
    cancel_reason: str | None = None,
) -> AppointmentStatus:
    """Move ``appointment`` to ``target`` in place and return the previous status.

    Raises ``InvalidTransitionError`` without touching the appointment when the
    move is not in the transition table.
    """
    source = AppointmentStatus(appointment.status)
    ensure_transition(source, target)

    appointment.status = target
    if target is AppointmentStatus.CANCELLED:
        appointment.cancelled_at = now
        appointment.cancel_reason = cancel_reason if cancel_reason is not None else ''

    return source
