"""Appointment model definitions."""

from datetime import timedelta

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, func, text
from clinic_scheduler.database import ACTIVE_SLOT_PREDICATE, SLOT_UNIQUE_INDEX, Base
from clinic_scheduler.scheduling.status import AppointmentStatus


class Appointment(Base):
    """Represents a booking. Cancellation is a status, rows are never deleted."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_practitioner_start", "practitioner_id", "scheduled_at"),
        # Storage-level backstop against two live bookings starting together.
        Index(
            SLOT_UNIQUE_INDEX,
            "practitioner_id",
            "scheduled_at",
            unique=True,
            sqlite_where=text(ACTIVE_SLOT_PREDICATE),
            postgresql_where=text(ACTIVE_SLOT_PREDICATE),
        ),
    )

    id = Column(Integer, primary_key=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False, index=True)
    practitioner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    area_id = Column(Integer, ForeignKey("areas.id"), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    status = Column(
        Enum(AppointmentStatus, native_enum=False, length=20),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    appointment_type = Column(String(20), default="IN_PERSON")
    source = Column(String(20), default="WALK_IN")
    reason = Column(String)
    notes = Column(String)
    cancel_reason = Column(String)
    cancelled_at = Column(DateTime)
    confirmation_code = Column(String(6), index=True)
    created_by = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def end_at(self):
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)
