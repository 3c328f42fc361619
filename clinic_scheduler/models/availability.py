"""Availability template model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Time, func
from clinic_scheduler.database import Base


class AvailabilityTemplate(Base):
    """A recurring weekly window in which a practitioner can be booked.

    ``day_of_week`` follows ``date.weekday()``: 0 is Monday, 6 is Sunday.
    """
    __tablename__ = "availability_templates"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_templates_window"),
        CheckConstraint("slot_duration > 0", name="ck_templates_slot_duration"),
        Index("idx_templates_practitioner_day", "practitioner_id", "day_of_week", "active"),
    )

    id = Column(Integer, primary_key=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), nullable=False)
    practitioner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    slot_duration = Column(Integer, nullable=False, default=30)
    max_concurrent = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
