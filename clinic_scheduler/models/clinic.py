"""Clinic (tenant) model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from clinic_scheduler.database import Base


class Clinic(Base):
    """A tenant. Every other record is scoped to exactly one clinic."""
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    subscription_status = Column(String, default="ACTIVE")  # ACTIVE/TRIAL/SUSPENDED/CANCELLED
    api_key = Column(String, unique=True, index=True)
    api_key_expires_at = Column(DateTime)
    bot_enabled = Column(Boolean, default=False, nullable=False)
