"""Area (medical specialty) model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from clinic_scheduler.database import Base


class Area(Base):
    __tablename__ = "areas"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    color = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
