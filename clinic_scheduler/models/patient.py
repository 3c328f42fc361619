"""Patient model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from clinic_scheduler.database import Base


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, default="")
    phone = Column(String, index=True)
    email = Column(String)
    document_number = Column(String)
    source = Column(String, default="WALK_IN")
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
