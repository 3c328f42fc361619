"""User model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from clinic_scheduler.database import Base


class User(Base):
    """Represents a staff member. Practitioners are users with the DOCTOR role."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    clinic_id = Column(Integer, ForeignKey("clinics.id"), index=True)
    email = Column(String, unique=True, index=True)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    hashed_password = Column(String)
    role = Column(String)  # SUPER_ADMIN/CLINIC_ADMIN/SECRETARY/DOCTOR
    specialty_id = Column(Integer, ForeignKey("areas.id"))
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
