"""Existence and tenant-membership checks for records a booking references."""

from sqlalchemy.orm import Session

from clinic_scheduler.auth.context import DOCTOR
from clinic_scheduler.models.area import Area
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.user import User
from clinic_scheduler.scheduling.errors import NotFoundError


def find_practitioner(db: Session, tenant_id: int, practitioner_id: int) -> User | None:
    return db.query(User).filter(
        User.id == practitioner_id,
        User.clinic_id == tenant_id,
        User.role == DOCTOR,
        User.is_active.is_(True),
    ).first()


def require_practitioner(db: Session, tenant_id: int, practitioner_id: int) -> User:
    practitioner = find_practitioner(db, tenant_id, practitioner_id)
    if practitioner is None:
        raise NotFoundError('Practitioner not found.')
    return practitioner


def require_patient(db: Session, tenant_id: int, patient_id: int) -> Patient:
    patient = db.query(Patient).filter(
        Patient.id == patient_id,
        Patient.clinic_id == tenant_id,
        Patient.is_active.is_(True),
    ).first()
    if patient is None:
        raise NotFoundError('Patient not found.')
    return patient


def require_area(db: Session, tenant_id: int, area_id: int) -> Area:
    area = db.query(Area).filter(
        Area.id == area_id,
        Area.clinic_id == tenant_id,
        Area.is_active.is_(True),
    ).first()
    if area is None:
        raise NotFoundError('Area not found.')
    return area


def list_practitioners(
    db: Session,
    tenant_id: int,
    area_id: int | None = None,
    specialty: str | None = None,
) -> list[User]:
    query = db.query(User).filter(
        User.clinic_id == tenant_id,
        User.role == DOCTOR,
        User.is_active.is_(True),
    )
    if area_id is not None:
        query = query.filter(User.specialty_id == area_id)
    if specialty:
        query = query.join(Area, Area.id == User.specialty_id).filter(
            Area.name.ilike(f'%{specialty.strip()}%'),
            Area.is_active.is_(True),
        )
    return query.order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc()).all()


def list_areas(db: Session, tenant_id: int) -> list[Area]:
    return db.query(Area).filter(
        Area.clinic_id == tenant_id,
        Area.is_active.is_(True),
    ).order_by(Area.name.asc()).all()


def find_area_by_name(db: Session, tenant_id: int, specialty: str) -> Area | None:
    return db.query(Area).filter(
        Area.clinic_id == tenant_id,
        Area.name.ilike(f'%{specialty.strip()}%'),
        Area.is_active.is_(True),
    ).order_by(Area.name.asc()).first()
