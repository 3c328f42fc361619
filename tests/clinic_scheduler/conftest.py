import os
from datetime import time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_scheduler.auth.context import CLINIC_ADMIN, DOCTOR, SECRETARY, CallerContext  # noqa: E402
from clinic_scheduler.database import Base  # noqa: E402
from clinic_scheduler.models.appointment import Appointment  # noqa: E402, F401
from clinic_scheduler.models.area import Area  # noqa: E402
from clinic_scheduler.models.availability import AvailabilityTemplate  # noqa: E402
from clinic_scheduler.models.clinic import Clinic  # noqa: E402
from clinic_scheduler.models.patient import Patient  # noqa: E402
from clinic_scheduler.models.user import User  # noqa: E402


class RecordingDispatcher:
    def __init__(self):
        self.events = []

    def dispatch(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clinic(db):
    clinic = Clinic(name='North Clinic', slug='north', api_key='north-key', bot_enabled=True)
    db.add(clinic)
    db.commit()
    db.refresh(clinic)
    return clinic


@pytest.fixture
def other_clinic(db):
    clinic = Clinic(name='South Clinic', slug='south', api_key='south-key', bot_enabled=True)
    db.add(clinic)
    db.commit()
    db.refresh(clinic)
    return clinic


@pytest.fixture
def area(db, clinic):
    area = Area(clinic_id=clinic.id, name='Cardiology')
    db.add(area)
    db.commit()
    db.refresh(area)
    return area


@pytest.fixture
def doctor(db, clinic, area):
    user = User(
        clinic_id=clinic.id,
        email='ana.lopez@north.test',
        first_name='Ana',
        last_name='Lopez',
        role=DOCTOR,
        specialty_id=area.id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_doctor(db, clinic, area):
    user = User(
        clinic_id=clinic.id,
        email='ben.diaz@north.test',
        first_name='Ben',
        last_name='Diaz',
        role=DOCTOR,
        specialty_id=area.id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def patient(db, clinic):
    patient = Patient(clinic_id=clinic.id, first_name='Carla', last_name='Ruiz', phone='+5491100000001')
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


@pytest.fixture
def monday_template(db, clinic, doctor):
    template = AvailabilityTemplate(
        clinic_id=clinic.id,
        practitioner_id=doctor.id,
        day_of_week=0,
        start_time=time(9, 0),
        end_time=time(13, 0),
        slot_duration=30,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


@pytest.fixture
def secretary(clinic):
    return CallerContext(tenant_id=clinic.id, role=SECRETARY, user_id=900)


@pytest.fixture
def admin(clinic):
    return CallerContext(tenant_id=clinic.id, role=CLINIC_ADMIN, user_id=901)


@pytest.fixture
def recorder():
    return RecordingDispatcher()
