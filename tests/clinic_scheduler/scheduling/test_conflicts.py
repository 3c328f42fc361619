from datetime import date, datetime

from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.scheduling.conflicts import ConflictDetector, booked_intervals, overlaps
from clinic_scheduler.scheduling.status import AppointmentStatus


def _book(db, clinic, doctor, patient, area, scheduled_at, duration=30, status=AppointmentStatus.SCHEDULED):
    appointment = Appointment(
        clinic_id=clinic.id,
        practitioner_id=doctor.id,
        patient_id=patient.id,
        area_id=area.id,
        scheduled_at=scheduled_at,
        duration_minutes=duration,
        status=status,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def test_overlaps_is_half_open() -> None:
    nine = datetime(2026, 1, 5, 9, 0)
    half_past = datetime(2026, 1, 5, 9, 30)
    ten = datetime(2026, 1, 5, 10, 0)

    assert not overlaps(nine, half_past, half_past, ten)
    assert not overlaps(half_past, ten, nine, half_past)
    assert overlaps(nine, ten, half_past, ten)
    assert overlaps(half_past, datetime(2026, 1, 5, 9, 45), nine, ten)


def test_find_conflict_detects_longer_existing_booking(db, clinic, doctor, patient, area) -> None:
    existing = _book(db, clinic, doctor, patient, area, datetime(2026, 1, 5, 10, 0), duration=60)
    detector = ConflictDetector(db)

    assert detector.find_conflict(doctor.id, datetime(2026, 1, 5, 10, 30), 30).id == existing.id
    assert detector.find_conflict(doctor.id, datetime(2026, 1, 5, 11, 0), 30) is None
    assert detector.find_conflict(doctor.id, datetime(2026, 1, 5, 9, 30), 30) is None
    assert detector.has_conflict(doctor.id, datetime(2026, 1, 5, 9, 45), 30)


def test_find_conflict_ignores_released_appointments(db, clinic, doctor, patient, area) -> None:
    _book(db, clinic, doctor, patient, area, datetime(2026, 1, 5, 10, 0), status=AppointmentStatus.CANCELLED)
    _book(db, clinic, doctor, patient, area, datetime(2026, 1, 5, 11, 0), status=AppointmentStatus.NO_SHOW)
    detector = ConflictDetector(db)

    assert not detector.has_conflict(doctor.id, datetime(2026, 1, 5, 10, 0), 30)
    assert not detector.has_conflict(doctor.id, datetime(2026, 1, 5, 11, 0), 30)


def test_find_conflict_can_exclude_an_appointment(db, clinic, doctor, patient, area) -> None:
    existing = _book(db, clinic, doctor, patient, area, datetime(2026, 1, 5, 10, 0))
    detector = ConflictDetector(db)

    assert detector.find_conflict(doctor.id, datetime(2026, 1, 5, 10, 15), 30, exclude_appointment_id=existing.id) is None


def test_find_conflict_is_scoped_to_the_practitioner(db, clinic, doctor, other_doctor, patient, area) -> None:
    _book(db, clinic, doctor, patient, area, datetime(2026, 1, 5, 10, 0))

    assert not ConflictDetector(db).has_conflict(other_doctor.id, datetime(2026, 1, 5, 10, 0), 30)


def test_booked_intervals_include_bookings_running_past_midnight(db, clinic, doctor, patient, area) -> None:
    _book(db, clinic, doctor, patient, area, datetime(2026, 1, 4, 23, 30), duration=60)
    _book(db, clinic, doctor, patient, area, datetime(2026, 1, 4, 20, 0), duration=30)
    _book(db, clinic, doctor, patient, area, datetime(2026, 1, 5, 9, 0))

    intervals = booked_intervals(db, doctor.id, date(2026, 1, 5))

    assert intervals == [
        (datetime(2026, 1, 4, 23, 30), datetime(2026, 1, 5, 0, 30)),
        (datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 9, 30)),
    ]
