from datetime import date, datetime

import pytest

from clinic_scheduler.auth.context import BOT, CallerContext
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.scheduling.booking import BookingService
from clinic_scheduler.scheduling.channel import ChannelBookingRequest, ChannelBookingService, split_name
from clinic_scheduler.scheduling.errors import NotFoundError, SlotUnavailableError, ValidationError
from clinic_scheduler.scheduling.status import AppointmentStatus

MONDAY = date(2026, 1, 5)
NOW = datetime(2026, 1, 5, 8, 0)


@pytest.fixture
def bot(clinic):
    return CallerContext(tenant_id=clinic.id, role=BOT)


@pytest.fixture
def channel(db, recorder):
    return ChannelBookingService(db, BookingService(db, dispatcher=recorder, clock=lambda: NOW))


def _request(doctor, hour=9, minute=30, phone='+5491100000099', name='Lucia Fernandez Gil'):
    return ChannelBookingRequest(
        practitioner_id=doctor.id,
        slot_start=datetime(2026, 1, 5, hour, minute),
        patient_name=name,
        patient_phone=phone,
    )


def test_split_name() -> None:
    assert split_name('  Lucia  Fernandez Gil ') == ('Lucia', 'Fernandez Gil')
    assert split_name('Cher') == ('Cher', '')

    with pytest.raises(ValidationError):
        split_name('   ')


def test_check_availability_for_a_practitioner(channel, bot, doctor, monday_template) -> None:
    result = channel.check_availability(bot, MONDAY, practitioner_id=doctor.id)

    assert len(result) == 1
    assert result[0].practitioner.id == doctor.id
    assert len(result[0].slots) == 8


def test_check_availability_by_specialty_name(channel, bot, doctor, monday_template) -> None:
    result = channel.check_availability(bot, MONDAY, specialty='cardio')

    assert [entry.practitioner.id for entry in result] == [doctor.id]


def test_check_availability_requires_a_target(channel, bot) -> None:
    with pytest.raises(ValidationError):
        channel.check_availability(bot, MONDAY)


def test_check_availability_unknown_specialty(channel, bot, area) -> None:
    with pytest.raises(NotFoundError):
        channel.check_availability(bot, MONDAY, specialty='Dermatology')


def test_book_registers_patient_and_confirms(channel, bot, db, doctor, area, recorder) -> None:
    appointment = channel.book(bot, _request(doctor))

    patient = db.get(Patient, appointment.patient_id)
    assert (patient.first_name, patient.last_name, patient.phone) == ('Lucia', 'Fernandez Gil', '+5491100000099')
    assert patient.source == 'WHATSAPP'
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert appointment.source == 'WHATSAPP'
    assert appointment.area_id == area.id
    assert appointment.created_by == BOT
    assert recorder.events[-1].data['confirmation_code'] == appointment.confirmation_code


def test_book_reuses_patient_with_same_phone(channel, bot, db, doctor, patient) -> None:
    appointment = channel.book(bot, _request(doctor, phone=patient.phone, name='Someone Else'))

    assert appointment.patient_id == patient.id
    assert db.query(Patient).count() == 1


def test_book_taken_slot_leaves_no_new_patient(channel, bot, db, doctor) -> None:
    channel.book(bot, _request(doctor))

    with pytest.raises(SlotUnavailableError):
        channel.book(bot, _request(doctor, phone='+5491100000100', name='Marta Vidal'))

    assert db.query(Patient).filter(Patient.phone == '+5491100000100').count() == 0


def test_book_validates_before_touching_the_store(channel, bot, db, doctor) -> None:
    with pytest.raises(ValidationError):
        channel.book(bot, _request(doctor, hour=7))
    with pytest.raises(ValidationError):
        channel.book(bot, _request(doctor, name=' '))

    assert db.query(Patient).count() == 0


def test_cancel_by_phone_and_confirmation_code(channel, bot, doctor, recorder) -> None:
    appointment = channel.book(bot, _request(doctor))

    cancelled = channel.cancel(
        bot,
        patient_phone='+5491100000099',
        confirmation_code=appointment.confirmation_code.lower(),
    )

    assert cancelled.id == appointment.id
    assert cancelled.status == AppointmentStatus.CANCELLED
    assert cancelled.cancel_reason == 'Cancelled by patient via automated channel'


def test_cancel_with_wrong_code_is_not_found(channel, bot, doctor) -> None:
    channel.book(bot, _request(doctor))

    with pytest.raises(NotFoundError):
        channel.cancel(bot, patient_phone='+5491100000099', confirmation_code='ZZZZZZ')


def test_cancel_requires_an_identifier(channel, bot) -> None:
    with pytest.raises(ValidationError):
        channel.cancel(bot, patient_phone='+5491100000099')


def test_cancel_refuses_past_appointments(db, bot, doctor, recorder) -> None:
    booked = ChannelBookingService(db, BookingService(db, dispatcher=recorder, clock=lambda: NOW)).book(
        bot, _request(doctor)
    )
    later = ChannelBookingService(db, BookingService(db, dispatcher=recorder, clock=lambda: datetime(2026, 1, 5, 12, 0)))

    with pytest.raises(ValidationError):
        later.cancel(bot, appointment_id=booked.id, reason='Too late')
