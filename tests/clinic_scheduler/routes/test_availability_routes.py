from datetime import date, time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from clinic_scheduler.routes.availability_routes import (
    TemplateRequest,
    TemplateUpdateRequest,
    create_template,
    deactivate_template,
    list_available_slots,
    list_templates,
    replace_week,
    update_template,
)

MONDAY = date(2030, 1, 7)


@pytest.fixture(autouse=True)
def _skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_scheduler.routes.availability_routes.ensure_database_ready', lambda: None)


def test_template_request_rejects_out_of_range_day() -> None:
    with pytest.raises(ValidationError):
        TemplateRequest(day_of_week=7, start_time=time(9, 0), end_time=time(10, 0))


def test_create_and_list_templates(db, admin, doctor) -> None:
    created = create_template(
        practitioner_id=doctor.id,
        data=TemplateRequest(day_of_week=0, start_time=time(9, 0), end_time=time(13, 0)),
        db=db,
        caller=admin,
    )

    listed = list_templates(practitioner_id=doctor.id, include_inactive=False, db=db, caller=admin)

    assert created.slot_duration == 30
    assert [template.id for template in listed] == [created.id]


def test_inverted_window_maps_to_bad_request(db, admin, doctor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_template(
            practitioner_id=doctor.id,
            data=TemplateRequest(day_of_week=0, start_time=time(13, 0), end_time=time(9, 0)),
            db=db,
            caller=admin,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Start time must be before end time.'


def test_update_and_deactivate_template(db, admin, monday_template) -> None:
    updated = update_template(
        template_id=monday_template.id,
        data=TemplateUpdateRequest(slot_duration=60),
        db=db,
        caller=admin,
    )
    deactivated = deactivate_template(template_id=monday_template.id, db=db, caller=admin)

    assert updated.slot_duration == 60
    assert deactivated.active is False


def test_replace_week(db, admin, doctor, monday_template) -> None:
    active = replace_week(
        practitioner_id=doctor.id,
        data=[TemplateRequest(day_of_week=4, start_time=time(8, 0), end_time=time(10, 0))],
        db=db,
        caller=admin,
    )

    assert [template.day_of_week for template in active] == [4]


def test_slots_for_practitioner(db, secretary, doctor, monday_template) -> None:
    slots = list_available_slots(target_date=MONDAY, practitioner_id=doctor.id, area_id=None, db=db, caller=secretary)

    assert len(slots) == 8
    assert slots[0].start.time() == time(9, 0)
    assert {slot.practitioner_id for slot in slots} == {doctor.id}


def test_slots_for_area_are_merged_in_time_order(db, admin, secretary, doctor, other_doctor, area, monday_template) -> None:
    create_template(
        practitioner_id=other_doctor.id,
        data=TemplateRequest(day_of_week=0, start_time=time(9, 15), end_time=time(9, 45)),
        db=db,
        caller=admin,
    )

    slots = list_available_slots(target_date=MONDAY, practitioner_id=None, area_id=area.id, db=db, caller=secretary)

    assert [(slot.start.time(), slot.practitioner_id) for slot in slots[:3]] == [
        (time(9, 0), doctor.id),
        (time(9, 15), other_doctor.id),
        (time(9, 30), doctor.id),
    ]


@pytest.mark.parametrize(('practitioner_id', 'area_id'), [(None, None), (1, 1)])
def test_slots_require_exactly_one_target(db, secretary, practitioner_id, area_id) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(
            target_date=MONDAY,
            practitioner_id=practitioner_id,
            area_id=area_id,
            db=db,
            caller=secretary,
        )

    assert exception_info.value.status_code == 400


def test_unknown_practitioner_maps_to_not_found(db, secretary) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_available_slots(target_date=MONDAY, practitioner_id=404, area_id=None, db=db, caller=secretary)

    assert exception_info.value.status_code == 404
    assert exception_info.value.headers == {'X-Error-Code': 'not_found'}
