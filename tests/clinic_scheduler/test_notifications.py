import logging
from datetime import datetime, timezone

from clinic_scheduler.notifications import (
    BookingEvent,
    BookingEventType,
    LoggingDispatcher,
    emit,
    get_dispatcher,
    set_dispatcher,
)


def test_event_payload_shape() -> None:
    event = BookingEvent(
        BookingEventType.APPOINTMENT_CANCELLED,
        3,
        {'appointment_id': 12},
        timestamp=datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc),
    )

    assert event.to_payload() == {
        'event': 'APPOINTMENT_CANCELLED',
        'timestamp': '2026-01-05T09:00:00+00:00',
        'tenant_id': 3,
        'data': {'appointment_id': 12},
    }


def test_logging_dispatcher_records_event(caplog) -> None:
    caplog.set_level(logging.INFO, logger='clinic_scheduler.notifications')

    emit(LoggingDispatcher(), BookingEvent(BookingEventType.APPOINTMENT_CREATED, 1, {'appointment_id': 5}))

    assert 'Booking event APPOINTMENT_CREATED for clinic 1' in caplog.text
    assert "'data': {'appointment_id': 5}" in caplog.text


def test_emit_logs_dispatch_failures(caplog) -> None:
    class BrokenDispatcher:
        def dispatch(self, event) -> None:
            raise ConnectionError('refused')

    emit(BrokenDispatcher(), BookingEvent(BookingEventType.CONSULTATION_COMPLETED, 2, {}))

    assert 'Dispatching CONSULTATION_COMPLETED for clinic 2 failed.' in caplog.text
    assert caplog.records[-1].exc_info is not None


def test_set_dispatcher_replaces_default() -> None:
    previous = get_dispatcher()

    class Custom:
        def dispatch(self, event) -> None:
            pass

    custom = Custom()
    try:
        set_dispatcher(custom)
        assert get_dispatcher() is custom
    finally:
        set_dispatcher(previous)
