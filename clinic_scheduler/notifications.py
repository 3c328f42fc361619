"""
Logical booking events handed to the notification collaborator.

Delivery (webhooks, WhatsApp, retries, signing) happens elsewhere. Booking code
dispatches after its transaction commits and never waits on, or fails because
of, delivery.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class BookingEventType(str, Enum):
    APPOINTMENT_CREATED = 'APPOINTMENT_CREATED'
    APPOINTMENT_CANCELLED = 'APPOINTMENT_CANCELLED'
    CONSULTATION_COMPLETED = 'CONSULTATION_COMPLETED'


@dataclass
class BookingEvent:
    event: BookingEventType
    tenant_id: int
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        return {
            'event': self.event.value,
            'timestamp': self.timestamp.isoformat(),
            'tenant_id': self.tenant_id,
            'data': self.data,
        }


class NotificationDispatcher(Protocol):
    def dispatch(self, event: BookingEvent) -> None:
        ...


class LoggingDispatcher:
    """Default dispatcher: records events in the application log."""

    def dispatch(self, event: BookingEvent) -> None:
        logger.info(
            'Booking event %s for clinic %s: %s',
            event.event.value, event.tenant_id, event.to_payload(),
        )


_dispatcher: NotificationDispatcher = LoggingDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def set_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def emit(dispatcher: NotificationDispatcher, event: BookingEvent) -> None:
    try:
        dispatcher.dispatch(event)
    except Exception:
        logger.exception('Dispatching %s for clinic %s failed.', event.event.value, event.tenant_id)
