from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from clinic_scheduler.core import config


def clinic_timezone() -> tzinfo:
    if config.CLINIC_TIMEZONE.upper() == 'UTC':
        return timezone.utc
    return ZoneInfo(config.CLINIC_TIMEZONE)


def to_wall_clock(value: datetime) -> datetime:
    """Naive clinic-local time for ``value``, dropping seconds and below.

    Aware datetimes are converted to ``CLINIC_TIMEZONE`` first; naive ones are
    assumed to already be clinic-local.
    """
    if value.tzinfo is not None:
        value = value.astimezone(clinic_timezone()).replace(tzinfo=None)
    return value.replace(second=0, microsecond=0)


def clinic_now() -> datetime:
    return datetime.now(clinic_timezone()).replace(tzinfo=None)
