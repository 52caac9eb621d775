# invoicebook/core/clock.py

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from invoicebook.core.config import settings


def now() -> datetime:
    """Current time in the merchant's configured timezone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def to_utc(value: datetime) -> datetime:
    # Naive values are taken to be in the merchant's timezone
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(settings.TIMEZONE))
    return value.astimezone(timezone.utc).replace(tzinfo=None)
