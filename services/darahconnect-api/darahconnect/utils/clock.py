from datetime import datetime, timedelta, timezone
from typing import Optional

from ..core.config import settings


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now() -> datetime:
    """Current wall-clock time in the service timezone (WIB by default)."""
    return datetime.now(timezone(timedelta(hours=settings.TIMEZONE_OFFSET_HOURS)))


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
