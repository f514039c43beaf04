"""Conversions between aware datetimes and millisecond epoch timestamps."""

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    if ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    return ts


def datetime_to_ms(ts: datetime) -> int:
    return (ensure_utc(ts) - _EPOCH) // timedelta(milliseconds=1)


def ms_to_datetime(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return datetime_to_ms(datetime.now(timezone.utc))
