from __future__ import annotations

from datetime import datetime, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# PUBLIC_INTERFACE
def now_micros() -> int:
    """Current UTC time as integer microseconds since the epoch."""
    return to_micros(datetime.now(timezone.utc))


# PUBLIC_INTERFACE
def to_micros(value: datetime) -> int:
    """
    Convert a datetime into integer microseconds since the epoch.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


# PUBLIC_INTERFACE
def from_micros(value: int) -> datetime:
    """Convert integer microseconds since the epoch into an aware UTC datetime."""
    seconds, micros = divmod(int(value), 1_000_000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=micros)


# PUBLIC_INTERFACE
def iso_now() -> str:
    """Current UTC time formatted as ISO 8601 with a trailing 'Z'."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
