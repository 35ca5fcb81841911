"""Conversions between datetimes and microsecond UNIX timestamps."""

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def from_microseconds_timestamp(microseconds: int) -> datetime:
    """UTC datetime for a microseconds-since-epoch value."""
    return _EPOCH + timedelta(microseconds=int(microseconds))


def to_microseconds_timestamp(value: datetime) -> int:
    """
    Microseconds since the UNIX epoch.

    Naive datetimes are taken as local time, like datetime.timestamp().
    """
    if value.tzinfo is None:
        value = value.astimezone()
    delta = value - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def microseconds_timestamp() -> int:
    """Current time in microseconds since the UNIX epoch."""
    return to_microseconds_timestamp(datetime.now(timezone.utc))
