from __future__ import annotations

from datetime import datetime, timezone

from dateutil.parser import isoparse


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO 8601 timestamp as PostgREST and the payment providers send it.

    PostgREST trims trailing zeros from microseconds, so fractions of any
    length must be accepted.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    try:
        return isoparse(value)
    except (ValueError, OverflowError):
        return None


def from_epoch_seconds(value: object) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None
