"""Helpers for the time and date representations stored in SQLite."""

from __future__ import annotations

import datetime


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def to_unix(value: datetime.datetime | None) -> int | None:
    """Convert an aware datetime to unix seconds; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return int(value.timestamp())


def from_unix(value: int | None) -> datetime.datetime | None:
    if value is None:
        return None
    return datetime.datetime.fromtimestamp(int(value), tz=datetime.timezone.utc)


def date_to_text(value: datetime.date | None) -> str | None:
    return value.isoformat() if value is not None else None


def date_from_text(value: str | None) -> datetime.date | None:
    if not value:
        return None
    return datetime.date.fromisoformat(value[:10])


def month_start(value: datetime.date | datetime.datetime) -> datetime.date:
    """First calendar day of the month containing ``value``."""
    if isinstance(value, datetime.datetime):
        value = value.date()
    return value.replace(day=1)
