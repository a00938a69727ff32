"""Declarative base and shared column helpers."""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Single declarative base for all ReviewHub models."""

    pass


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the storage convention for all tables."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalise an incoming (possibly tz-aware) datetime to naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
