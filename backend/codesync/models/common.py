"""Column helpers shared by the ORM models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import mapped_column
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    TIMESTAMP WITH TIME ZONE that always round-trips as an aware UTC datetime.

    PostgreSQL already returns aware values. SQLite stores the text without
    an offset and hands back naive datetimes, which are UTC by construction.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def uuid_pk():
    # Generic Uuid: native UUID on PostgreSQL, CHAR(32) on SQLite
    return mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


def created_at_column():
    return mapped_column(UTCDateTime, nullable=False, default=utcnow)


def updated_at_column():
    return mapped_column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
