# alianah/models/mixins.py
"""Shared SQLAlchemy mixins for string primary keys and timestamps."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import event

from alianah.extensions import db


def utcnow() -> datetime:
    """Naive UTC now; every DateTime column in the schema stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid4().hex


class IdMixin:
    """Opaque string primary key."""

    id = db.Column(db.String(32), primary_key=True, default=new_id)


class TimestampMixin:
    """Adds created_at and updated_at columns with auto-refresh behavior."""

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @staticmethod
    def _set_updated_at(mapper, connection, target):
        target.updated_at = utcnow()

    @classmethod
    def __declare_last__(cls):
        event.listen(cls, "before_update", cls._set_updated_at)


def iso(value) -> "str | None":
    return value.isoformat() if value else None
