import uuid

from sqlalchemy import Column, DateTime

from ..db.base import Base
from ..utils.dates import utcnow


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimeStampMixin:
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class SoftDeleteMixin:
    """ Rows are never removed; ``deleted_at`` marks them as gone for every standard query. """
    deleted_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


__all__ = ["Base", "TimeStampMixin", "SoftDeleteMixin", "generate_uuid"]
