"""
Module: procurement_kernel.db.base
Responsibility: Declarative base and column types shared by every
    procurement model.
Architecture position: Kernel > DB.  Lowest import target in the kernel;
    imports nothing from models/, selectors/, services/ or domain/.

Invariants enforced:
    - Primary keys are uuid4 values stored as String(36) on every backend.
    - Money is Numeric(38, 9).  Budgets and request/order totals are never
      floats.
    - Timestamps are stored in UTC and always come back timezone-aware,
      including on SQLite, which drops the offset.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    """Column default for timestamps not supplied by an injected Clock."""
    return datetime.now(timezone.utc)


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime.

    Aware values are normalized to UTC on the way in; naive values read
    back (SQLite) are tagged as UTC on the way out.  Naive values passed in
    are assumed to already be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """Every procurement table has a uuid4 ``id`` primary key."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TimestampedBase(Base):
    """
    Abstract base adding created_at / updated_at.

    Contract:
        created_at doubles as the ordering key for "first match" lookups
        (ties broken by id).  Services set it from their Clock.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
