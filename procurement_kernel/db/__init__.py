"""Database layer: declarative base, column types, engine and session factory."""

from procurement_kernel.db.base import Base, TimestampedBase, UTCDateTime, UUIDString
from procurement_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)

__all__ = [
    "Base",
    "TimestampedBase",
    "UTCDateTime",
    "UUIDString",
    "create_tables",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
]
