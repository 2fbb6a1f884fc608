"""Database layer - engine, base classes and column types."""

from discount_kernel.db.base import UUID, Base, TrackedBase
from discount_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from discount_kernel.db.types import Money, Percent, UTCDateTime, UUIDString

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
    "UUID",
    "Money",
    "Percent",
]
