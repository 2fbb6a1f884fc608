"""
Module: discount_kernel.db.types
Responsibility: Portable column types shared by every ORM model.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    or outer layers.

Invariants enforced:
    - UUIDs round-trip through String(36) on every backend.
    - Timestamps are always timezone-aware UTC on the way out, including on
      SQLite, which stores DateTime without an offset.
    - Money columns are Numeric(38, 9); floats never reach the database.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp normalized to UTC.

    PostgreSQL returns ``timestamptz`` values already aware; SQLite returns
    naive values, which are tagged as UTC here so comparisons against
    ``Clock.now()`` never mix naive and aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Percent with four decimal places (12.5000)
Percent = Annotated[Decimal, Numeric(9, 4)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Display names
Name = Annotated[str, String(255)]

Timestamp = Annotated[datetime, UTCDateTime()]
