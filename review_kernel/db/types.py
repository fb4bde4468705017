"""
Module: review_kernel.db.types
Responsibility: Column types shared by every review kernel model.
Architecture position: Kernel > DB.  May be imported by models/ and
    selectors/.  MUST NOT import from those layers.

Invariants enforced:
    - Timestamps read back from the database are always timezone-aware UTC,
      whatever the backend does with DateTime(timezone=True).  SQLite stores
      them without an offset; PostgreSQL keeps it.
"""

from datetime import timezone
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, String
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
    Timezone-aware datetime column normalized to UTC.

    Guarantees:
        - Naive values are rejected on write (ValueError).
        - Values are stored as UTC and loaded back with tzinfo=UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime {value!r} cannot be stored")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

