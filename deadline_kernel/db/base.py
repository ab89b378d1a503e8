"""
Module: deadline_kernel.db.base
Responsibility: Declarative base for the task store tables and the audit
    columns every stored row carries.
Architecture position: Kernel > DB.  Lowest import target of the ORM layer;
    MUST NOT import from models/, services/ or domain/.

Invariants enforced:
    - Due dates are ``Date`` columns (calendar days, no time component);
      audit instants are timezone-aware ``DateTime``.
    - Actor ids are UUIDs stored as 36-character strings so SQLite and
      PostgreSQL schemas are identical.
    - Every row records who created it; the last writer is recorded on
      each update by the store, not by a database trigger.
"""

from datetime import date, datetime
from typing import ClassVar
from uuid import UUID

from sqlalchemy import Date, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from deadline_kernel.db.types import ClientId, LongText, ShortCode, TaskId, Title


class UUIDString(TypeDecorator):
    """UUID in a ``VARCHAR(36)`` column."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        date: Date,
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        TaskId: String(200),
        ClientId: String(100),
        ShortCode: String(100),
        Title: String(500),
        LongText: String(4000),
    }


class TrackedBase(Base):
    """
    Abstract base adding audit columns.

    ``created_at``/``updated_at`` come from the database clock; the actor
    columns are filled by the service that writes the row (a system actor
    for batch runs, the completing user for completions).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[UUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
