"""Database layer - engine, base classes and column types."""

from deadline_kernel.db.base import Base, TrackedBase, UUIDString
from deadline_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from deadline_kernel.db.types import ClientId, LongText, ShortCode, TaskId, Title

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "TaskId",
    "ClientId",
    "ShortCode",
    "Title",
    "LongText",
]
