"""Database layer - engine, base classes, portable types, immutability."""

from royalty_kernel.db.base import UUID, Base, DecimalType, TimestampedBase, UUIDString
from royalty_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "UUID",
    "Base",
    "DecimalType",
    "TimestampedBase",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
