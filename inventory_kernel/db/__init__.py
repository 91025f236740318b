"""Database layer - engine, base classes, and immutability listeners."""

from inventory_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from inventory_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
    translate_db_errors,
)

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "translate_db_errors",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
