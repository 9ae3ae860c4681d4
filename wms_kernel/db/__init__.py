"""Database layer - engine, base classes, types, and immutability listeners."""

from wms_kernel.db.base import UUID, Base, EnumString, TrackedBase, UUIDString
from wms_kernel.db.engine import create_tables, get_engine, get_session_factory

__all__ = [
    "get_engine",
    "get_session_factory",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "EnumString",
    "UUID",
]
