"""Database layer - engine, base classes, types, and repository scope."""

from labour_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from labour_kernel.db.engine import (
    create_all_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
)
from labour_kernel.db.repository import BaseRepository
from labour_kernel.db.types import round_money

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session_factory",
    "create_all_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "BaseRepository",
    "round_money",
]
