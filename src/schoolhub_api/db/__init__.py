"""Database helpers: declarative base, engine, sessions."""

from .base import Base, metadata
from .engine import (
    apply_migrations,
    ensure_database_ready,
    get_engine,
    get_sessionmaker,
    reset_database_state,
)
from .session import get_session

__all__ = [
    "Base",
    "apply_migrations",
    "ensure_database_ready",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "metadata",
    "reset_database_state",
]
