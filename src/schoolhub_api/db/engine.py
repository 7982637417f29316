"""Process-wide database engine, session factory and migration bootstrap.

SchoolHub keeps one async engine per process together with the
``async_sessionmaker`` bound to it. Both are rebuilt whenever the settings
that shape them change, which is how tests point each application at a fresh
SQLite file.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import Engine, event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from schoolhub_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


@dataclass
class _DatabaseState:
    key: tuple[Any, ...] | None = None
    engine: AsyncEngine | None = None
    sessions: async_sessionmaker[AsyncSession] | None = None
    migrated: set[str] = field(default_factory=set)


_state = _DatabaseState()
_migrate_lock = asyncio.Lock()


def _state_key(settings: Settings) -> tuple[Any, ...]:
    return (
        settings.database_dsn,
        settings.database_echo,
        settings.database_pool_size,
        settings.database_max_overflow,
        settings.database_pool_timeout,
    )


def _is_sqlite(url: URL) -> bool:
    return url.get_backend_name() == "sqlite"


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Turn on SQLite foreign key enforcement for every new connection."""

    @event.listens_for(engine, "connect")
    def _foreign_keys_on(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()


def _prepare_sqlite_file(url: URL) -> None:
    database = (url.database or "").strip()
    if not database or database == ":memory:" or database.startswith("file:"):
        raise ValueError(
            "SchoolHub needs a file-backed SQLite database (in-memory URLs are not shared "
            "between the API and its scheduler)."
        )
    path = Path(database)
    if not path.is_absolute():
        path = Path.cwd() / path
    path.parent.mkdir(parents=True, exist_ok=True)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build a new, uncached async engine for ``settings``."""

    url = make_url(settings.database_dsn)
    options: dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}
    if _is_sqlite(url):
        _prepare_sqlite_file(url)
        options["poolclass"] = NullPool
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
        )

    engine = create_async_engine(url.render_as_string(hide_password=False), **options)
    if _is_sqlite(url):
        enable_sqlite_foreign_keys(engine.sync_engine)
    return engine


def _refresh(settings: Settings) -> _DatabaseState:
    key = _state_key(settings)
    if _state.engine is None or _state.key != key:
        if _state.engine is not None:
            _state.engine.sync_engine.dispose()
        _state.engine = create_engine_from_settings(settings)
        _state.sessions = async_sessionmaker(
            bind=_state.engine,
            expire_on_commit=False,
            autoflush=False,
        )
        _state.key = key
    return _state


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """Return the cached engine for the active settings."""

    engine = _refresh(settings or get_settings()).engine
    assert engine is not None
    return engine


def get_sessionmaker(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the cached engine."""

    sessions = _refresh(settings or get_settings()).sessions
    assert sessions is not None
    return sessions


def reset_database_state() -> None:
    """Dispose the cached engine and forget which databases were migrated."""

    if _state.engine is not None:
        _state.engine.sync_engine.dispose()
    _state.engine = None
    _state.sessions = None
    _state.key = None
    _state.migrated.clear()


def render_sync_url(database_url: str) -> str:
    """Return the synchronous driver URL Alembic runs migrations with."""

    url = make_url(database_url)
    return url.set(drivername=url.get_backend_name()).render_as_string(hide_password=False)


def load_alembic_config(settings: Settings) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    # ConfigParser interpolation treats "%" specially.
    sync_url = render_sync_url(settings.database_dsn)
    config.set_main_option("sqlalchemy.url", sync_url.replace("%", "%%"))
    return config


def apply_migrations(settings: Settings, revision: str = "head") -> None:
    """Upgrade the database to ``revision`` (blocking; used by the CLI)."""

    url = make_url(settings.database_dsn)
    if _is_sqlite(url):
        _prepare_sqlite_file(url)
    command.upgrade(load_alembic_config(settings), revision)


async def ensure_database_ready(settings: Settings | None = None) -> None:
    """Migrate the configured database to head once per process."""

    resolved = settings or get_settings()
    dsn = resolved.database_dsn
    async with _migrate_lock:
        if dsn in _state.migrated:
            return
        safe_url = make_url(dsn).render_as_string(hide_password=True)
        logger.info("db.migrate.start", extra={"database_url": safe_url})
        await asyncio.to_thread(apply_migrations, resolved)
        _state.migrated.add(dsn)
        logger.info("db.migrate.complete", extra={"database_url": safe_url})


__all__ = [
    "MIGRATIONS_DIR",
    "apply_migrations",
    "create_engine_from_settings",
    "enable_sqlite_foreign_keys",
    "ensure_database_ready",
    "get_engine",
    "get_sessionmaker",
    "load_alembic_config",
    "reset_database_state",
    "render_sync_url",
]
