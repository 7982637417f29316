"""Alembic environment for the SchoolHub schema.

Migrations run on the synchronous driver matching ``SCHOOLHUB_DATABASE_DSN``
(``sqlite+aiosqlite`` becomes ``sqlite``). ``schoolhub_api.db.engine`` passes
the URL in through the config; running ``alembic`` by hand falls back to the
environment settings.
"""

from __future__ import annotations

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool

import schoolhub_api.models  # noqa: F401
from schoolhub_api.db.base import Base
from schoolhub_api.db.engine import enable_sqlite_foreign_keys, render_sync_url
from schoolhub_api.settings import get_settings

config = context.config
target_metadata = Base.metadata


def _sync_url() -> str:
    configured = config.get_main_option("sqlalchemy.url")
    return configured or render_sync_url(get_settings().database_dsn)


def _run_offline(url: str) -> None:
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_online(url: str) -> None:
    engine = create_engine(url, poolclass=NullPool)
    if make_url(url).get_backend_name() == "sqlite":
        enable_sqlite_foreign_keys(engine)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                render_as_batch=True,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    _run_offline(_sync_url())
else:
    _run_online(_sync_url())
