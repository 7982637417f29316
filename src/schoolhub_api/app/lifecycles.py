"""FastAPI lifespan helpers for the SchoolHub application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan
from sqlalchemy import text
from sqlalchemy.engine import make_url

from schoolhub_api.common.logging import log_context
from schoolhub_api.common.time import utc_now
from schoolhub_api.db import ensure_database_ready, get_engine, reset_database_state
from schoolhub_api.features.maintenance.scheduler import ScheduledTaskRunner
from schoolhub_api.realtime.gateway import InMemoryBroadcastGateway
from schoolhub_api.settings import Settings

logger = logging.getLogger(__name__)


async def _check_database(settings: Settings, safe_url: str) -> None:
    engine = get_engine(settings)
    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("db.connection.failed", extra={"database_url": safe_url}, exc_info=True)
        raise RuntimeError(
            "Database is not reachable. Verify SCHOOLHUB_DATABASE_DSN and credentials."
        ) from exc

    try:
        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1 FROM alembic_version"))
    except Exception as exc:
        logger.error("db.schema.missing", extra={"database_url": safe_url}, exc_info=True)
        raise RuntimeError(
            "Database schema is not initialized. "
            "Run `schoolhub migrate` before starting the API."
        ) from exc


def create_application_lifespan(
    *,
    settings: Settings,
) -> Lifespan[FastAPI]:
    """Return the FastAPI lifespan handler used by the app factory."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.started_at = utc_now()

        logger.info(
            "schoolhub_api.startup",
            extra=log_context(
                logging_level=settings.effective_log_level,
                version=settings.app_version,
                scheduler_enabled=settings.scheduler_enabled,
            ),
        )

        safe_url = make_url(settings.database_dsn).render_as_string(hide_password=True)
        if settings.database_auto_migrate:
            await ensure_database_ready(settings)
        else:
            await _check_database(settings, safe_url)

        gateway = InMemoryBroadcastGateway(queue_size=settings.realtime_send_queue_size)
        await gateway.start()
        app.state.gateway = gateway

        runner = ScheduledTaskRunner(settings=settings, gateway=gateway)
        app.state.task_runner = runner
        await runner.start()

        try:
            yield
        finally:
            await runner.stop()
            await gateway.close()
            app.state.task_runner = None
            app.state.gateway = None
            reset_database_state()
            logger.info("schoolhub_api.shutdown")

    return lifespan


__all__ = ["create_application_lifespan"]
