"""`schoolhub tick` command: run one maintenance pass outside the server."""

from __future__ import annotations

import asyncio

import typer

from schoolhub_api.common.logging import setup_logging
from schoolhub_api.db import ensure_database_ready, reset_database_state
from schoolhub_api.features.maintenance.scheduler import ScheduledTaskRunner, TickReport
from schoolhub_api.settings import Settings, get_settings


async def run_tick(settings: Settings) -> TickReport:
    # No socket clients live in this process, so nothing is broadcast.
    await ensure_database_ready(settings)
    runner = ScheduledTaskRunner(settings=settings, gateway=None)
    try:
        return await runner.run_once()
    finally:
        reset_database_state()


def register(app: typer.Typer) -> None:
    @app.command(name="tick", help="Run one maintenance pass (complete, archive, delete).")
    def tick() -> None:
        settings = get_settings()
        setup_logging(settings)
        report = asyncio.run(run_tick(settings))
        for outcome in report.outcomes:
            status = "ok" if outcome.succeeded else f"failed: {outcome.error}"
            typer.echo(f"{outcome.category.value}: {outcome.affected} ({status})")
        if report.failed:
            raise typer.Exit(code=1)
