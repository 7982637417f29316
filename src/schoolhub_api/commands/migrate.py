"""`schoolhub migrate` command."""

from __future__ import annotations

import typer
from sqlalchemy.engine import make_url

from schoolhub_api.common.logging import setup_logging
from schoolhub_api.db.engine import apply_migrations
from schoolhub_api.settings import get_settings


def register(app: typer.Typer) -> None:
    @app.command(name="migrate", help="Apply Alembic migrations.")
    def migrate(
        revision: str = typer.Argument("head", help="Target revision."),
    ) -> None:
        settings = get_settings()
        setup_logging(settings)
        safe_url = make_url(settings.database_dsn).render_as_string(hide_password=True)
        typer.echo(f"Migrating {safe_url} to {revision}")
        apply_migrations(settings, revision=revision)
        typer.echo("Migrations applied.")
