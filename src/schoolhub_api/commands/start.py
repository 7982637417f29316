"""`schoolhub start` command."""

from __future__ import annotations

import typer
import uvicorn

from schoolhub_api.settings import get_settings


def run_start(*, host: str | None = None, port: int | None = None, reload: bool = False) -> None:
    settings = get_settings()
    host = host or settings.server_host
    port = port or settings.server_port

    typer.echo(f"Starting SchoolHub API on http://{host}:{port}")
    uvicorn.run(
        "schoolhub_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.effective_log_level.lower(),
        access_log=settings.access_log_enabled,
        # Logging is configured by the app factory.
        log_config=None,
    )


def register(app: typer.Typer) -> None:
    @app.command(name="start", help="Start the API server.")
    def start(
        host: str | None = typer.Option(
            None,
            "--host",
            help="Host/interface for the API server.",
            envvar="SCHOOLHUB_SERVER_HOST",
        ),
        port: int | None = typer.Option(
            None,
            "--port",
            help="Port for the API server.",
            envvar="SCHOOLHUB_SERVER_PORT",
            min=1,
            max=65535,
        ),
        reload: bool = typer.Option(False, "--reload", help="Reload on source changes."),
    ) -> None:
        run_start(host=host, port=port, reload=reload)
