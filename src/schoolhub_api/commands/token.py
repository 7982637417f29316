"""`schoolhub token` command: mint a bearer token for local development."""

from __future__ import annotations

from datetime import timedelta

import typer

from schoolhub_api.core.auth.tokens import mint_access_token
from schoolhub_api.core.rbac.types import Role
from schoolhub_api.settings import get_settings


def register(app: typer.Typer) -> None:
    @app.command(name="token", help="Mint a signed access token for a user id and role.")
    def token(
        subject: str = typer.Argument(..., help="User id placed in the 'sub' claim."),
        role: Role = typer.Option(
            Role.STUDENT,
            "--role",
            case_sensitive=False,
            help="Role claim.",
        ),
        minutes: int | None = typer.Option(
            None,
            "--minutes",
            min=1,
            help="Lifetime in minutes (defaults to SCHOOLHUB_JWT_ACCESS_TTL).",
        ),
    ) -> None:
        settings = get_settings()
        expires_in = timedelta(minutes=minutes) if minutes else None
        typer.echo(
            mint_access_token(subject=subject, role=role, settings=settings, expires_in=expires_in)
        )
