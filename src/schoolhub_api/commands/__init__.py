"""SchoolHub CLI command registration."""

from __future__ import annotations

import typer

from . import migrate, start, tick, token


def register_all(app: typer.Typer) -> None:
    for module in (
        migrate,
        start,
        tick,
        token,
    ):
        module.register(app)
