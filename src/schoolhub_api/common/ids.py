"""Identifier generation."""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new ULID as its 26-character, time-sortable string form."""

    return str(ULID())


__all__ = ["generate_ulid"]
