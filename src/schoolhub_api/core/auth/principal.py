"""Lightweight identity representation produced by the auth pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from ..rbac.types import ADMIN_ROLES, Role


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity attached to a request or a socket connection."""

    id: str
    role: Role

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


__all__ = ["Principal"]
