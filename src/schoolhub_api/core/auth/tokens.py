"""JWT helpers for minting and verifying bearer tokens."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta
from typing import Any

import jwt

from schoolhub_api.common.time import utc_now
from schoolhub_api.settings import Settings

from ..errors import InvalidTokenError
from ..rbac.types import Role
from .principal import Principal


def decode_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
    issuer: str | None = None,
) -> dict[str, Any]:
    """Decode a JWT and return its payload."""

    options = {"require": ["sub", "exp"]}
    return jwt.decode(
        token,
        secret,
        algorithms=list(algorithms),
        issuer=issuer,
        options=options,
    )


def verify_access_token(token: str, settings: Settings) -> Principal:
    """Return the principal carried by ``token`` or raise :class:`InvalidTokenError`."""

    try:
        payload = decode_token(
            token,
            secret=settings.jwt_secret_value,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.PyJWTError as exc:
        raise InvalidTokenError() from exc

    subject = payload.get("sub")
    raw_role = payload.get("role")
    if not isinstance(subject, str) or not subject.strip():
        raise InvalidTokenError()
    try:
        role = Role(str(raw_role).upper())
    except ValueError as exc:
        raise InvalidTokenError() from exc
    return Principal(id=subject, role=role)


def mint_access_token(
    *,
    subject: str,
    role: Role,
    settings: Settings,
    expires_in: timedelta | None = None,
) -> str:
    """Sign a token for ``subject``; used by the CLI and tests."""

    issued_at = utc_now()
    payload: dict[str, Any] = {
        "sub": subject,
        "role": role.value,
        "iat": issued_at,
        "exp": issued_at + (expires_in if expires_in is not None else settings.jwt_access_ttl),
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    return jwt.encode(payload, settings.jwt_secret_value, algorithm=settings.jwt_algorithm)


__all__ = ["decode_token", "mint_access_token", "verify_access_token"]
