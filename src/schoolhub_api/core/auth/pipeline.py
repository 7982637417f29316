"""Resolve principals from HTTP requests and WebSocket handshakes."""

from __future__ import annotations

from collections.abc import Mapping

from fastapi import Request, WebSocket

from schoolhub_api.settings import Settings

from ..errors import AuthenticationError
from .principal import Principal
from .tokens import verify_access_token

_QUERY_TOKEN_KEYS = ("token", "access_token")


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Return the token from an ``Authorization: Bearer`` header, if any."""

    header = headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def extract_handshake_token(websocket: WebSocket) -> str | None:
    """Return a token supplied with the WebSocket upgrade request.

    The ``Authorization`` header wins; browsers cannot set it, so the
    ``token``/``access_token`` query parameters are accepted as well.
    """

    token = extract_bearer_token(websocket.headers)
    if token:
        return token
    for key in _QUERY_TOKEN_KEYS:
        candidate = (websocket.query_params.get(key) or "").strip()
        if candidate:
            return candidate
    return None


def authenticate_token(token: str | None, settings: Settings) -> Principal:
    """Verify ``token`` and return its principal."""

    if not token:
        raise AuthenticationError()
    return verify_access_token(token, settings)


def authenticate_request(request: Request, settings: Settings) -> Principal:
    """Authenticate an incoming HTTP request to a principal."""

    return authenticate_token(extract_bearer_token(request.headers), settings)


__all__ = [
    "authenticate_request",
    "authenticate_token",
    "extract_bearer_token",
    "extract_handshake_token",
]
