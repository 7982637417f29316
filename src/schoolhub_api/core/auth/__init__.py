"""Authentication primitives."""

from ..errors import AuthenticationError, InvalidTokenError
from .pipeline import (
    authenticate_request,
    authenticate_token,
    extract_bearer_token,
    extract_handshake_token,
)
from .principal import Principal
from .tokens import decode_token, mint_access_token, verify_access_token

__all__ = [
    "AuthenticationError",
    "InvalidTokenError",
    "Principal",
    "authenticate_request",
    "authenticate_token",
    "decode_token",
    "extract_bearer_token",
    "extract_handshake_token",
    "mint_access_token",
    "verify_access_token",
]
