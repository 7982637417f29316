from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from pydantic import ValidationError

from schoolhub_api.core.auth.pipeline import authenticate_token, extract_bearer_token
from schoolhub_api.core.auth.tokens import mint_access_token, verify_access_token
from schoolhub_api.core.errors import AuthenticationError, InvalidTokenError
from schoolhub_api.core.rbac.types import Role
from schoolhub_api.settings import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, jwt_secret="unit-secret", **overrides)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (90, timedelta(seconds=90)),
        ("45", timedelta(seconds=45)),
        ("15m", timedelta(minutes=15)),
        ("2 hours", timedelta(hours=2)),
        ("30 days", timedelta(days=30)),
    ],
)
def test_durations_accept_numbers_and_suffixes(raw, expected) -> None:
    assert _settings(scheduler_interval=raw).scheduler_interval == expected


@pytest.mark.parametrize("raw", ["", "0", "-5", "3 fortnights", "soon"])
def test_invalid_durations_are_rejected(raw) -> None:
    with pytest.raises(ValidationError):
        _settings(announcement_archive_after=raw)


def test_settings_read_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("SCHOOLHUB_SCHEDULER_INTERVAL", "10m")
    monkeypatch.setenv("SCHOOLHUB_SERVER_CORS_ORIGINS", "http://a.test, http://b.test")

    settings = Settings(_env_file=None)

    assert settings.scheduler_interval == timedelta(minutes=10)
    assert settings.server_cors_origins == ["http://a.test", "http://b.test"]


def test_token_round_trip_yields_principal() -> None:
    settings = _settings()
    token = mint_access_token(subject="01TEACHER", role=Role.TEACHER, settings=settings)

    principal = verify_access_token(token, settings)

    assert principal.id == "01TEACHER"
    assert principal.role is Role.TEACHER


def test_expired_token_is_invalid() -> None:
    settings = _settings()
    token = mint_access_token(
        subject="01STUDENT",
        role=Role.STUDENT,
        settings=settings,
        expires_in=timedelta(seconds=-30),
    )

    with pytest.raises(InvalidTokenError):
        verify_access_token(token, settings)


def test_token_signed_with_another_secret_is_invalid() -> None:
    token = mint_access_token(subject="01ADMIN", role=Role.ADMIN, settings=_settings())

    with pytest.raises(InvalidTokenError):
        verify_access_token(token, Settings(_env_file=None, jwt_secret="other-secret"))


def test_unknown_role_claim_is_invalid() -> None:
    settings = _settings()
    token = jwt.encode(
        {"sub": "01X", "role": "JANITOR", "exp": 4102444800},
        settings.jwt_secret_value,
        algorithm=settings.jwt_algorithm,
    )

    with pytest.raises(InvalidTokenError):
        verify_access_token(token, settings)


def test_issuer_is_checked_when_configured() -> None:
    issuer_settings = _settings(jwt_issuer="schoolhub")
    token = mint_access_token(subject="01X", role=Role.PARENT, settings=_settings())

    with pytest.raises(InvalidTokenError):
        verify_access_token(token, issuer_settings)


def test_bearer_header_parsing() -> None:
    assert extract_bearer_token({"authorization": "Bearer abc"}) == "abc"
    assert extract_bearer_token({"authorization": "Basic abc"}) is None
    assert extract_bearer_token({}) is None


def test_missing_token_is_unauthenticated() -> None:
    with pytest.raises(AuthenticationError) as excinfo:
        authenticate_token(None, _settings())

    assert not isinstance(excinfo.value, InvalidTokenError)
