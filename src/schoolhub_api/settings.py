"""SchoolHub configuration.

Every field can be set through a ``SCHOOLHUB_``-prefixed environment variable
or a ``.env`` file, e.g. ``SCHOOLHUB_JWT_SECRET`` or
``SCHOOLHUB_SCHEDULER_INTERVAL=30m``. Durations accept plain seconds or a
number with a unit (``15m``, ``1h``, ``30 days``).
"""

from __future__ import annotations

import json
import re
from datetime import timedelta
from functools import lru_cache
from typing import Annotated, Any, Literal, Protocol, runtime_checkable

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"]
LogFormat = Literal["console", "json"]

_UNIT_SECONDS = {
    **dict.fromkeys(("s", "sec", "secs", "second", "seconds"), 1),
    **dict.fromkeys(("m", "min", "mins", "minute", "minutes"), 60),
    **dict.fromkeys(("h", "hr", "hrs", "hour", "hours"), 3600),
    **dict.fromkeys(("d", "day", "days"), 86400),
}
_DURATION = re.compile(r"^(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>[a-z]+)?$", re.IGNORECASE)


def parse_duration(value: Any) -> timedelta:
    """Turn ``90``, ``"90"``, ``"15m"`` or ``"2 hours"`` into a positive timedelta."""

    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, bool) or value is None:
        raise ValueError("Duration must be a number of seconds or a string like '15m'")
    elif isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION.match(str(value).strip())
        if match is None:
            raise ValueError("Duration must be seconds or a value like '15m' or '30 days'")
        unit = (match.group("unit") or "s").lower()
        if unit not in _UNIT_SECONDS:
            raise ValueError(f"Unknown duration unit {unit!r}; use s, m, h or d")
        seconds = float(match.group("amount")) * _UNIT_SECONDS[unit]
    if seconds <= 0:
        raise ValueError("Duration must be greater than zero")
    return timedelta(seconds=seconds)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCHOOLHUB_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application ---------------------------------------------------------
    debug: bool = False
    app_name: str = "SchoolHub API"
    app_version: str = "0.1.0"
    api_docs_enabled: bool = Field(
        default=False, description="Expose Swagger UI and the OpenAPI schema."
    )
    docs_url: str = "/docs"
    openapi_url: str = "/openapi.json"

    # Logging -------------------------------------------------------------
    logging_level: LogLevel = "INFO"
    log_format: LogFormat = Field(
        default="console", description="'console' for humans, 'json' for log shippers."
    )
    database_log_level: LogLevel | None = Field(
        default=None, description="SQLAlchemy log level (WARNING when unset)."
    )
    access_log_enabled: bool = True

    # Server --------------------------------------------------------------
    server_host: str = "localhost"
    server_port: int = Field(default=8000, ge=1, le=65535)
    server_cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Allowed CORS origins as a comma separated list or JSON array.",
    )

    # Database ------------------------------------------------------------
    database_dsn: str = "sqlite+aiosqlite:///./var/db/schoolhub.sqlite"
    database_echo: bool = False
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    database_pool_timeout: int = Field(default=30, gt=0)
    database_auto_migrate: bool = Field(
        default=True, description="Upgrade the schema to head when the API starts."
    )

    # Authentication ------------------------------------------------------
    jwt_secret: SecretStr = Field(
        default=SecretStr("development-secret"),
        description="HMAC secret shared with the token issuer.",
    )
    jwt_algorithm: str = "HS256"
    jwt_issuer: str | None = Field(
        default=None, description="Expected 'iss' claim; unchecked when unset."
    )
    jwt_access_ttl: timedelta = Field(
        default=timedelta(hours=1), description="Lifetime of tokens minted by `schoolhub token`."
    )

    # Real-time gateway ---------------------------------------------------
    realtime_handshake_timeout: timedelta = Field(
        default=timedelta(seconds=5),
        description="How long an unauthenticated socket may wait before it is closed.",
    )
    realtime_send_queue_size: int = Field(
        default=256,
        ge=1,
        description="Outbound messages buffered per socket before the socket is dropped.",
    )

    # Maintenance scheduler -----------------------------------------------
    scheduler_enabled: bool = Field(
        default=True, description="Run maintenance ticks inside the API process."
    )
    scheduler_interval: timedelta = timedelta(hours=1)
    scheduler_run_on_startup: bool = False
    announcement_archive_after: timedelta = Field(
        default=timedelta(days=30), description="Age after which announcements are archived."
    )
    announcement_delete_after: timedelta = Field(
        default=timedelta(days=60),
        description="Age after which archived announcements are deleted.",
    )

    @field_validator(
        "jwt_access_ttl",
        "realtime_handshake_timeout",
        "scheduler_interval",
        "announcement_archive_after",
        "announcement_delete_after",
        mode="before",
    )
    @classmethod
    def _durations(cls, value: Any) -> timedelta:
        return parse_duration(value)

    @field_validator("server_host", mode="before")
    @classmethod
    def _host(cls, value: str) -> str:
        host = str(value).strip()
        if not host:
            raise ValueError("server_host must not be empty")
        return host

    @field_validator("server_cors_origins", mode="before")
    @classmethod
    def _origins(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            raw = value.strip()
            if raw.startswith("["):
                parsed = json.loads(raw)
                if not isinstance(parsed, list):
                    raise ValueError("server_cors_origins JSON must be an array")
                value = parsed
            else:
                value = re.split(r"[\s,]+", raw)
        if not isinstance(value, (list, tuple, set)):
            raise ValueError("server_cors_origins must be a string or a list of origins")
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("jwt_issuer", mode="before")
    @classmethod
    def _issuer(cls, value: str | None) -> str | None:
        return (str(value).strip() or None) if value is not None else None

    @property
    def jwt_secret_value(self) -> str:
        return self.jwt_secret.get_secret_value()

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.logging_level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process settings, loaded from the environment once."""

    return Settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


@runtime_checkable
class SupportsState(Protocol):
    state: Any


def get_app_settings(container: SupportsState) -> Settings:
    """Return the settings stored on an app's ``state``, falling back to the environment."""

    settings = getattr(container.state, "settings", None)
    if isinstance(settings, Settings):
        return settings
    settings = get_settings()
    container.state.settings = settings
    return settings


__all__ = ["Settings", "get_app_settings", "get_settings", "parse_duration", "reload_settings"]
