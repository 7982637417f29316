"""Shared Pydantic schema utilities."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .time import ensure_utc

# SQLite returns naive datetimes; the API always speaks UTC.
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class BaseSchema(BaseModel):
    """Base class for API schemas: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="forbid",
    )

    def model_dump(self, *args: Any, **kwargs: Any) -> dict[str, Any]:  # type: ignore[override]
        """Ensure serialization honours aliases by default."""

        kwargs.setdefault("by_alias", True)
        return super().model_dump(*args, **kwargs)

    def model_dump_json(self, *args: Any, **kwargs: Any) -> str:  # type: ignore[override]
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(*args, **kwargs)

    def payload(self) -> dict[str, Any]:
        """JSON-safe dict used for real-time event payloads."""

        return self.model_dump(mode="json", by_alias=True)


__all__ = ["BaseSchema", "UtcDatetime"]
