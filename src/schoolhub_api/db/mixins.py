"""Column mixins and enum helpers shared by SchoolHub models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from schoolhub_api.common.ids import generate_ulid
from schoolhub_api.common.time import utc_now
from schoolhub_api.core.rbac.types import Role


def enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ULIDPrimaryKeyMixin:
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)


class TimestampMixin:
    """``created_at``/``updated_at`` stored as timezone-aware UTC datetimes."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


def role_enum() -> SAEnum:
    """Column type storing a :class:`Role` by its value (VARCHAR, no native enum)."""

    return SAEnum(Role, name="role", native_enum=False, length=20, values_callable=enum_values)


__all__ = ["TimestampMixin", "ULIDPrimaryKeyMixin", "enum_values", "role_enum"]
