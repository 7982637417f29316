"""Pydantic schemas for announcement payloads."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from schoolhub_api.common.schema import BaseSchema, UtcDatetime
from schoolhub_api.core.rbac.types import Role


class AnnouncementCreate(BaseSchema):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    class_id: str | None = None
    target_roles: list[Role] = Field(default_factory=list)

    @field_validator("title", "content")
    @classmethod
    def _strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Value must not be blank.")
        return cleaned


class AnnouncementUpdate(BaseSchema):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = Field(default=None, min_length=1)
    target_roles: list[Role] | None = None

    @model_validator(mode="after")
    def _ensure_changes_present(self) -> AnnouncementUpdate:
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update.")
        return self


class AnnouncementArchiveUpdate(BaseSchema):
    is_archived: bool


class AnnouncementOut(BaseSchema):
    """Announcement entity as returned by the API and pushed to clients."""

    id: str
    title: str
    content: str
    creator_id: str
    creator_role: Role
    class_id: str | None = None
    target_roles: list[Role]
    is_archived: bool
    archived_at: UtcDatetime | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
    is_read: bool | None = None


class ReadStatusOut(BaseSchema):
    announcement_id: str
    is_read: bool


class UnreadCountOut(BaseSchema):
    count: int


__all__ = [
    "AnnouncementArchiveUpdate",
    "AnnouncementCreate",
    "AnnouncementOut",
    "AnnouncementUpdate",
    "ReadStatusOut",
    "UnreadCountOut",
]
