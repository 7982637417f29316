"""Pydantic schemas for event payloads."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from schoolhub_api.common.schema import BaseSchema, UtcDatetime
from schoolhub_api.core.rbac.types import Role

from .models import EventStatus, EventVisibility


class EventCreate(BaseSchema):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    location: str | None = Field(default=None, max_length=200)
    start_time: UtcDatetime
    end_time: UtcDatetime
    visibility: EventVisibility = EventVisibility.PUBLIC
    class_id: str | None = None
    target_roles: list[Role] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Title must not be blank.")
        return cleaned

    @model_validator(mode="after")
    def _check_window(self) -> EventCreate:
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime.")
        return self


class EventUpdate(BaseSchema):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    location: str | None = Field(default=None, max_length=200)
    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None
    visibility: EventVisibility | None = None
    class_id: str | None = None
    target_roles: list[Role] | None = None

    @model_validator(mode="after")
    def _ensure_changes_present(self) -> EventUpdate:
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update.")
        return self


class EventCancel(BaseSchema):
    reason: str = Field(min_length=1, max_length=500)


class EventOut(BaseSchema):
    id: str
    title: str
    description: str | None = None
    location: str | None = None
    start_time: UtcDatetime
    end_time: UtcDatetime
    status: EventStatus
    visibility: EventVisibility
    creator_id: str
    creator_role: Role
    class_id: str | None = None
    target_roles: list[Role]
    created_at: UtcDatetime
    updated_at: UtcDatetime


__all__ = ["EventCancel", "EventCreate", "EventOut", "EventUpdate"]
