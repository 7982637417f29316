"""Pydantic schemas for assignment payloads."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from schoolhub_api.common.schema import BaseSchema, UtcDatetime


class AssignmentCreate(BaseSchema):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    start_date: UtcDatetime
    due_date: UtcDatetime
    class_id: str
    teacher_id: str | None = Field(
        default=None,
        description="Owning teacher; required when an administrator creates the assignment.",
    )

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Title must not be blank.")
        return cleaned

    @model_validator(mode="after")
    def _check_dates(self) -> AssignmentCreate:
        if self.due_date <= self.start_date:
            raise ValueError("dueDate must be after startDate.")
        return self


class AssignmentUpdate(BaseSchema):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    start_date: UtcDatetime | None = None
    due_date: UtcDatetime | None = None

    @model_validator(mode="after")
    def _ensure_changes_present(self) -> AssignmentUpdate:
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update.")
        return self


class AssignmentOut(BaseSchema):
    id: str
    title: str
    description: str | None = None
    start_date: UtcDatetime
    due_date: UtcDatetime
    class_id: str
    teacher_id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


class SubmissionCreate(BaseSchema):
    content: str = Field(min_length=1)


class SubmissionOut(BaseSchema):
    id: str
    assignment_id: str
    student_id: str
    content: str
    submitted_at: UtcDatetime


__all__ = [
    "AssignmentCreate",
    "AssignmentOut",
    "AssignmentUpdate",
    "SubmissionCreate",
    "SubmissionOut",
]
