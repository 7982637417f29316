"""Pydantic schemas for grade payloads."""

from __future__ import annotations

from pydantic import Field, model_validator

from schoolhub_api.common.schema import BaseSchema, UtcDatetime

from .models import GradeType


class GradeCreate(BaseSchema):
    student_id: str
    score: int = Field(ge=0, le=100)
    type: GradeType
    comment: str | None = Field(default=None, max_length=2000)
    teacher_id: str | None = Field(
        default=None,
        description="Grading teacher; required when an administrator records the grade.",
    )


class GradeUpdate(BaseSchema):
    score: int | None = Field(default=None, ge=0, le=100)
    type: GradeType | None = None
    comment: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _ensure_changes_present(self) -> GradeUpdate:
        if not self.model_fields_set:
            raise ValueError("Provide at least one field to update.")
        if "score" in self.model_fields_set and self.score is None:
            raise ValueError("score cannot be null")
        if "type" in self.model_fields_set and self.type is None:
            raise ValueError("type cannot be null")
        return self


class GradeOut(BaseSchema):
    id: str
    student_id: str
    class_id: str
    teacher_id: str
    score: int
    type: GradeType
    comment: str | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


__all__ = ["GradeCreate", "GradeOut", "GradeUpdate"]
