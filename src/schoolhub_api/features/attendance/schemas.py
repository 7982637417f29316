"""Pydantic schemas for attendance payloads."""

from __future__ import annotations

from datetime import date

from pydantic import Field

from schoolhub_api.common.schema import BaseSchema, UtcDatetime


class AttendanceEntry(BaseSchema):
    student_id: str
    attended_on: date = Field(alias="date")
    present: bool


class AttendanceMarkRequest(BaseSchema):
    lesson_id: str
    records: list[AttendanceEntry] = Field(min_length=1)


class AttendanceOut(BaseSchema):
    id: str
    student_id: str
    lesson_id: str
    class_id: str
    attended_on: date = Field(alias="date")
    present: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime


class AttendanceStatsOut(BaseSchema):
    student_id: str
    total: int
    present: int
    absent: int
    attendance_rate: float


__all__ = ["AttendanceEntry", "AttendanceMarkRequest", "AttendanceOut", "AttendanceStatsOut"]
