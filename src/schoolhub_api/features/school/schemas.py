"""Pydantic schemas for directory listings."""

from __future__ import annotations

from schoolhub_api.common.schema import BaseSchema


class StudentOut(BaseSchema):
    id: str
    username: str
    name: str
    surname: str
    class_id: str
    parent_id: str | None = None


class ParentOut(BaseSchema):
    id: str
    username: str
    name: str
    surname: str
    email: str | None = None


class ClassOut(BaseSchema):
    id: str
    name: str
    capacity: int | None = None
    supervisor_id: str | None = None


__all__ = ["ClassOut", "ParentOut", "StudentOut"]
