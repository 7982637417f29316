"""Read-only directory listings filtered through the visibility resolver."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import ResourceKind

from .models import Parent, SchoolClass, Student
from .schemas import ClassOut, ParentOut, StudentOut


class DirectoryService:
    def __init__(self, *, session: AsyncSession, resolver: VisibilityResolver) -> None:
        self._session = session
        self._resolver = resolver

    async def list_students(
        self,
        principal: Principal,
        *,
        class_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[StudentOut]:
        stmt = select(Student).order_by(Student.surname, Student.name, Student.id)
        if class_id is not None:
            stmt = stmt.where(Student.class_id == class_id)
        rows = await self._visible(principal, ResourceKind.STUDENTS, Student, stmt, limit, offset)
        return [StudentOut.model_validate(row) for row in rows]

    async def get_student(self, principal: Principal, student_id: str) -> StudentOut:
        student = await self._resolver.get_visible(
            principal, ResourceKind.STUDENTS, Student, student_id
        )
        return StudentOut.model_validate(student)

    async def list_parents(
        self,
        principal: Principal,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ParentOut]:
        stmt = select(Parent).order_by(Parent.surname, Parent.name, Parent.id)
        rows = await self._visible(principal, ResourceKind.PARENTS, Parent, stmt, limit, offset)
        return [ParentOut.model_validate(row) for row in rows]

    async def list_classes(
        self,
        principal: Principal,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ClassOut]:
        stmt = select(SchoolClass).order_by(SchoolClass.name, SchoolClass.id)
        rows = await self._visible(
            principal, ResourceKind.CLASSES, SchoolClass, stmt, limit, offset
        )
        return [ClassOut.model_validate(row) for row in rows]

    async def _visible(
        self,
        principal: Principal,
        resource: ResourceKind,
        model: type[Any],
        stmt: Any,
        limit: int,
        offset: int,
    ) -> list[Any]:
        stmt = await self._resolver.apply(stmt, principal, resource, model)
        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return list(result.scalars().all())


__all__ = ["DirectoryService"]
