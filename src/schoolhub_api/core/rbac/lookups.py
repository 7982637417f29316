"""Read-only relationship lookups used to build visibility scopes.

Results are never cached: every call reflects the roster as it is right now,
so a parent gaining or losing a child is visible on the very next request.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select, union
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.features.school.models import Lesson, SchoolClass, Student


class RelationshipLookups:
    """Resolve indirect links between principals and roster entities."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def teacher_class_ids(self, teacher_id: str) -> frozenset[str]:
        """Classes the teacher supervises or teaches at least one lesson in."""

        supervised = select(SchoolClass.id).where(SchoolClass.supervisor_id == teacher_id)
        taught = select(Lesson.class_id).where(Lesson.teacher_id == teacher_id)
        result = await self._session.execute(union(supervised, taught))
        return frozenset(result.scalars().all())

    async def teacher_has_class(self, teacher_id: str, class_id: str) -> bool:
        return class_id in await self.teacher_class_ids(teacher_id)

    async def parent_child_ids(self, parent_id: str) -> frozenset[str]:
        result = await self._session.execute(
            select(Student.id).where(Student.parent_id == parent_id)
        )
        return frozenset(result.scalars().all())

    async def parent_child_class_ids(self, parent_id: str) -> frozenset[str]:
        result = await self._session.execute(
            select(Student.class_id).where(Student.parent_id == parent_id).distinct()
        )
        return frozenset(result.scalars().all())

    async def student_class_id(self, student_id: str) -> str | None:
        result = await self._session.execute(
            select(Student.class_id).where(Student.id == student_id)
        )
        return result.scalar_one_or_none()

    async def student_parent_id(self, student_id: str) -> str | None:
        result = await self._session.execute(
            select(Student.parent_id).where(Student.id == student_id)
        )
        return result.scalar_one_or_none()

    async def parent_ids_for_classes(self, class_ids: Iterable[str]) -> frozenset[str]:
        ids = sorted(set(class_ids))
        if not ids:
            return frozenset()
        result = await self._session.execute(
            select(Student.parent_id)
            .where(Student.class_id.in_(ids), Student.parent_id.is_not(None))
            .distinct()
        )
        return frozenset(result.scalars().all())


__all__ = ["RelationshipLookups"]
