"""Grade workflows."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.common.logging import log_context
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.errors import NotFoundError, ValidationFailedError
from schoolhub_api.core.guard import AccessGuard, OperationTarget
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import ResourceKind, Role
from schoolhub_api.features.school.models import Student, Teacher
from schoolhub_api.realtime.outbox import committed

from .models import Grade, GradeType
from .schemas import GradeCreate, GradeOut, GradeUpdate

logger = logging.getLogger(__name__)

_GRADING_ROLES = frozenset({Role.TEACHER, Role.ADMIN})


class GradesService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        resolver: VisibilityResolver,
        guard: AccessGuard,
    ) -> None:
        self._session = session
        self._resolver = resolver
        self._guard = guard

    async def list_grades(
        self,
        principal: Principal,
        *,
        student_id: str | None = None,
        class_id: str | None = None,
        grade_type: GradeType | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[GradeOut]:
        stmt = select(Grade).order_by(Grade.created_at.desc(), Grade.id.desc())
        if student_id is not None:
            stmt = stmt.where(Grade.student_id == student_id)
        if class_id is not None:
            stmt = stmt.where(Grade.class_id == class_id)
        if grade_type is not None:
            stmt = stmt.where(Grade.type == grade_type)
        stmt = await self._resolver.apply(stmt, principal, ResourceKind.GRADES, Grade)
        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return [GradeOut.model_validate(row) for row in result.scalars().all()]

    async def record(self, principal: Principal, payload: GradeCreate) -> GradeOut:
        """Record a grade; teachers may only grade students in classes they teach."""

        await self._guard.authorize(
            principal,
            _GRADING_ROLES,
            OperationTarget(student_id=payload.student_id),
        )
        student = await self._session.get(Student, payload.student_id)
        if student is None:
            raise NotFoundError("Student not found")
        teacher_id = await self._grading_teacher(principal, payload.teacher_id)

        async with committed(self._session, None):
            grade = Grade(
                student_id=student.id,
                class_id=student.class_id,
                teacher_id=teacher_id,
                score=payload.score,
                type=payload.type,
                comment=payload.comment,
            )
            self._session.add(grade)
            await self._session.flush()
            result = GradeOut.model_validate(grade)

        logger.info(
            "grades.record.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                class_id=student.class_id,
                grade_id=grade.id,
            ),
        )
        return result

    async def update(
        self,
        principal: Principal,
        grade_id: str,
        payload: GradeUpdate,
    ) -> GradeOut:
        await self._guard.authorize(principal, _GRADING_ROLES)
        grade = await self._load_owned(
            principal, grade_id, message="You do not have access to modify this grade"
        )

        async with committed(self._session, None):
            if payload.score is not None:
                grade.score = payload.score
            if payload.type is not None:
                grade.type = payload.type
            if "comment" in payload.model_fields_set:
                grade.comment = payload.comment
            await self._session.flush()
            result = GradeOut.model_validate(grade)

        logger.info(
            "grades.update.success",
            extra=log_context(user_id=principal.id, role=principal.role, grade_id=grade.id),
        )
        return result

    async def delete(self, principal: Principal, grade_id: str) -> None:
        await self._guard.authorize(principal, _GRADING_ROLES)
        grade = await self._load_owned(
            principal, grade_id, message="You do not have access to delete this grade"
        )
        async with committed(self._session, None):
            await self._session.delete(grade)
            await self._session.flush()

        logger.info(
            "grades.delete.success",
            extra=log_context(user_id=principal.id, role=principal.role, grade_id=grade_id),
        )

    async def _load_owned(self, principal: Principal, grade_id: str, *, message: str) -> Grade:
        grade = await self._resolver.get_visible(
            principal, ResourceKind.GRADES, Grade, grade_id
        )
        await self._resolver.ensure_can_mutate(
            principal, ResourceKind.GRADES, grade, message=message
        )
        return grade

    async def _grading_teacher(self, principal: Principal, requested: str | None) -> str:
        if principal.role is Role.TEACHER:
            return principal.id
        if requested is None:
            raise ValidationFailedError(
                "teacherId is required when an administrator records a grade"
            )
        if await self._session.get(Teacher, requested) is None:
            raise NotFoundError("Teacher not found")
        return requested


__all__ = ["GradesService"]
