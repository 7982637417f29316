"""Assignment workflows: scoped listing, authoring and student submissions."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.common.logging import log_context
from schoolhub_api.common.time import ensure_utc
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.errors import (
    ConflictError,
    NotFoundError,
    ValidationFailedError,
)
from schoolhub_api.core.guard import AccessGuard, OperationTarget
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import ResourceKind, Role
from schoolhub_api.features.school.models import SchoolClass, Teacher
from schoolhub_api.realtime.events import RealtimeEvent
from schoolhub_api.realtime.gateway import BroadcastGateway
from schoolhub_api.realtime.outbox import committed

from .models import Assignment, AssignmentSubmission
from .schemas import (
    AssignmentCreate,
    AssignmentOut,
    AssignmentUpdate,
    SubmissionCreate,
    SubmissionOut,
)

logger = logging.getLogger(__name__)

ASSIGNMENT_CREATED_MESSAGE = "A new assignment has been created!"
ASSIGNMENT_DELETED_MESSAGE = "An assignment has been deleted!"

_AUTHOR_ROLES = frozenset({Role.TEACHER, Role.ADMIN})


class AssignmentsService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        resolver: VisibilityResolver,
        guard: AccessGuard,
        gateway: BroadcastGateway | None,
    ) -> None:
        self._session = session
        self._resolver = resolver
        self._guard = guard
        self._gateway = gateway

    async def list_assignments(
        self,
        principal: Principal,
        *,
        class_id: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AssignmentOut]:
        stmt = select(Assignment).order_by(Assignment.due_date.asc(), Assignment.id.asc())
        if class_id is not None:
            stmt = stmt.where(Assignment.class_id == class_id)
        if search:
            stmt = stmt.where(Assignment.title.ilike(f"%{search.strip()}%"))
        stmt = await self._resolver.apply(stmt, principal, ResourceKind.ASSIGNMENTS, Assignment)
        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return [AssignmentOut.model_validate(row) for row in result.scalars().all()]

    async def get_assignment(self, principal: Principal, assignment_id: str) -> AssignmentOut:
        assignment = await self._resolver.get_visible(
            principal, ResourceKind.ASSIGNMENTS, Assignment, assignment_id
        )
        return AssignmentOut.model_validate(assignment)

    async def create(self, principal: Principal, payload: AssignmentCreate) -> AssignmentOut:
        await self._guard.authorize(
            principal, _AUTHOR_ROLES, OperationTarget(class_id=payload.class_id)
        )
        if await self._session.get(SchoolClass, payload.class_id) is None:
            raise NotFoundError("Class not found")
        teacher_id = await self._owning_teacher(principal, payload.teacher_id)

        duplicate = await self._session.execute(
            select(Assignment.id)
            .where(Assignment.class_id == payload.class_id, Assignment.title == payload.title)
            .limit(1)
        )
        if duplicate.scalar_one_or_none() is not None:
            raise ConflictError(f"Assignment with this title: {payload.title} already exists")

        async with committed(self._session, self._gateway) as outbox:
            assignment = Assignment(
                title=payload.title,
                description=payload.description,
                start_date=payload.start_date,
                due_date=payload.due_date,
                class_id=payload.class_id,
                teacher_id=teacher_id,
            )
            self._session.add(assignment)
            await self._session.flush()
            result = AssignmentOut.model_validate(assignment)
            outbox.to_class(
                assignment.class_id,
                {"message": ASSIGNMENT_CREATED_MESSAGE, "assignment": result.payload()},
                RealtimeEvent.CREATE_ASSIGNMENT,
            )

        logger.info(
            "assignments.create.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                class_id=assignment.class_id,
                assignment_id=assignment.id,
            ),
        )
        return result

    async def edit(
        self,
        principal: Principal,
        assignment_id: str,
        payload: AssignmentUpdate,
    ) -> AssignmentOut:
        await self._guard.authorize(principal, _AUTHOR_ROLES)
        assignment = await self._load_owned(
            principal, assignment_id, message="You can only edit your own assignments"
        )
        start_date = payload.start_date or ensure_utc(assignment.start_date)
        due_date = payload.due_date or ensure_utc(assignment.due_date)
        if due_date <= start_date:
            raise ValidationFailedError("dueDate must be after startDate")

        async with committed(self._session, self._gateway):
            if payload.title is not None:
                assignment.title = payload.title.strip()
            if "description" in payload.model_fields_set:
                assignment.description = payload.description
            assignment.start_date = start_date
            assignment.due_date = due_date
            await self._session.flush()
            result = AssignmentOut.model_validate(assignment)

        logger.info(
            "assignments.edit.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                assignment_id=assignment.id,
            ),
        )
        return result

    async def delete(self, principal: Principal, assignment_id: str) -> None:
        await self._guard.authorize(principal, _AUTHOR_ROLES)
        assignment = await self._load_owned(
            principal, assignment_id, message="You can only delete your own assignments"
        )
        submissions = await self._session.execute(
            select(func.count(AssignmentSubmission.id)).where(
                AssignmentSubmission.assignment_id == assignment.id
            )
        )
        if submissions.scalar_one():
            raise ValidationFailedError("Cannot delete assignment with existing submissions")

        async with committed(self._session, self._gateway) as outbox:
            outbox.to_class(
                assignment.class_id,
                {"message": ASSIGNMENT_DELETED_MESSAGE, "assignmentId": assignment.id},
                RealtimeEvent.DELETE_ASSIGNMENT,
            )
            await self._session.delete(assignment)
            await self._session.flush()

        logger.info(
            "assignments.delete.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                assignment_id=assignment_id,
            ),
        )

    async def submit(
        self,
        principal: Principal,
        assignment_id: str,
        payload: SubmissionCreate,
    ) -> SubmissionOut:
        await self._guard.authorize(principal, {Role.STUDENT})
        assignment = await self._resolver.get_visible(
            principal, ResourceKind.ASSIGNMENTS, Assignment, assignment_id
        )
        existing = await self._session.execute(
            select(AssignmentSubmission.id).where(
                AssignmentSubmission.assignment_id == assignment.id,
                AssignmentSubmission.student_id == principal.id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("You have already submitted this assignment")

        async with committed(self._session, self._gateway):
            submission = AssignmentSubmission(
                assignment_id=assignment.id,
                student_id=principal.id,
                content=payload.content,
            )
            self._session.add(submission)
            await self._session.flush()
            result = SubmissionOut.model_validate(submission)

        logger.info(
            "assignments.submit.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                assignment_id=assignment.id,
            ),
        )
        return result

    async def _load_owned(
        self,
        principal: Principal,
        assignment_id: str,
        *,
        message: str,
    ) -> Assignment:
        assignment = await self._resolver.get_visible(
            principal, ResourceKind.ASSIGNMENTS, Assignment, assignment_id
        )
        await self._resolver.ensure_can_mutate(
            principal, ResourceKind.ASSIGNMENTS, assignment, message=message
        )
        return assignment

    async def _owning_teacher(self, principal: Principal, requested: str | None) -> str:
        if principal.role is Role.TEACHER:
            return principal.id
        if requested is None:
            raise ValidationFailedError(
                "teacherId is required when an administrator creates an assignment"
            )
        if await self._session.get(Teacher, requested) is None:
            raise NotFoundError("Teacher not found")
        return requested


__all__ = [
    "ASSIGNMENT_CREATED_MESSAGE",
    "ASSIGNMENT_DELETED_MESSAGE",
    "AssignmentsService",
]
