"""Attendance workflows: scoped listing, marking and per-student statistics."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.common.logging import log_context
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from schoolhub_api.core.guard import AccessGuard, OperationTarget
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import ResourceKind, Role
from schoolhub_api.features.school.models import Lesson, Student
from schoolhub_api.realtime.events import RealtimeEvent
from schoolhub_api.realtime.gateway import BroadcastGateway
from schoolhub_api.realtime.outbox import committed

from .models import Attendance
from .schemas import AttendanceMarkRequest, AttendanceOut, AttendanceStatsOut

logger = logging.getLogger(__name__)

ATTENDANCE_MARKED_MESSAGE = "Attendance has been marked!"

_MARKING_ROLES = frozenset({Role.TEACHER, Role.ADMIN})


class AttendanceService:
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

    async def list_attendance(
        self,
        principal: Principal,
        *,
        student_id: str | None = None,
        lesson_id: str | None = None,
        class_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AttendanceOut]:
        stmt = select(Attendance).order_by(Attendance.attended_on.desc(), Attendance.id.asc())
        if student_id is not None:
            stmt = stmt.where(Attendance.student_id == student_id)
        if lesson_id is not None:
            stmt = stmt.where(Attendance.lesson_id == lesson_id)
        if class_id is not None:
            stmt = stmt.where(Attendance.class_id == class_id)
        if date_from is not None:
            stmt = stmt.where(Attendance.attended_on >= date_from)
        if date_to is not None:
            stmt = stmt.where(Attendance.attended_on <= date_to)
        stmt = await self._resolver.apply(stmt, principal, ResourceKind.ATTENDANCE, Attendance)
        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return [AttendanceOut.model_validate(row) for row in result.scalars().all()]

    async def list_for_lesson(self, principal: Principal, lesson_id: str) -> list[AttendanceOut]:
        """Every record of one lesson; teachers must teach the lesson's class."""

        await self._guard.authorize(principal, _MARKING_ROLES)
        lesson = await self._session.get(Lesson, lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        await self._guard.authorize(
            principal, _MARKING_ROLES, OperationTarget(class_id=lesson.class_id)
        )
        stmt = (
            select(Attendance)
            .where(Attendance.lesson_id == lesson.id)
            .order_by(Attendance.attended_on.desc(), Attendance.student_id.asc())
        )
        stmt = await self._resolver.apply(stmt, principal, ResourceKind.ATTENDANCE, Attendance)
        result = await self._session.execute(stmt)
        return [AttendanceOut.model_validate(row) for row in result.scalars().all()]

    async def mark(
        self,
        principal: Principal,
        payload: AttendanceMarkRequest,
    ) -> list[AttendanceOut]:
        """Upsert one record per student and date for ``payload.lesson_id``."""

        await self._guard.authorize(principal, _MARKING_ROLES)
        lesson = await self._session.get(Lesson, payload.lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        if principal.role is Role.TEACHER and lesson.teacher_id != principal.id:
            raise PermissionDeniedError(
                "You can only mark attendance for your own lessons",
                resource=ResourceKind.ATTENDANCE.value,
                role=principal.role.value,
            )

        entries = {(entry.student_id, entry.attended_on): entry for entry in payload.records}
        student_ids = sorted({student_id for student_id, _ in entries})
        await self._ensure_enrolled(student_ids, lesson.class_id)

        async with committed(self._session, self._gateway) as outbox:
            days = {day for _, day in entries}
            existing = await self._existing_records(lesson.id, student_ids, days)
            records: list[Attendance] = []
            for key, entry in entries.items():
                record = existing.get(key)
                if record is None:
                    record = Attendance(
                        student_id=entry.student_id,
                        lesson_id=lesson.id,
                        class_id=lesson.class_id,
                        attended_on=entry.attended_on,
                        present=entry.present,
                    )
                    self._session.add(record)
                else:
                    record.present = entry.present
                records.append(record)
            await self._session.flush()
            results = [AttendanceOut.model_validate(record) for record in records]
            outbox.to_class(
                lesson.class_id,
                {
                    "message": ATTENDANCE_MARKED_MESSAGE,
                    "attendance": [item.payload() for item in results],
                },
                RealtimeEvent.MARK_ATTENDANCE,
            )

        logger.info(
            "attendance.mark.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                class_id=lesson.class_id,
                lesson_id=lesson.id,
                records=len(results),
            ),
        )
        return results

    async def stats(
        self,
        principal: Principal,
        student_id: str,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> AttendanceStatsOut:
        await self._guard.authorize(principal, (), OperationTarget(student_id=student_id))
        if await self._session.get(Student, student_id) is None:
            raise NotFoundError("Student not found")

        stmt = select(
            func.count(Attendance.id),
            func.coalesce(func.sum(case((Attendance.present.is_(True), 1), else_=0)), 0),
        ).where(Attendance.student_id == student_id)
        if date_from is not None:
            stmt = stmt.where(Attendance.attended_on >= date_from)
        if date_to is not None:
            stmt = stmt.where(Attendance.attended_on <= date_to)
        stmt = await self._resolver.apply(stmt, principal, ResourceKind.ATTENDANCE, Attendance)
        total, present = (await self._session.execute(stmt)).one()
        total = int(total or 0)
        present = int(present or 0)
        return AttendanceStatsOut(
            student_id=student_id,
            total=total,
            present=present,
            absent=total - present,
            attendance_rate=round(present / total * 100, 2) if total else 0.0,
        )

    async def _ensure_enrolled(self, student_ids: list[str], class_id: str) -> None:
        result = await self._session.execute(
            select(Student.id, Student.class_id).where(Student.id.in_(student_ids))
        )
        classes = dict(result.tuples().all())
        missing = [student_id for student_id in student_ids if student_id not in classes]
        if missing:
            raise NotFoundError("Student not found", meta={"studentIds": missing})
        outside = [student_id for student_id in student_ids if classes[student_id] != class_id]
        if outside:
            raise ValidationFailedError(
                "Students must belong to the lesson's class",
                meta={"studentIds": outside},
            )

    async def _existing_records(
        self,
        lesson_id: str,
        student_ids: list[str],
        days: set[date],
    ) -> dict[tuple[str, date], Attendance]:
        result = await self._session.execute(
            select(Attendance).where(
                Attendance.lesson_id == lesson_id,
                Attendance.student_id.in_(student_ids),
                Attendance.attended_on.in_(sorted(days)),
            )
        )
        return {(row.student_id, row.attended_on): row for row in result.scalars().all()}


__all__ = ["ATTENDANCE_MARKED_MESSAGE", "AttendanceService"]
