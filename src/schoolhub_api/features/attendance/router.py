"""HTTP routes for attendance."""

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, status

from schoolhub_api.api.deps import get_attendance_service
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.http.dependencies import require_roles
from schoolhub_api.core.rbac.types import Role

from .schemas import AttendanceMarkRequest, AttendanceOut, AttendanceStatsOut
from .service import AttendanceService

router = APIRouter(prefix="/attendance", tags=["attendance"])

ServiceDep = Annotated[AttendanceService, Depends(get_attendance_service)]
Caller = Annotated[Principal, Depends(require_roles())]
Marker = Annotated[Principal, Depends(require_roles(Role.TEACHER, Role.ADMIN))]


@router.get("", response_model=list[AttendanceOut], summary="List visible attendance records")
async def list_attendance(
    principal: Caller,
    service: ServiceDep,
    student_id: Annotated[str | None, Query(alias="studentId")] = None,
    lesson_id: Annotated[str | None, Query(alias="lessonId")] = None,
    class_id: Annotated[str | None, Query(alias="classId")] = None,
    date_from: Annotated[date | None, Query(alias="from")] = None,
    date_to: Annotated[date | None, Query(alias="to")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[AttendanceOut]:
    return await service.list_attendance(
        principal,
        student_id=student_id,
        lesson_id=lesson_id,
        class_id=class_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )


@router.post(
    "",
    response_model=list[AttendanceOut],
    status_code=status.HTTP_201_CREATED,
    summary="Mark attendance for a lesson",
)
async def mark_attendance(
    principal: Marker,
    service: ServiceDep,
    payload: Annotated[AttendanceMarkRequest, Body()],
) -> list[AttendanceOut]:
    return await service.mark(principal, payload)


@router.get(
    "/lessons/{lessonId}",
    response_model=list[AttendanceOut],
    summary="List the attendance records of one lesson",
)
async def lesson_attendance(
    principal: Marker,
    service: ServiceDep,
    lesson_id: Annotated[str, Path(alias="lessonId")],
) -> list[AttendanceOut]:
    return await service.list_for_lesson(principal, lesson_id)


@router.get("/students/{studentId}/stats", response_model=AttendanceStatsOut)
async def attendance_stats(
    principal: Caller,
    service: ServiceDep,
    student_id: Annotated[str, Path(alias="studentId")],
    date_from: Annotated[date | None, Query(alias="from")] = None,
    date_to: Annotated[date | None, Query(alias="to")] = None,
) -> AttendanceStatsOut:
    return await service.stats(principal, student_id, date_from=date_from, date_to=date_to)


__all__ = ["router"]
