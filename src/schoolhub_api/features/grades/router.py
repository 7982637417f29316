"""HTTP routes for grades."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from schoolhub_api.api.deps import get_grades_service
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.http.dependencies import require_roles
from schoolhub_api.core.rbac.types import Role

from .models import GradeType
from .schemas import GradeCreate, GradeOut, GradeUpdate
from .service import GradesService

router = APIRouter(prefix="/grades", tags=["grades"])

ServiceDep = Annotated[GradesService, Depends(get_grades_service)]
Grader = Annotated[Principal, Depends(require_roles(Role.TEACHER, Role.ADMIN))]
GradeIdPath = Annotated[str, Path(description="Grade identifier.", alias="gradeId")]


@router.get("", response_model=list[GradeOut], summary="List visible grades")
async def list_grades(
    principal: Annotated[Principal, Depends(require_roles())],
    service: ServiceDep,
    student_id: Annotated[str | None, Query(alias="studentId")] = None,
    class_id: Annotated[str | None, Query(alias="classId")] = None,
    grade_type: Annotated[GradeType | None, Query(alias="type")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[GradeOut]:
    return await service.list_grades(
        principal,
        student_id=student_id,
        class_id=class_id,
        grade_type=grade_type,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=GradeOut, status_code=status.HTTP_201_CREATED)
async def record_grade(
    principal: Grader,
    service: ServiceDep,
    payload: Annotated[GradeCreate, Body()],
) -> GradeOut:
    return await service.record(principal, payload)


@router.patch("/{gradeId}", response_model=GradeOut)
async def update_grade(
    principal: Grader,
    service: ServiceDep,
    grade_id: GradeIdPath,
    payload: Annotated[GradeUpdate, Body()],
) -> GradeOut:
    return await service.update(principal, grade_id, payload)


@router.delete("/{gradeId}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_grade(
    principal: Grader,
    service: ServiceDep,
    grade_id: GradeIdPath,
) -> Response:
    await service.delete(principal, grade_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
