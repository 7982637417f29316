"""HTTP routes for the school directory."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from schoolhub_api.api.deps import get_directory_service
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.http.dependencies import require_roles

from .schemas import ClassOut, ParentOut, StudentOut
from .service import DirectoryService

router = APIRouter(tags=["directory"])

ServiceDep = Annotated[DirectoryService, Depends(get_directory_service)]
Caller = Annotated[Principal, Depends(require_roles())]
Limit = Annotated[int, Query(ge=1, le=500)]
Offset = Annotated[int, Query(ge=0)]


@router.get("/students", response_model=list[StudentOut], summary="List visible students")
async def list_students(
    principal: Caller,
    service: ServiceDep,
    class_id: Annotated[str | None, Query(alias="classId")] = None,
    limit: Limit = 100,
    offset: Offset = 0,
) -> list[StudentOut]:
    return await service.list_students(principal, class_id=class_id, limit=limit, offset=offset)


@router.get("/students/{studentId}", response_model=StudentOut)
async def get_student(
    principal: Caller,
    service: ServiceDep,
    student_id: Annotated[str, Path(alias="studentId")],
) -> StudentOut:
    return await service.get_student(principal, student_id)


@router.get("/parents", response_model=list[ParentOut], summary="List visible parents")
async def list_parents(
    principal: Caller,
    service: ServiceDep,
    limit: Limit = 100,
    offset: Offset = 0,
) -> list[ParentOut]:
    return await service.list_parents(principal, limit=limit, offset=offset)


@router.get("/classes", response_model=list[ClassOut], summary="List visible classes")
async def list_classes(
    principal: Caller,
    service: ServiceDep,
    limit: Limit = 100,
    offset: Offset = 0,
) -> list[ClassOut]:
    return await service.list_classes(principal, limit=limit, offset=offset)


__all__ = ["router"]
