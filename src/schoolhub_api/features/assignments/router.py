"""HTTP routes for assignments."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from schoolhub_api.api.deps import get_assignments_service
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.http.dependencies import require_roles
from schoolhub_api.core.rbac.types import Role

from .schemas import (
    AssignmentCreate,
    AssignmentOut,
    AssignmentUpdate,
    SubmissionCreate,
    SubmissionOut,
)
from .service import AssignmentsService

router = APIRouter(prefix="/assignments", tags=["assignments"])

AssignmentIdPath = Annotated[
    str,
    Path(description="Assignment identifier.", alias="assignmentId"),
]
ServiceDep = Annotated[AssignmentsService, Depends(get_assignments_service)]
Caller = Annotated[Principal, Depends(require_roles())]
Author = Annotated[Principal, Depends(require_roles(Role.TEACHER, Role.ADMIN))]


@router.get("", response_model=list[AssignmentOut], summary="List visible assignments")
async def list_assignments(
    principal: Caller,
    service: ServiceDep,
    class_id: Annotated[str | None, Query(alias="classId")] = None,
    search: Annotated[str | None, Query(alias="q", max_length=200)] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[AssignmentOut]:
    return await service.list_assignments(
        principal,
        class_id=class_id,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    principal: Author,
    service: ServiceDep,
    payload: Annotated[AssignmentCreate, Body()],
) -> AssignmentOut:
    return await service.create(principal, payload)


@router.get("/{assignmentId}", response_model=AssignmentOut)
async def get_assignment(
    principal: Caller,
    service: ServiceDep,
    assignment_id: AssignmentIdPath,
) -> AssignmentOut:
    return await service.get_assignment(principal, assignment_id)


@router.patch("/{assignmentId}", response_model=AssignmentOut)
async def edit_assignment(
    principal: Author,
    service: ServiceDep,
    assignment_id: AssignmentIdPath,
    payload: Annotated[AssignmentUpdate, Body()],
) -> AssignmentOut:
    return await service.edit(principal, assignment_id, payload)


@router.delete(
    "/{assignmentId}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_assignment(
    principal: Author,
    service: ServiceDep,
    assignment_id: AssignmentIdPath,
) -> Response:
    await service.delete(principal, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{assignmentId}/submissions",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_assignment(
    principal: Annotated[Principal, Depends(require_roles(Role.STUDENT))],
    service: ServiceDep,
    assignment_id: AssignmentIdPath,
    payload: Annotated[SubmissionCreate, Body()],
) -> SubmissionOut:
    return await service.submit(principal, assignment_id, payload)


__all__ = ["router"]
