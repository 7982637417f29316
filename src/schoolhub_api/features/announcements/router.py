"""HTTP routes for announcements."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from schoolhub_api.api.deps import get_announcements_service
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.http.dependencies import require_roles

from .schemas import (
    AnnouncementArchiveUpdate,
    AnnouncementCreate,
    AnnouncementOut,
    AnnouncementUpdate,
    ReadStatusOut,
    UnreadCountOut,
)
from .service import AnnouncementsService

router = APIRouter(prefix="/announcements", tags=["announcements"])

AnnouncementIdPath = Annotated[
    str,
    Path(description="Announcement identifier.", alias="announcementId"),
]
ServiceDep = Annotated[AnnouncementsService, Depends(get_announcements_service)]
Caller = Annotated[Principal, Depends(require_roles())]


@router.get("", response_model=list[AnnouncementOut], summary="List visible announcements")
async def list_announcements(
    principal: Caller,
    service: ServiceDep,
    archived: Annotated[bool | None, Query(description="Filter by archive state.")] = False,
    class_id: Annotated[str | None, Query(alias="classId")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[AnnouncementOut]:
    return await service.list_announcements(
        principal,
        archived=archived,
        class_id=class_id,
        limit=limit,
        offset=offset,
    )


@router.post(
    "",
    response_model=AnnouncementOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an announcement",
)
async def create_announcement(
    principal: Caller,
    service: ServiceDep,
    payload: Annotated[AnnouncementCreate, Body()],
) -> AnnouncementOut:
    return await service.create(principal, payload)


@router.get("/unread-count", response_model=UnreadCountOut, summary="Count unread announcements")
async def unread_count(principal: Caller, service: ServiceDep) -> UnreadCountOut:
    return await service.unread_count(principal)


@router.get("/{announcementId}", response_model=AnnouncementOut)
async def get_announcement(
    principal: Caller,
    service: ServiceDep,
    announcement_id: AnnouncementIdPath,
) -> AnnouncementOut:
    return await service.get_announcement(principal, announcement_id)


@router.patch("/{announcementId}", response_model=AnnouncementOut)
async def edit_announcement(
    principal: Caller,
    service: ServiceDep,
    announcement_id: AnnouncementIdPath,
    payload: Annotated[AnnouncementUpdate, Body()],
) -> AnnouncementOut:
    return await service.edit(principal, announcement_id, payload)


@router.post("/{announcementId}/read", response_model=ReadStatusOut)
async def mark_announcement_read(
    principal: Caller,
    service: ServiceDep,
    announcement_id: AnnouncementIdPath,
) -> ReadStatusOut:
    return await service.mark_read(principal, announcement_id)


@router.put("/{announcementId}/archive", response_model=AnnouncementOut)
async def set_announcement_archived(
    principal: Caller,
    service: ServiceDep,
    announcement_id: AnnouncementIdPath,
    payload: Annotated[AnnouncementArchiveUpdate, Body()],
) -> AnnouncementOut:
    return await service.set_archived(
        principal, announcement_id, is_archived=payload.is_archived
    )


@router.delete(
    "/{announcementId}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_announcement(
    principal: Caller,
    service: ServiceDep,
    announcement_id: AnnouncementIdPath,
) -> Response:
    await service.delete(principal, announcement_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{announcementId}/personal",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Hide an announcement from your own feed",
)
async def dismiss_announcement(
    principal: Caller,
    service: ServiceDep,
    announcement_id: AnnouncementIdPath,
) -> Response:
    await service.dismiss(principal, announcement_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
