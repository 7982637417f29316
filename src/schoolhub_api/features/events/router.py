"""HTTP routes for calendar events."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from schoolhub_api.api.deps import get_events_service
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.http.dependencies import require_roles

from .models import EventStatus
from .schemas import EventCancel, EventCreate, EventOut, EventUpdate
from .service import EventsService

router = APIRouter(prefix="/events", tags=["events"])

EventIdPath = Annotated[str, Path(description="Event identifier.", alias="eventId")]
ServiceDep = Annotated[EventsService, Depends(get_events_service)]
Caller = Annotated[Principal, Depends(require_roles())]


@router.get("", response_model=list[EventOut], summary="List visible events")
async def list_events(
    principal: Caller,
    service: ServiceDep,
    event_status: Annotated[EventStatus | None, Query(alias="status")] = None,
    class_id: Annotated[str | None, Query(alias="classId")] = None,
    starts_after: Annotated[datetime | None, Query(alias="startsAfter")] = None,
    ends_before: Annotated[datetime | None, Query(alias="endsBefore")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[EventOut]:
    return await service.list_events(
        principal,
        status=event_status,
        class_id=class_id,
        starts_after=starts_after,
        ends_before=ends_before,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event(
    principal: Caller,
    service: ServiceDep,
    payload: Annotated[EventCreate, Body()],
) -> EventOut:
    return await service.create(principal, payload)


@router.get("/{eventId}", response_model=EventOut)
async def get_event(principal: Caller, service: ServiceDep, event_id: EventIdPath) -> EventOut:
    return await service.get_event(principal, event_id)


@router.patch("/{eventId}", response_model=EventOut)
async def update_event(
    principal: Caller,
    service: ServiceDep,
    event_id: EventIdPath,
    payload: Annotated[EventUpdate, Body()],
) -> EventOut:
    return await service.update(principal, event_id, payload)


@router.post("/{eventId}/cancel", response_model=EventOut)
async def cancel_event(
    principal: Caller,
    service: ServiceDep,
    event_id: EventIdPath,
    payload: Annotated[EventCancel, Body()],
) -> EventOut:
    return await service.cancel(principal, event_id, payload.reason)


@router.delete("/{eventId}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_event(principal: Caller, service: ServiceDep, event_id: EventIdPath) -> Response:
    await service.delete(principal, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
