"""Event workflows: creation, scoped listing, updates, cancellation, deletion."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.common.logging import log_context
from schoolhub_api.common.time import ensure_utc, utc_now
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from schoolhub_api.core.guard import AccessGuard, OperationTarget
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import ADMIN_ROLES, ResourceKind, Role
from schoolhub_api.features.school.models import SchoolClass
from schoolhub_api.realtime.events import RealtimeEvent
from schoolhub_api.realtime.gateway import BroadcastGateway
from schoolhub_api.realtime.outbox import Outbox, committed

from .models import Event, EventAudience, EventStatus, EventVisibility
from .schemas import EventCreate, EventOut, EventUpdate

logger = logging.getLogger(__name__)

EVENT_CREATED_MESSAGE = "A new event has been created!"
EVENT_UPDATED_MESSAGE = "An event has been updated!"
EVENT_DELETED_MESSAGE = "An event has been deleted!"

_PUBLIC_AUTHORS = frozenset({Role.TEACHER, Role.ADMIN, Role.SUPER_ADMIN})
_CLASS_AUDIENCE = (Role.PARENT, Role.STUDENT, Role.TEACHER)


class EventsService:
    """Manage calendar events on behalf of a principal."""

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

    async def create(self, principal: Principal, payload: EventCreate) -> EventOut:
        private = payload.visibility is EventVisibility.PRIVATE
        class_id = None if private else payload.class_id
        await self._guard.authorize(principal, (), OperationTarget(class_id=class_id))
        if not private and principal.role not in _PUBLIC_AUTHORS:
            raise PermissionDeniedError(
                "Only staff can create public events",
                resource=ResourceKind.EVENTS.value,
                role=principal.role.value,
            )
        if class_id is not None and await self._session.get(SchoolClass, class_id) is None:
            raise NotFoundError("Class not found")
        await self._ensure_unique(payload.title, payload.start_time, class_id)
        roles = _audience_for(principal, private, class_id, payload.target_roles)

        async with committed(self._session, self._gateway) as outbox:
            event = Event(
                title=payload.title,
                description=payload.description,
                location=payload.location,
                start_time=payload.start_time,
                end_time=payload.end_time,
                status=EventStatus.SCHEDULED,
                visibility=payload.visibility,
                creator_id=principal.id,
                creator_role=principal.role,
                class_id=class_id,
                audiences=[EventAudience(role=role) for role in roles],
            )
            self._session.add(event)
            await self._session.flush()
            result = EventOut.model_validate(event)
            _notify_audience(
                outbox,
                event,
                RealtimeEvent.EVENT_CREATED,
                {
                    "message": EVENT_CREATED_MESSAGE,
                    "event": result.payload(),
                    "targetRoles": [role.value for role in roles],
                },
            )

        logger.info(
            "events.create.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                class_id=class_id,
                event_id=event.id,
                visibility=event.visibility.value,
            ),
        )
        return result

    async def list_events(
        self,
        principal: Principal,
        *,
        status: EventStatus | None = None,
        class_id: str | None = None,
        starts_after: datetime | None = None,
        ends_before: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[EventOut]:
        stmt = select(Event).order_by(Event.start_time.asc(), Event.id.asc())
        if status is not None:
            stmt = stmt.where(Event.status == status)
        if class_id is not None:
            stmt = stmt.where(Event.class_id == class_id)
        if starts_after is not None:
            stmt = stmt.where(Event.start_time >= ensure_utc(starts_after))
        if ends_before is not None:
            stmt = stmt.where(Event.end_time <= ensure_utc(ends_before))
        stmt = await self._resolver.apply(stmt, principal, ResourceKind.EVENTS, Event)
        result = await self._session.execute(stmt.limit(limit).offset(offset))
        return [EventOut.model_validate(row) for row in result.scalars().all()]

    async def get_event(self, principal: Principal, event_id: str) -> EventOut:
        event = await self._resolver.get_visible(principal, ResourceKind.EVENTS, Event, event_id)
        return EventOut.model_validate(event)

    async def update(self, principal: Principal, event_id: str, payload: EventUpdate) -> EventOut:
        event = await self._load_owned(principal, event_id)
        visibility = payload.visibility or event.visibility
        private = visibility is EventVisibility.PRIVATE
        class_changed = "class_id" in payload.model_fields_set
        class_id = None if private else (payload.class_id if class_changed else event.class_id)
        if class_changed and class_id is not None:
            await self._guard.authorize(principal, (), OperationTarget(class_id=class_id))
            if await self._session.get(SchoolClass, class_id) is None:
                raise NotFoundError("Class not found")
        if not private and principal.role not in _PUBLIC_AUTHORS:
            raise PermissionDeniedError(
                "Only staff can create public events",
                resource=ResourceKind.EVENTS.value,
                role=principal.role.value,
            )

        start_time = payload.start_time or ensure_utc(event.start_time)
        end_time = payload.end_time or ensure_utc(event.end_time)
        if end_time <= start_time:
            raise ValidationFailedError("endTime must be after startTime")

        if private:
            roles = [event.creator_role]
        elif payload.target_roles is not None:
            roles = _audience_for(principal, False, class_id, payload.target_roles)
        else:
            roles = event.target_roles

        async with committed(self._session, self._gateway) as outbox:
            for field in ("title", "description", "location"):
                if field in payload.model_fields_set:
                    setattr(event, field, getattr(payload, field))
            event.start_time = start_time
            event.end_time = end_time
            event.visibility = visibility
            event.class_id = class_id
            _replace_audience(event, roles)
            event.updated_at = utc_now()
            await self._session.flush()
            result = EventOut.model_validate(event)
            _notify_audience(
                outbox,
                event,
                RealtimeEvent.EVENT_UPDATED,
                {"message": EVENT_UPDATED_MESSAGE, "event": result.payload()},
            )

        logger.info(
            "events.update.success",
            extra=log_context(user_id=principal.id, role=principal.role, event_id=event.id),
        )
        return result

    async def cancel(self, principal: Principal, event_id: str, reason: str) -> EventOut:
        event = await self._load_owned(principal, event_id)
        if event.status is EventStatus.CANCELLED:
            raise ConflictError("Event is already cancelled")

        async with committed(self._session, self._gateway) as outbox:
            note = f"CANCELLED: {reason.strip()}"
            event.description = f"{event.description}\n\n{note}" if event.description else note
            event.status = EventStatus.CANCELLED
            event.updated_at = utc_now()
            await self._session.flush()
            result = EventOut.model_validate(event)
            _notify_audience(
                outbox,
                event,
                RealtimeEvent.EVENT_UPDATED,
                {"message": EVENT_UPDATED_MESSAGE, "event": result.payload()},
            )

        logger.info(
            "events.cancel.success",
            extra=log_context(user_id=principal.id, role=principal.role, event_id=event.id),
        )
        return result

    async def delete(self, principal: Principal, event_id: str) -> None:
        event = await self._resolver.get_visible(principal, ResourceKind.EVENTS, Event, event_id)
        if event.visibility is EventVisibility.PUBLIC and principal.role not in ADMIN_ROLES:
            raise PermissionDeniedError(
                "Only admins or super admins can delete public events",
                resource=ResourceKind.EVENTS.value,
                role=principal.role.value,
            )
        await self._resolver.ensure_can_mutate(
            principal,
            ResourceKind.EVENTS,
            event,
            message="You can only delete your own events or need admin privileges",
        )

        async with committed(self._session, self._gateway) as outbox:
            _notify_audience(
                outbox,
                event,
                RealtimeEvent.DELETE_EVENT,
                {"message": EVENT_DELETED_MESSAGE, "eventId": event.id},
            )
            await self._session.delete(event)
            await self._session.flush()

        logger.info(
            "events.delete.success",
            extra=log_context(user_id=principal.id, role=principal.role, event_id=event_id),
        )

    async def _load_owned(self, principal: Principal, event_id: str) -> Event:
        event = await self._resolver.get_visible(principal, ResourceKind.EVENTS, Event, event_id)
        await self._resolver.ensure_can_mutate(
            principal,
            ResourceKind.EVENTS,
            event,
            message="You can only modify events you created",
        )
        return event

    async def _ensure_unique(self, title: str, start_time: datetime, class_id: str | None) -> None:
        stmt = select(Event.id).where(Event.title == title, Event.start_time == start_time)
        if class_id is not None:
            stmt = stmt.where(Event.class_id == class_id)
        result = await self._session.execute(stmt.limit(1))
        if result.scalar_one_or_none() is not None:
            raise ConflictError("Event with this title already exists")


def _audience_for(
    principal: Principal,
    private: bool,
    class_id: str | None,
    requested: Iterable[Role],
) -> list[Role]:
    """Target roles stored for an event.

    Private events target only the creator's role. Public events use the
    requested roles, falling back to everyone in the class for class events
    and to the creator's role otherwise.
    """

    if private:
        return [principal.role]
    roles = sorted(set(requested), key=lambda role: role.value)
    if roles:
        return roles
    if class_id is not None:
        return list(_CLASS_AUDIENCE)
    return [principal.role]


def _replace_audience(event: Event, roles: Iterable[Role]) -> None:
    wanted = set(roles)
    for audience in list(event.audiences):
        if audience.role not in wanted:
            event.audiences.remove(audience)
    present = {audience.role for audience in event.audiences}
    for role in sorted(wanted - present, key=lambda role: role.value):
        event.audiences.append(EventAudience(role=role))


def _notify_audience(
    outbox: Outbox,
    event: Event,
    name: RealtimeEvent,
    payload: object,
) -> None:
    """Private events reach their creator; class events their class room."""

    if event.visibility is EventVisibility.PRIVATE:
        outbox.to_user(event.creator_id, payload, name)
    elif event.class_id:
        outbox.to_class(event.class_id, payload, name)
    else:
        outbox.to_roles(payload, event.target_roles, name)


__all__ = [
    "EVENT_CREATED_MESSAGE",
    "EVENT_DELETED_MESSAGE",
    "EVENT_UPDATED_MESSAGE",
    "EventsService",
]
