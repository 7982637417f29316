"""Announcement workflows: authoring, visibility, read receipts, archival."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.common.logging import log_context
from schoolhub_api.common.time import utc_now
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from schoolhub_api.core.guard import AccessGuard, OperationTarget
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import ResourceKind, Role
from schoolhub_api.features.school.models import SchoolClass
from schoolhub_api.realtime.events import RealtimeEvent
from schoolhub_api.realtime.gateway import BroadcastGateway
from schoolhub_api.realtime.outbox import Outbox, committed

from .models import Announcement, AnnouncementAudience, AnnouncementDismissal, AnnouncementRead
from .schemas import (
    AnnouncementCreate,
    AnnouncementOut,
    AnnouncementUpdate,
    ReadStatusOut,
    UnreadCountOut,
)

logger = logging.getLogger(__name__)

_AUTHOR_ROLES = frozenset({Role.TEACHER, Role.ADMIN})
_TEACHER_TARGETS = frozenset({Role.STUDENT, Role.PARENT})
_ADMIN_TARGETS = frozenset({Role.TEACHER, Role.STUDENT, Role.PARENT})


class AnnouncementsService:
    """Create, read and manage announcements for the calling principal."""

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

    async def create(self, principal: Principal, payload: AnnouncementCreate) -> AnnouncementOut:
        await self._guard.authorize(
            principal, _AUTHOR_ROLES, OperationTarget(class_id=payload.class_id)
        )
        roles = _validate_targets(principal, payload.target_roles)
        if payload.class_id is None and not roles:
            raise ValidationFailedError("An announcement needs a class or at least one target role")
        if payload.class_id is not None:
            if await self._session.get(SchoolClass, payload.class_id) is None:
                raise NotFoundError("Class not found")

        async with committed(self._session, self._gateway) as outbox:
            announcement = Announcement(
                title=payload.title,
                content=payload.content,
                creator_id=principal.id,
                creator_role=principal.role,
                class_id=payload.class_id,
                is_archived=False,
                audiences=[AnnouncementAudience(role=role) for role in roles],
            )
            self._session.add(announcement)
            await self._session.flush()
            result = _serialize(announcement)
            _notify_audience(outbox, announcement, RealtimeEvent.NEW_ANNOUNCEMENT, result.payload())

        logger.info(
            "announcements.create.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                class_id=announcement.class_id,
                announcement_id=announcement.id,
            ),
        )
        return result

    async def list_announcements(
        self,
        principal: Principal,
        *,
        archived: bool | None = False,
        class_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AnnouncementOut]:
        stmt = select(Announcement).order_by(
            Announcement.created_at.desc(), Announcement.id.desc()
        )
        if archived is not None:
            stmt = stmt.where(Announcement.is_archived.is_(archived))
        if class_id is not None:
            stmt = stmt.where(Announcement.class_id == class_id)
        stmt = stmt.where(Announcement.id.not_in(_dismissed_by(principal.id)))
        stmt = await self._resolver.apply(
            stmt, principal, ResourceKind.ANNOUNCEMENTS, Announcement
        )
        result = await self._session.execute(stmt.limit(limit).offset(offset))
        rows = result.scalars().all()
        read_ids = await self._read_ids(principal.id, [row.id for row in rows])
        return [_serialize(row, is_read=row.id in read_ids) for row in rows]

    async def get_announcement(self, principal: Principal, announcement_id: str) -> AnnouncementOut:
        announcement = await self._resolver.get_visible(
            principal, ResourceKind.ANNOUNCEMENTS, Announcement, announcement_id
        )
        read_ids = await self._read_ids(principal.id, [announcement.id])
        return _serialize(announcement, is_read=announcement.id in read_ids)

    async def edit(
        self,
        principal: Principal,
        announcement_id: str,
        payload: AnnouncementUpdate,
    ) -> AnnouncementOut:
        await self._guard.authorize(principal, _AUTHOR_ROLES)
        announcement = await self._load_mutable(
            principal,
            announcement_id,
            message="You do not have permission to edit this announcement",
        )
        roles = (
            _validate_targets(principal, payload.target_roles)
            if payload.target_roles is not None
            else None
        )
        if roles is not None and announcement.class_id is None and not roles:
            raise ValidationFailedError("An announcement needs a class or at least one target role")

        async with committed(self._session, self._gateway) as outbox:
            if payload.title is not None:
                announcement.title = payload.title.strip()
            if payload.content is not None:
                announcement.content = payload.content.strip()
            if roles is not None:
                _replace_audience(announcement, roles)
            announcement.updated_at = utc_now()
            await self._session.flush()
            result = _serialize(announcement)
            _notify_audience(outbox, announcement, RealtimeEvent.NEW_ANNOUNCEMENT, result.payload())

        logger.info(
            "announcements.edit.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                announcement_id=announcement.id,
            ),
        )
        return result

    async def mark_read(self, principal: Principal, announcement_id: str) -> ReadStatusOut:
        announcement = await self._resolver.get_visible(
            principal, ResourceKind.ANNOUNCEMENTS, Announcement, announcement_id
        )
        async with committed(self._session, self._gateway) as outbox:
            receipt = await self._session.get(AnnouncementRead, (announcement.id, principal.id))
            if receipt is None:
                self._session.add(
                    AnnouncementRead(
                        announcement_id=announcement.id,
                        user_id=principal.id,
                        read_at=utc_now(),
                    )
                )
            else:
                receipt.read_at = utc_now()
            await self._session.flush()
            count = await self._count_unread(principal)
            status = ReadStatusOut(announcement_id=announcement.id, is_read=True)
            outbox.to_user(principal.id, status.payload(), RealtimeEvent.READ_STATUS)
            outbox.to_user(
                principal.id, UnreadCountOut(count=count).payload(), RealtimeEvent.UNREAD_COUNT
            )
        return status

    async def unread_count(self, principal: Principal) -> UnreadCountOut:
        return UnreadCountOut(count=await self._count_unread(principal))

    async def dismiss(self, principal: Principal, announcement_id: str) -> None:
        """Hide a visible announcement from the caller's own feed and unread count."""

        announcement = await self._resolver.get_visible(
            principal, ResourceKind.ANNOUNCEMENTS, Announcement, announcement_id
        )
        async with committed(self._session, self._gateway) as outbox:
            key = (announcement.id, principal.id)
            if await self._session.get(AnnouncementDismissal, key) is None:
                self._session.add(
                    AnnouncementDismissal(announcement_id=announcement.id, user_id=principal.id)
                )
                await self._session.flush()
            count = await self._count_unread(principal)
            outbox.to_user(
                principal.id, UnreadCountOut(count=count).payload(), RealtimeEvent.UNREAD_COUNT
            )

        logger.info(
            "announcements.dismiss.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                announcement_id=announcement.id,
            ),
        )

    async def set_archived(
        self,
        principal: Principal,
        announcement_id: str,
        *,
        is_archived: bool,
    ) -> AnnouncementOut:
        await self._guard.authorize(principal, _AUTHOR_ROLES)
        announcement = await self._load_mutable(
            principal,
            announcement_id,
            message="You do not have permission to archive this announcement",
        )
        async with committed(self._session, self._gateway) as outbox:
            announcement.is_archived = is_archived
            announcement.archived_at = utc_now() if is_archived else None
            announcement.updated_at = utc_now()
            await self._session.flush()
            result = _serialize(announcement)
            _notify_audience(
                outbox,
                announcement,
                RealtimeEvent.ANNOUNCEMENT_ARCHIVE_STATUS,
                {"id": announcement.id, "isArchived": is_archived},
            )

        logger.info(
            "announcements.archive.updated",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                announcement_id=announcement.id,
                is_archived=is_archived,
            ),
        )
        return result

    async def delete(self, principal: Principal, announcement_id: str) -> None:
        await self._guard.authorize(principal, _AUTHOR_ROLES)
        announcement = await self._load_mutable(
            principal,
            announcement_id,
            message="You do not have permission to delete this announcement",
        )
        async with committed(self._session, self._gateway) as outbox:
            _notify_audience(
                outbox,
                announcement,
                RealtimeEvent.ANNOUNCEMENT_DELETED,
                {"id": announcement.id},
            )
            await self._session.delete(announcement)
            await self._session.flush()

        logger.info(
            "announcements.delete.success",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                announcement_id=announcement_id,
            ),
        )

    async def _load_mutable(
        self,
        principal: Principal,
        announcement_id: str,
        *,
        message: str,
    ) -> Announcement:
        announcement = await self._resolver.get_visible(
            principal, ResourceKind.ANNOUNCEMENTS, Announcement, announcement_id
        )
        await self._resolver.ensure_can_mutate(
            principal, ResourceKind.ANNOUNCEMENTS, announcement, message=message
        )
        return announcement

    async def _read_ids(self, user_id: str, announcement_ids: Sequence[str]) -> set[str]:
        if not announcement_ids:
            return set()
        result = await self._session.execute(
            select(AnnouncementRead.announcement_id).where(
                AnnouncementRead.user_id == user_id,
                AnnouncementRead.announcement_id.in_(announcement_ids),
            )
        )
        return set(result.scalars().all())

    async def _count_unread(self, principal: Principal) -> int:
        read = select(AnnouncementRead.announcement_id).where(
            AnnouncementRead.user_id == principal.id
        )
        stmt = select(func.count(Announcement.id)).where(
            Announcement.is_archived.is_(False),
            Announcement.id.not_in(read),
            Announcement.id.not_in(_dismissed_by(principal.id)),
        )
        stmt = await self._resolver.apply(
            stmt, principal, ResourceKind.ANNOUNCEMENTS, Announcement
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())


def _dismissed_by(user_id: str):
    return select(AnnouncementDismissal.announcement_id).where(
        AnnouncementDismissal.user_id == user_id
    )


def _validate_targets(principal: Principal, requested: Iterable[Role]) -> list[Role]:
    roles = sorted(set(requested), key=lambda role: role.value)
    if principal.role is Role.TEACHER:
        if any(role not in _TEACHER_TARGETS for role in roles):
            raise PermissionDeniedError(
                "Teachers can only target students and parents",
                resource=ResourceKind.ANNOUNCEMENTS.value,
                role=principal.role.value,
            )
    elif any(role not in _ADMIN_TARGETS for role in roles):
        raise ValidationFailedError("Announcements can only target teachers, students and parents")
    return roles


def _replace_audience(announcement: Announcement, roles: list[Role]) -> None:
    wanted = set(roles)
    for audience in list(announcement.audiences):
        if audience.role not in wanted:
            announcement.audiences.remove(audience)
    present = {audience.role for audience in announcement.audiences}
    for role in roles:
        if role not in present:
            announcement.audiences.append(AnnouncementAudience(role=role))


def _notify_audience(
    outbox: Outbox,
    announcement: Announcement,
    event: RealtimeEvent,
    payload: object,
) -> None:
    """Class announcements go to the class room, others to their role rooms."""

    if announcement.class_id:
        outbox.to_class(announcement.class_id, payload, event)
    else:
        outbox.to_roles(payload, announcement.target_roles, event)


def _serialize(announcement: Announcement, *, is_read: bool | None = None) -> AnnouncementOut:
    result = AnnouncementOut.model_validate(announcement)
    if is_read is None:
        return result
    return result.model_copy(update={"is_read": is_read})


__all__ = ["AnnouncementsService"]
