"""Maintenance task categories run by the scheduler.

Each task selects its candidates with a predicate that excludes rows it has
already transitioned, so running a task twice in a row writes nothing the
second time. Tasks only stage notifications on the outbox they are given;
the caller delivers them after the commit.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.features.announcements.models import Announcement
from schoolhub_api.features.events.models import Event, EventStatus
from schoolhub_api.features.events.schemas import EventOut
from schoolhub_api.realtime.events import RealtimeEvent
from schoolhub_api.realtime.outbox import Outbox

EVENTS_COMPLETED_MESSAGE = "Events have been marked as completed"
ANNOUNCEMENT_ARCHIVED_MESSAGE = "An announcement has been automatically archived"


class TaskCategory(str, enum.Enum):
    """Task categories, in the order a tick runs them."""

    EVENT_COMPLETION = "event_completion"
    ANNOUNCEMENT_ARCHIVAL = "announcement_archival"
    ANNOUNCEMENT_DELETION = "announcement_deletion"


async def complete_events(session: AsyncSession, outbox: Outbox, *, now: datetime) -> int:
    """Mark scheduled events whose end time has passed as completed."""

    result = await session.execute(
        select(Event)
        .where(Event.status == EventStatus.SCHEDULED, Event.end_time < now)
        .order_by(Event.end_time, Event.id)
    )
    events = list(result.scalars().all())
    if not events:
        return 0

    for event in events:
        event.status = EventStatus.COMPLETED
    await session.flush()

    outbox.to_all(
        {
            "message": EVENTS_COMPLETED_MESSAGE,
            "events": [EventOut.model_validate(event).payload() for event in events],
            "timestamp": now.isoformat(),
        },
        RealtimeEvent.EVENTS_UPDATED,
    )
    return len(events)


async def archive_announcements(
    session: AsyncSession,
    outbox: Outbox,
    *,
    now: datetime,
    older_than: timedelta,
) -> int:
    """Archive unarchived announcements created before ``now - older_than``."""

    cutoff = now - older_than
    result = await session.execute(
        select(Announcement)
        .where(Announcement.is_archived.is_(False), Announcement.created_at < cutoff)
        .order_by(Announcement.created_at, Announcement.id)
    )
    announcements = list(result.scalars().all())
    for announcement in announcements:
        announcement.is_archived = True
        announcement.archived_at = now
    if not announcements:
        return 0
    await session.flush()

    for announcement in announcements:
        outbox.to_all(
            {
                "message": ANNOUNCEMENT_ARCHIVED_MESSAGE,
                "announcementId": announcement.id,
                "timestamp": now.isoformat(),
            },
            RealtimeEvent.ANNOUNCEMENT_ARCHIVED,
        )
    return len(announcements)


async def delete_announcements(
    session: AsyncSession,
    outbox: Outbox,
    *,
    now: datetime,
    older_than: timedelta,
    archived_for: timedelta,
) -> int:
    """Hard-delete archived announcements created before ``now - older_than``.

    A row must also have been archived for at least ``archived_for``, so an
    announcement archived earlier in the same tick is never deleted by it.
    """

    created_cutoff = now - older_than
    archived_cutoff = now - archived_for
    result = await session.execute(
        select(Announcement.id)
        .where(
            Announcement.is_archived.is_(True),
            Announcement.created_at < created_cutoff,
            Announcement.archived_at.is_not(None),
            Announcement.archived_at <= archived_cutoff,
        )
        .order_by(Announcement.created_at, Announcement.id)
    )
    ids = list(result.scalars().all())
    if not ids:
        return 0

    await session.execute(
        delete(Announcement)
        .where(Announcement.id.in_(ids))
        .execution_options(synchronize_session=False)
    )
    for announcement_id in ids:
        outbox.to_all({"id": announcement_id}, RealtimeEvent.ANNOUNCEMENT_DELETED)
    return len(ids)


__all__ = [
    "ANNOUNCEMENT_ARCHIVED_MESSAGE",
    "EVENTS_COMPLETED_MESSAGE",
    "TaskCategory",
    "archive_announcements",
    "complete_events",
    "delete_announcements",
]
