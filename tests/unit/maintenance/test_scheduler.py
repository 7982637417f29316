from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import select

from schoolhub_api.common.time import utc_now
from schoolhub_api.core.rbac.types import Role
from schoolhub_api.features.announcements.models import Announcement, AnnouncementAudience
from schoolhub_api.features.events.models import Event, EventStatus
from schoolhub_api.features.maintenance import scheduler as scheduler_module
from schoolhub_api.features.maintenance.scheduler import ScheduledTaskRunner
from schoolhub_api.features.maintenance.tasks import (
    ANNOUNCEMENT_ARCHIVED_MESSAGE,
    EVENTS_COMPLETED_MESSAGE,
    TaskCategory,
)
from schoolhub_api.realtime.events import RealtimeEvent

ADMIN_ID = "01ADMIN0000000000000000000"


@pytest.fixture()
def runner(settings, session_factory, gateway) -> ScheduledTaskRunner:
    return ScheduledTaskRunner(settings=settings, session_factory=session_factory, gateway=gateway)


@pytest_asyncio.fixture()
async def listener(connect, people):
    socket, _ = await connect(people.teacher_a)
    return socket


def _event(title: str, *, ends_in: timedelta, status: EventStatus = EventStatus.SCHEDULED) -> Event:
    end = utc_now() + ends_in
    return Event(
        title=title,
        start_time=end - timedelta(hours=1),
        end_time=end,
        status=status,
        creator_id=ADMIN_ID,
        creator_role=Role.ADMIN,
    )


def _announcement(title: str, *, age: timedelta, archived_at=None) -> Announcement:
    created = utc_now() - age
    return Announcement(
        title=title,
        content="...",
        creator_id=ADMIN_ID,
        creator_role=Role.ADMIN,
        is_archived=archived_at is not None,
        archived_at=archived_at,
        created_at=created,
        updated_at=created,
        audiences=[AnnouncementAudience(role=Role.TEACHER)],
    )


@pytest.mark.asyncio
async def test_event_completion_is_idempotent(runner, session, gateway, listener) -> None:
    session.add_all(
        [
            _event("Finished", ends_in=timedelta(hours=-1)),
            _event("Upcoming", ends_in=timedelta(hours=3)),
            _event("Called off", ends_in=timedelta(hours=-2), status=EventStatus.CANCELLED),
        ]
    )
    await session.commit()

    first = await runner.run_once()
    second = await runner.run_once()
    await gateway.drain()

    assert first.outcome(TaskCategory.EVENT_COMPLETION).affected == 1
    assert second.outcome(TaskCategory.EVENT_COMPLETION).affected == 0
    updates = listener.of("eventsUpdated")
    assert len(updates) == 1
    assert updates[0]["message"] == EVENTS_COMPLETED_MESSAGE
    assert [event["title"] for event in updates[0]["events"]] == ["Finished"]
    assert updates[0]["events"][0]["status"] == "COMPLETED"

    statuses = dict((await session.execute(select(Event.title, Event.status))).all())
    assert statuses == {
        "Finished": EventStatus.COMPLETED,
        "Upcoming": EventStatus.SCHEDULED,
        "Called off": EventStatus.CANCELLED,
    }


@pytest.mark.asyncio
async def test_announcement_is_archived_before_it_is_deleted(
    runner, session, gateway, listener
) -> None:
    old = _announcement("Ancient", age=timedelta(days=90))
    recent = _announcement("Fresh", age=timedelta(days=1))
    session.add_all([old, recent])
    await session.commit()
    old_id = old.id

    now = utc_now()
    first = await runner.run_once(now)
    await gateway.drain()

    assert first.outcome(TaskCategory.ANNOUNCEMENT_ARCHIVAL).affected == 1
    assert first.outcome(TaskCategory.ANNOUNCEMENT_DELETION).affected == 0
    assert listener.of("announcementArchived") == [
        {
            "message": ANNOUNCEMENT_ARCHIVED_MESSAGE,
            "announcementId": old_id,
            "timestamp": now.isoformat(),
        }
    ]
    assert listener.of("announcementDeleted") == []

    later = await runner.run_once(now + timedelta(days=31))
    await gateway.drain()

    assert later.outcome(TaskCategory.ANNOUNCEMENT_DELETION).affected == 1
    assert listener.of("announcementDeleted") == [{"id": old_id}]
    session.expunge_all()
    remaining = (await session.execute(select(Announcement.title))).scalars().all()
    assert remaining == ["Fresh"]


@pytest.mark.asyncio
async def test_long_archived_announcements_are_deleted(runner, session) -> None:
    stale = _announcement(
        "Stale", age=timedelta(days=120), archived_at=utc_now() - timedelta(days=45)
    )
    recently_archived = _announcement(
        "Just archived", age=timedelta(days=120), archived_at=utc_now() - timedelta(days=2)
    )
    session.add_all([stale, recently_archived])
    await session.commit()

    report = await runner.run_once()

    assert report.outcome(TaskCategory.ANNOUNCEMENT_DELETION).affected == 1
    session.expunge_all()
    remaining = (await session.execute(select(Announcement.title))).scalars().all()
    assert remaining == ["Just archived"]


@pytest.mark.asyncio
async def test_failing_category_does_not_stop_the_others(
    runner, session, gateway, listener, monkeypatch
) -> None:
    session.add_all(
        [
            _event("Finished", ends_in=timedelta(hours=-1)),
            _announcement("Ancient", age=timedelta(days=40)),
        ]
    )
    await session.commit()

    async def broken(session, outbox, *, now):
        for event in (await session.execute(select(Event))).scalars():
            event.status = EventStatus.COMPLETED
        outbox.to_all({"message": "should not be sent"}, RealtimeEvent.EVENTS_UPDATED)
        raise RuntimeError("database hiccup")

    monkeypatch.setattr(scheduler_module, "complete_events", broken)

    report = await runner.run_once()
    await gateway.drain()

    assert report.failed == [TaskCategory.EVENT_COMPLETION]
    assert report.outcome(TaskCategory.EVENT_COMPLETION).error == "database hiccup"
    assert report.outcome(TaskCategory.ANNOUNCEMENT_ARCHIVAL).affected == 1
    assert listener.of("eventsUpdated") == []
    assert len(listener.of("announcementArchived")) == 1

    session.expunge_all()
    status = (await session.execute(select(Event.status))).scalar_one()
    assert status is EventStatus.SCHEDULED


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(runner, monkeypatch) -> None:
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow(session, outbox, *, now):
        entered.set()
        await release.wait()
        return 0

    monkeypatch.setattr(scheduler_module, "complete_events", slow)

    first = asyncio.create_task(runner.run_once())
    await entered.wait()
    assert runner.tick_in_progress

    skipped = await runner.run_once()
    release.set()
    completed = await first

    assert skipped.skipped
    assert skipped.outcomes == []
    assert not completed.skipped
    assert [outcome.category for outcome in completed.outcomes] == list(TaskCategory)


@pytest.mark.asyncio
async def test_disabled_runner_does_not_start(runner) -> None:
    await runner.start()

    assert not runner.running
    await runner.stop()


@pytest.mark.asyncio
async def test_enabled_runner_ticks_on_startup_and_stops(settings, session_factory) -> None:
    enabled = settings.model_copy(
        update={
            "scheduler_enabled": True,
            "scheduler_run_on_startup": True,
            "scheduler_interval": timedelta(hours=1),
        }
    )
    runner = ScheduledTaskRunner(settings=enabled, session_factory=session_factory)

    await runner.start()
    assert runner.running
    await asyncio.sleep(0.05)
    await runner.stop()

    assert not runner.running
