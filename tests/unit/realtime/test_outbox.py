from __future__ import annotations

import pytest
from sqlalchemy import func, select

from schoolhub_api.core.rbac.types import Role
from schoolhub_api.features.school.models import SchoolClass
from schoolhub_api.realtime.events import RealtimeEvent
from schoolhub_api.realtime.outbox import EmissionTarget, Outbox, committed
from schoolhub_api.realtime.rooms import (
    class_room,
    role_room,
    role_rooms,
    rooms_for_join,
    user_room,
)


def test_room_names() -> None:
    assert role_room(Role.TEACHER) == "role-TEACHER"
    assert class_room("C1") == "class-C1"
    assert user_room("U1") == "user-U1"
    assert role_rooms([Role.PARENT, Role.ADMIN, Role.PARENT]) == ["role-ADMIN", "role-PARENT"]


def test_rooms_for_join_always_includes_user_room() -> None:
    assert rooms_for_join(Role.STUDENT, "S1", "C1") == ["role-STUDENT", "class-C1", "user-S1"]
    assert rooms_for_join(Role.TEACHER, "T1") == ["role-TEACHER", "user-T1"]


def test_outbox_keeps_emission_order_and_skips_empty_role_sets() -> None:
    outbox = Outbox()
    outbox.to_class("C1", {"n": 1}, RealtimeEvent.MARK_ATTENDANCE)
    outbox.to_roles({"n": 2}, [], RealtimeEvent.EVENT_CREATED)
    outbox.to_roles({"n": 3}, [Role.TEACHER, Role.ADMIN], RealtimeEvent.EVENT_CREATED)
    outbox.to_user("U1", {"n": 4}, RealtimeEvent.UNREAD_COUNT)

    assert [emission.target for emission in outbox.pending] == [
        EmissionTarget.CLASS,
        EmissionTarget.ROLES,
        EmissionTarget.USER,
    ]
    assert outbox.pending[1].roles == (Role.ADMIN, Role.TEACHER)


@pytest.mark.asyncio
async def test_committed_delivers_after_commit(session, gateway, connect, people, roster) -> None:
    student, _ = await connect(people.student_1, class_id=roster.class_1)

    async with committed(session, gateway) as outbox:
        session.add(SchoolClass(name="3C", capacity=20))
        outbox.to_class(roster.class_1, {"id": "x"}, RealtimeEvent.NEW_ANNOUNCEMENT)
        await gateway.drain()
        assert student.sent == []
    await gateway.drain()

    assert student.of("newAnnouncement") == [{"id": "x"}]
    count = await session.scalar(select(func.count()).select_from(SchoolClass))
    assert count == 3


@pytest.mark.asyncio
async def test_committed_discards_on_failure(session, gateway, connect, people, roster) -> None:
    student, _ = await connect(people.student_1, class_id=roster.class_1)

    with pytest.raises(RuntimeError):
        async with committed(session, gateway) as outbox:
            session.add(SchoolClass(name="3C", capacity=20))
            outbox.to_class(roster.class_1, {"id": "x"}, RealtimeEvent.NEW_ANNOUNCEMENT)
            raise RuntimeError("boom")
    await gateway.drain()

    assert student.sent == []
    count = await session.scalar(select(func.count()).select_from(SchoolClass))
    assert count == 2


@pytest.mark.asyncio
async def test_flush_continues_past_a_failing_delivery(gateway, connect, people, roster) -> None:
    class FlakyGateway:
        def __init__(self, inner):
            self.inner = inner
            self.calls = 0

        async def emit_to_class(self, class_id, payload, event):
            self.calls += 1
            raise RuntimeError("transport down")

        async def emit_to_user(self, user_id, payload, event):
            self.calls += 1
            return await self.inner.emit_to_user(user_id, payload, event)

    student, _ = await connect(people.student_1, class_id=roster.class_1)
    outbox = Outbox()
    outbox.to_class(roster.class_1, {"n": 1}, RealtimeEvent.NEW_ANNOUNCEMENT)
    outbox.to_user(people.student_1.id, {"n": 2}, RealtimeEvent.UNREAD_COUNT)

    flaky = FlakyGateway(gateway)
    delivered = await outbox.flush(flaky)
    await gateway.drain()

    assert flaky.calls == 2
    assert delivered == 1
    assert student.of("unreadCount") == [{"n": 2}]
    assert len(outbox) == 0
