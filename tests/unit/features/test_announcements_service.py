from __future__ import annotations

import pytest
from sqlalchemy import func, select

from schoolhub_api.core.errors import PermissionDeniedError, ValidationFailedError
from schoolhub_api.core.rbac.types import Role
from schoolhub_api.features.announcements.models import Announcement
from schoolhub_api.features.announcements.schemas import AnnouncementCreate, AnnouncementUpdate
from schoolhub_api.features.school.models import Lesson


async def _announcement_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(Announcement))


@pytest.mark.asyncio
async def test_class_announcement_reaches_only_that_class(
    services, gateway, connect, people, roster
) -> None:
    in_class, _ = await connect(people.student_1, class_id=roster.class_1)
    other_class, _ = await connect(people.student_3, class_id=roster.class_2)
    teacher, _ = await connect(people.teacher_b)
    parent, _ = await connect(people.parent_1)

    created = await services.announcements.create(
        people.admin,
        AnnouncementCreate(title="Trip", content="Bring lunch", class_id=roster.class_1),
    )
    await gateway.drain()

    assert [data["id"] for data in in_class.of("newAnnouncement")] == [created.id]
    assert in_class.of("newAnnouncement")[0]["classId"] == roster.class_1
    assert other_class.sent == []
    assert teacher.sent == []
    assert parent.sent == []


@pytest.mark.asyncio
async def test_role_announcement_reaches_targeted_roles(
    services, gateway, connect, people
) -> None:
    student, _ = await connect(people.student_1)
    parent, _ = await connect(people.parent_2)
    teacher, _ = await connect(people.teacher_a)

    await services.announcements.create(
        people.admin,
        AnnouncementCreate(
            title="Holiday",
            content="School closed",
            target_roles=[Role.PARENT, Role.STUDENT],
        ),
    )
    await gateway.drain()

    assert len(student.of("newAnnouncement")) == 1
    assert parent.of("newAnnouncement")[0]["targetRoles"] == ["PARENT", "STUDENT"]
    assert teacher.sent == []


@pytest.mark.asyncio
async def test_teacher_targets_are_restricted(services, session, people, roster) -> None:
    with pytest.raises(PermissionDeniedError, match="students and parents"):
        await services.announcements.create(
            people.teacher_a,
            AnnouncementCreate(title="Hi", content="x", target_roles=[Role.TEACHER]),
        )
    with pytest.raises(PermissionDeniedError):
        await services.announcements.create(
            people.teacher_a,
            AnnouncementCreate(title="Hi", content="x", class_id=roster.class_2),
        )
    with pytest.raises(ValidationFailedError):
        await services.announcements.create(
            people.teacher_a, AnnouncementCreate(title="Hi", content="x")
        )
    with pytest.raises(PermissionDeniedError):
        await services.announcements.create(
            people.parent_1, AnnouncementCreate(title="Hi", content="x", class_id=roster.class_1)
        )

    assert await _announcement_count(session) == 0


@pytest.mark.asyncio
async def test_only_the_author_teacher_may_edit(
    services, session, gateway, connect, people, roster
) -> None:
    session.add(Lesson(name="Art", day="FRIDAY", class_id=roster.class_1, teacher_id=roster.teacher_b))
    await session.commit()
    listener, _ = await connect(people.student_2, class_id=roster.class_1)

    created = await services.announcements.create(
        people.teacher_a,
        AnnouncementCreate(title="Homework", content="Page 4", class_id=roster.class_1),
    )
    with pytest.raises(PermissionDeniedError, match="permission to edit"):
        await services.announcements.edit(
            people.teacher_b, created.id, AnnouncementUpdate(content="Page 5")
        )

    edited = await services.announcements.edit(
        people.teacher_a, created.id, AnnouncementUpdate(content="Page 6")
    )
    await gateway.drain()

    assert edited.content == "Page 6"
    assert [data["content"] for data in listener.of("newAnnouncement")] == ["Page 4", "Page 6"]


@pytest.mark.asyncio
async def test_admin_may_manage_any_announcement(services, gateway, connect, people, roster) -> None:
    listener, _ = await connect(people.student_1, class_id=roster.class_1)
    created = await services.announcements.create(
        people.teacher_a,
        AnnouncementCreate(title="Quiz", content="Friday", class_id=roster.class_1),
    )

    archived = await services.announcements.set_archived(people.admin, created.id, is_archived=True)
    await services.announcements.delete(people.admin, created.id)
    await gateway.drain()

    assert archived.is_archived
    assert archived.archived_at is not None
    assert listener.of("announcementArchiveStatus") == [{"id": created.id, "isArchived": True}]
    assert listener.of("announcementDeleted") == [{"id": created.id}]


@pytest.mark.asyncio
async def test_mark_read_updates_the_reader_only(
    services, gateway, connect, people, roster
) -> None:
    reader, _ = await connect(people.student_1, class_id=roster.class_1)
    classmate, _ = await connect(people.student_2, class_id=roster.class_1)
    created = await services.announcements.create(
        people.admin,
        AnnouncementCreate(title="Trip", content="Bring lunch", class_id=roster.class_1),
    )
    assert (await services.announcements.unread_count(people.student_1)).count == 1

    status = await services.announcements.mark_read(people.student_1, created.id)
    await gateway.drain()

    assert status.is_read
    assert reader.of("readStatus") == [{"announcementId": created.id, "isRead": True}]
    assert reader.of("unreadCount") == [{"count": 0}]
    assert classmate.of("readStatus") == []
    assert (await services.announcements.unread_count(people.student_2)).count == 1

    listed = await services.announcements.list_announcements(people.student_1)
    assert [(item.id, item.is_read) for item in listed] == [(created.id, True)]


@pytest.mark.asyncio
async def test_out_of_scope_announcement_is_forbidden(services, people, roster) -> None:
    created = await services.announcements.create(
        people.admin,
        AnnouncementCreate(title="Lab", content="Goggles", class_id=roster.class_2),
    )

    with pytest.raises(PermissionDeniedError):
        await services.announcements.get_announcement(people.student_1, created.id)
    with pytest.raises(PermissionDeniedError):
        await services.announcements.mark_read(people.parent_2, created.id)
    assert (await services.announcements.get_announcement(people.parent_1, created.id)).id == created.id


@pytest.mark.asyncio
async def test_dismissing_hides_an_announcement_for_that_user_only(
    services, gateway, connect, people, roster
) -> None:
    listener, _ = await connect(people.student_1, class_id=roster.class_1)
    trip = await services.announcements.create(
        people.admin,
        AnnouncementCreate(title="Trip", content="Bring lunch", class_id=roster.class_1),
    )
    exam = await services.announcements.create(
        people.admin,
        AnnouncementCreate(title="Exam", content="Room 4", class_id=roster.class_1),
    )

    await services.announcements.dismiss(people.student_1, trip.id)
    await services.announcements.dismiss(people.student_1, trip.id)
    await gateway.drain()

    own = await services.announcements.list_announcements(people.student_1)
    classmate = await services.announcements.list_announcements(people.student_2)
    assert [item.id for item in own] == [exam.id]
    assert {item.id for item in classmate} == {trip.id, exam.id}
    assert listener.of("unreadCount") == [{"count": 1}, {"count": 1}]
    assert (await services.announcements.unread_count(people.student_1)).count == 1
    assert (await services.announcements.unread_count(people.student_2)).count == 2

    with pytest.raises(PermissionDeniedError):
        await services.announcements.dismiss(people.student_3, exam.id)
