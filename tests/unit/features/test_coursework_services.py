from __future__ import annotations

from datetime import date, timedelta

import pytest

from schoolhub_api.common.time import utc_now
from schoolhub_api.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from schoolhub_api.features.assignments.schemas import (
    AssignmentCreate,
    AssignmentUpdate,
    SubmissionCreate,
)
from schoolhub_api.features.attendance.schemas import AttendanceEntry, AttendanceMarkRequest
from schoolhub_api.features.grades.models import GradeType
from schoolhub_api.features.grades.schemas import GradeCreate, GradeUpdate
from schoolhub_api.features.school.models import Lesson


def _assignment(title: str, class_id: str, **extra) -> AssignmentCreate:
    start = utc_now()
    return AssignmentCreate(
        title=title,
        start_date=start,
        due_date=start + timedelta(days=7),
        class_id=class_id,
        **extra,
    )


@pytest.mark.asyncio
async def test_teacher_cannot_edit_a_colleagues_assignment(services, session, people, roster) -> None:
    session.add(Lesson(name="Art", day="FRIDAY", class_id=roster.class_1, teacher_id=roster.teacher_b))
    await session.commit()
    quiz = await services.assignments.create(people.teacher_a, _assignment("Quiz 1", roster.class_1))

    assert (await services.assignments.get_assignment(people.teacher_b, quiz.id)).id == quiz.id
    with pytest.raises(PermissionDeniedError, match="your own assignments"):
        await services.assignments.edit(people.teacher_b, quiz.id, AssignmentUpdate(title="Quiz 2"))

    edited = await services.assignments.edit(
        people.teacher_a, quiz.id, AssignmentUpdate(title="Quiz 1b")
    )
    assert edited.title == "Quiz 1b"


@pytest.mark.asyncio
async def test_admin_cannot_change_a_teachers_assignment(services, people, roster) -> None:
    quiz = await services.assignments.create(people.teacher_a, _assignment("Quiz 1", roster.class_1))

    assert (await services.assignments.get_assignment(people.admin, quiz.id)).id == quiz.id
    with pytest.raises(PermissionDeniedError, match="your own assignments"):
        await services.assignments.edit(people.admin, quiz.id, AssignmentUpdate(title="Renamed"))
    with pytest.raises(PermissionDeniedError, match="your own assignments"):
        await services.assignments.delete(people.admin, quiz.id)

    assert (await services.assignments.get_assignment(people.teacher_a, quiz.id)).title == "Quiz 1"
    edited = await services.assignments.edit(
        people.super_admin, quiz.id, AssignmentUpdate(title="Quiz 1 (final)")
    )
    assert edited.title == "Quiz 1 (final)"


@pytest.mark.asyncio
async def test_assignment_creation_notifies_the_class(
    services, gateway, connect, people, roster
) -> None:
    listener, _ = await connect(people.student_1, class_id=roster.class_1)
    other, _ = await connect(people.student_3, class_id=roster.class_2)

    created = await services.assignments.create(
        people.admin, _assignment("Essay", roster.class_1, teacher_id=roster.teacher_a)
    )
    await services.assignments.delete(people.teacher_a, created.id)
    await gateway.drain()

    assert created.teacher_id == roster.teacher_a
    assert [data["assignment"]["id"] for data in listener.of("createAssignment")] == [created.id]
    assert [data["assignmentId"] for data in listener.of("deleteAssignment")] == [created.id]
    assert other.sent == []


@pytest.mark.asyncio
async def test_assignment_rules(services, people, roster) -> None:
    with pytest.raises(PermissionDeniedError):
        await services.assignments.create(people.teacher_a, _assignment("Lab", roster.class_2))
    with pytest.raises(ValidationFailedError, match="teacherId"):
        await services.assignments.create(people.admin, _assignment("Lab", roster.class_2))

    await services.assignments.create(people.teacher_b, _assignment("Lab", roster.class_2))
    with pytest.raises(ConflictError):
        await services.assignments.create(people.teacher_b, _assignment("Lab", roster.class_2))


@pytest.mark.asyncio
async def test_submissions_block_deletion(services, people, roster) -> None:
    created = await services.assignments.create(
        people.teacher_a, _assignment("Poem", roster.class_1)
    )

    with pytest.raises(PermissionDeniedError):
        await services.assignments.submit(people.student_3, created.id, SubmissionCreate(content="x"))
    submission = await services.assignments.submit(
        people.student_1, created.id, SubmissionCreate(content="Roses are red")
    )
    with pytest.raises(ConflictError):
        await services.assignments.submit(people.student_1, created.id, SubmissionCreate(content="again"))
    with pytest.raises(ValidationFailedError, match="existing submissions"):
        await services.assignments.delete(people.teacher_a, created.id)

    assert submission.student_id == roster.student_1


@pytest.mark.asyncio
async def test_parent_assignment_listing_follows_children(services, people, roster) -> None:
    poem = await services.assignments.create(people.teacher_a, _assignment("Poem", roster.class_1))
    lab = await services.assignments.create(people.teacher_b, _assignment("Lab", roster.class_2))

    parent_1 = {item.id for item in await services.assignments.list_assignments(people.parent_1)}
    parent_2 = {item.id for item in await services.assignments.list_assignments(people.parent_2)}

    assert parent_1 == {poem.id, lab.id}
    assert parent_2 == {poem.id}


@pytest.mark.asyncio
async def test_marking_attendance_upserts_and_notifies(
    services, gateway, connect, people, roster
) -> None:
    listener, _ = await connect(people.parent_1, class_id=roster.class_1)
    today = date.today()
    request = AttendanceMarkRequest(
        lesson_id=roster.lesson_1,
        records=[
            AttendanceEntry(student_id=roster.student_1, attended_on=today, present=True),
            AttendanceEntry(student_id=roster.student_2, attended_on=today, present=False),
        ],
    )

    first = await services.attendance.mark(people.teacher_a, request)
    second = await services.attendance.mark(
        people.teacher_a,
        AttendanceMarkRequest(
            lesson_id=roster.lesson_1,
            records=[AttendanceEntry(student_id=roster.student_2, attended_on=today, present=True)],
        ),
    )
    await gateway.drain()

    assert len(first) == 2
    assert second[0].id == next(item.id for item in first if item.student_id == roster.student_2)
    assert [len(data["attendance"]) for data in listener.of("markAttendance")] == [2, 1]

    stats = await services.attendance.stats(people.parent_2, roster.student_2)
    assert (stats.total, stats.present, stats.attendance_rate) == (1, 1, 100.0)
    with pytest.raises(PermissionDeniedError):
        await services.attendance.stats(people.parent_2, roster.student_1)

    visible = await services.attendance.list_attendance(people.parent_1)
    assert {item.student_id for item in visible} == {roster.student_1}


@pytest.mark.asyncio
async def test_attendance_marking_rules(services, people, roster) -> None:
    today = date.today()

    def request(lesson_id: str, student_id: str) -> AttendanceMarkRequest:
        return AttendanceMarkRequest(
            lesson_id=lesson_id,
            records=[AttendanceEntry(student_id=student_id, attended_on=today, present=True)],
        )

    with pytest.raises(PermissionDeniedError, match="your own lessons"):
        await services.attendance.mark(people.teacher_a, request(roster.lesson_2, roster.student_3))
    with pytest.raises(ValidationFailedError):
        await services.attendance.mark(people.teacher_a, request(roster.lesson_1, roster.student_3))
    with pytest.raises(NotFoundError):
        await services.attendance.mark(people.admin, request("missing", roster.student_1))
    with pytest.raises(PermissionDeniedError):
        await services.attendance.mark(people.parent_1, request(roster.lesson_1, roster.student_1))


@pytest.mark.asyncio
async def test_grades_are_recorded_in_scope(services, people, roster) -> None:
    grade = await services.grades.record(
        people.teacher_a,
        GradeCreate(student_id=roster.student_1, score=91, type=GradeType.EXAM),
    )

    assert grade.class_id == roster.class_1
    assert grade.teacher_id == roster.teacher_a
    with pytest.raises(PermissionDeniedError):
        await services.grades.record(
            people.teacher_a,
            GradeCreate(student_id=roster.student_3, score=50, type=GradeType.EXAM),
        )

    assert [item.id for item in await services.grades.list_grades(people.student_1)] == [grade.id]
    assert await services.grades.list_grades(people.student_2) == []
    assert [item.id for item in await services.grades.list_grades(people.parent_1)] == [grade.id]
    assert await services.grades.list_grades(people.teacher_b) == []


@pytest.mark.asyncio
async def test_directory_is_scoped(services, people, roster) -> None:
    students = await services.directory.list_students(people.teacher_b)
    classes = await services.directory.list_classes(people.parent_2)
    parents = await services.directory.list_parents(people.student_3)

    assert [student.id for student in students] == [roster.student_3]
    assert [item.id for item in classes] == [roster.class_1]
    assert [parent.id for parent in parents] == [roster.parent_1]
    with pytest.raises(PermissionDeniedError):
        await services.directory.get_student(people.parent_2, roster.student_3)


@pytest.mark.asyncio
async def test_only_the_grading_teacher_changes_a_grade(services, session, people, roster) -> None:
    session.add(Lesson(name="Art", day="FRIDAY", class_id=roster.class_1, teacher_id=roster.teacher_b))
    await session.commit()
    grade = await services.grades.record(
        people.teacher_a,
        GradeCreate(student_id=roster.student_1, score=72, type=GradeType.EXAM),
    )

    for outsider in (people.teacher_b, people.admin):
        with pytest.raises(PermissionDeniedError, match="modify this grade"):
            await services.grades.update(outsider, grade.id, GradeUpdate(score=100))
        with pytest.raises(PermissionDeniedError, match="delete this grade"):
            await services.grades.delete(outsider, grade.id)
    with pytest.raises(PermissionDeniedError):
        await services.grades.update(people.student_1, grade.id, GradeUpdate(score=100))
    with pytest.raises(NotFoundError):
        await services.grades.update(people.teacher_a, "missing", GradeUpdate(score=1))

    updated = await services.grades.update(
        people.teacher_a, grade.id, GradeUpdate(score=85, comment="Retake")
    )
    assert (updated.score, updated.comment, updated.type) == (85, "Retake", GradeType.EXAM)

    await services.grades.delete(people.teacher_a, grade.id)
    assert await services.grades.list_grades(people.student_1) == []


def test_grade_update_needs_a_change() -> None:
    with pytest.raises(ValueError):
        GradeUpdate()
    with pytest.raises(ValueError):
        GradeUpdate(score=None)


@pytest.mark.asyncio
async def test_lesson_attendance_is_limited_to_its_teachers(services, people, roster) -> None:
    today = date.today()
    await services.attendance.mark(
        people.teacher_a,
        AttendanceMarkRequest(
            lesson_id=roster.lesson_1,
            records=[
                AttendanceEntry(student_id=roster.student_1, attended_on=today, present=True),
                AttendanceEntry(student_id=roster.student_2, attended_on=today, present=False),
            ],
        ),
    )
    await services.attendance.mark(
        people.teacher_b,
        AttendanceMarkRequest(
            lesson_id=roster.lesson_2,
            records=[AttendanceEntry(student_id=roster.student_3, attended_on=today, present=True)],
        ),
    )

    own = await services.attendance.list_for_lesson(people.teacher_a, roster.lesson_1)
    assert {(item.student_id, item.present) for item in own} == {
        (roster.student_1, True),
        (roster.student_2, False),
    }
    assert {item.lesson_id for item in own} == {roster.lesson_1}
    assert len(await services.attendance.list_for_lesson(people.admin, roster.lesson_2)) == 1

    with pytest.raises(PermissionDeniedError, match="classes you teach"):
        await services.attendance.list_for_lesson(people.teacher_a, roster.lesson_2)
    with pytest.raises(PermissionDeniedError):
        await services.attendance.list_for_lesson(people.parent_1, roster.lesson_1)
    with pytest.raises(NotFoundError, match="Lesson not found"):
        await services.attendance.list_for_lesson(people.admin, "missing")
