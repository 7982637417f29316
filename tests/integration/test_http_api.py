from __future__ import annotations

from datetime import timedelta

import pytest

pytestmark = pytest.mark.asyncio

PROBLEM_JSON = "application/problem+json"


async def test_missing_token_is_a_401_problem(async_client, api_people) -> None:
    response = await async_client.get("/api/students")

    assert response.status_code == 401
    assert response.headers["content-type"].startswith(PROBLEM_JSON)
    assert response.headers["www-authenticate"] == "Bearer"
    body = response.json()
    assert body["status"] == 401
    assert body["code"] == "unauthenticated"
    assert body["instance"] == "/api/students"


async def test_expired_token_is_rejected(async_client, api_people, token_for) -> None:
    token = token_for(api_people.parent_1, expires_in=timedelta(seconds=-5))

    response = await async_client.get(
        "/api/students", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "invalid_token"


async def test_parent_sees_only_their_children(async_client, api_people, auth_headers) -> None:
    roster = api_people.roster
    headers = auth_headers(api_people.parent_2)

    listing = await async_client.get("/api/students", headers=headers)
    own = await async_client.get(f"/api/students/{roster.student_2}", headers=headers)
    other = await async_client.get(f"/api/students/{roster.student_3}", headers=headers)
    missing = await async_client.get(
        "/api/students/01MISSING0000000000000000X", headers=auth_headers(api_people.admin)
    )

    assert [student["id"] for student in listing.json()] == [roster.student_2]
    assert own.status_code == 200
    assert own.json()["classId"] == roster.class_1
    assert other.status_code == 403
    assert other.json()["code"] == "forbidden"
    assert missing.status_code == 404


async def test_class_filter_outside_scope_is_forbidden(
    async_client, api_people, auth_headers
) -> None:
    roster = api_people.roster

    response = await async_client.get(
        "/api/students",
        params={"classId": roster.class_2},
        headers=auth_headers(api_people.parent_2),
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "You can only access your children's classes"


async def test_invalid_body_is_a_422_problem(async_client, api_people, auth_headers) -> None:
    response = await async_client.post(
        "/api/announcements",
        json={"title": "", "content": "x", "targetRoles": ["STUDENT"]},
        headers=auth_headers(api_people.admin),
    )

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_failed"
    assert body["errors"]


async def test_announcement_lifecycle_over_http(async_client, api_people, auth_headers) -> None:
    roster = api_people.roster
    teacher = auth_headers(api_people.teacher_a)
    student = auth_headers(api_people.student_1)

    created = await async_client.post(
        "/api/announcements",
        json={"title": "Trip", "content": "Bring lunch", "classId": roster.class_1},
        headers=teacher,
    )
    assert created.status_code == 201
    announcement_id = created.json()["id"]

    unread = await async_client.get("/api/announcements/unread-count", headers=student)
    assert unread.json() == {"count": 1}

    read = await async_client.post(f"/api/announcements/{announcement_id}/read", headers=student)
    assert read.json() == {"announcementId": announcement_id, "isRead": True}

    forbidden = await async_client.delete(
        f"/api/announcements/{announcement_id}", headers=auth_headers(api_people.teacher_b)
    )
    assert forbidden.status_code == 403

    deleted = await async_client.delete(f"/api/announcements/{announcement_id}", headers=teacher)
    assert deleted.status_code == 204


async def test_maintenance_tick_requires_admin(async_client, api_people, auth_headers) -> None:
    denied = await async_client.post(
        "/api/maintenance/tick", headers=auth_headers(api_people.teacher_a)
    )
    allowed = await async_client.post(
        "/api/maintenance/tick", headers=auth_headers(api_people.super_admin)
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200
    body = allowed.json()
    assert body["skipped"] is False
    assert [outcome["category"] for outcome in body["outcomes"]] == [
        "event_completion",
        "announcement_archival",
        "announcement_deletion",
    ]
    assert all(outcome["affected"] == 0 for outcome in body["outcomes"])


async def test_grade_changes_belong_to_the_grading_teacher(
    async_client, api_people, auth_headers
) -> None:
    roster = api_people.roster
    teacher = auth_headers(api_people.teacher_a)
    admin = auth_headers(api_people.admin)

    created = await async_client.post(
        "/api/grades",
        json={"studentId": roster.student_1, "score": 64, "type": "EXAM"},
        headers=teacher,
    )
    grade_id = created.json()["id"]

    hijack = await async_client.patch(f"/api/grades/{grade_id}", json={"score": 100}, headers=admin)
    empty = await async_client.patch(f"/api/grades/{grade_id}", json={}, headers=teacher)
    updated = await async_client.patch(
        f"/api/grades/{grade_id}", json={"score": 70}, headers=teacher
    )
    removed = await async_client.delete(f"/api/grades/{grade_id}", headers=teacher)

    assert created.status_code == 201
    assert hijack.status_code == 403
    assert empty.status_code == 422
    assert updated.json()["score"] == 70
    assert removed.status_code == 204


async def test_lesson_attendance_and_personal_dismissal(
    async_client, api_people, auth_headers
) -> None:
    roster = api_people.roster
    student = auth_headers(api_people.student_1)

    lesson = await async_client.get(
        f"/api/attendance/lessons/{roster.lesson_1}", headers=auth_headers(api_people.teacher_a)
    )
    other_lesson = await async_client.get(
        f"/api/attendance/lessons/{roster.lesson_2}", headers=auth_headers(api_people.teacher_a)
    )
    assert lesson.status_code == 200
    assert lesson.json() == []
    assert other_lesson.status_code == 403

    created = await async_client.post(
        "/api/announcements",
        json={"title": "Trip", "content": "Bring lunch", "classId": roster.class_1},
        headers=auth_headers(api_people.admin),
    )
    announcement_id = created.json()["id"]

    dismissed = await async_client.delete(
        f"/api/announcements/{announcement_id}/personal", headers=student
    )
    listing = await async_client.get("/api/announcements", headers=student)

    assert dismissed.status_code == 204
    assert listing.json() == []
