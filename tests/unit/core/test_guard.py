from __future__ import annotations

from types import SimpleNamespace

import pytest

from schoolhub_api.core.errors import AuthenticationError, PermissionDeniedError
from schoolhub_api.core.guard import AccessGuard, OperationTarget
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.scope import (
    AudienceIncludes,
    FieldEquals,
    VisibilityScope,
    all_of,
    any_of,
    field_in,
)
from schoolhub_api.core.rbac.types import ResourceKind, Role


@pytest.fixture()
def guard(session) -> AccessGuard:
    return AccessGuard(VisibilityResolver(session))


def test_empty_value_set_matches_nothing() -> None:
    criterion = field_in("class_id", [None])

    assert criterion.values == frozenset()
    assert not criterion.matches(SimpleNamespace(class_id=None))
    assert not any_of().matches(SimpleNamespace())
    assert all_of().matches(SimpleNamespace())


def test_audience_criterion_checks_creator_role() -> None:
    row = SimpleNamespace(
        audiences=[SimpleNamespace(role=Role.TEACHER)],
        creator_role=Role.TEACHER,
    )

    assert AudienceIncludes(Role.TEACHER).matches(row)
    assert not AudienceIncludes(Role.TEACHER, frozenset({Role.ADMIN})).matches(row)
    assert not AudienceIncludes(Role.PARENT).matches(row)


def test_denied_scope_permits_nothing() -> None:
    scope = VisibilityScope.denied(ResourceKind.GRADES, reason="no")

    assert scope.is_denied
    assert not scope.permits(SimpleNamespace(id="x"))
    assert VisibilityScope.scoped(ResourceKind.GRADES, FieldEquals("id", "x")).permits(
        SimpleNamespace(id="x")
    )


@pytest.mark.asyncio
async def test_missing_principal_is_unauthenticated(guard) -> None:
    with pytest.raises(AuthenticationError):
        await guard.authorize(None, {Role.ADMIN})


@pytest.mark.asyncio
async def test_role_gate(guard, people) -> None:
    assert await guard.authorize(people.admin, {Role.ADMIN}) is people.admin
    with pytest.raises(PermissionDeniedError):
        await guard.authorize(people.parent_1, {Role.ADMIN, Role.TEACHER})


@pytest.mark.asyncio
async def test_empty_role_set_admits_any_principal(guard, people) -> None:
    for principal in (people.student_1, people.parent_1, people.teacher_b):
        assert await guard.authorize(principal) is principal


@pytest.mark.asyncio
async def test_super_admin_passes_every_gate(guard, people, roster) -> None:
    target = OperationTarget(student_id=roster.student_3, class_id=roster.class_2)

    for roles in ({Role.TEACHER}, {Role.PARENT}, {Role.STUDENT}, {Role.ADMIN}):
        assert await guard.authorize(people.super_admin, roles, target) is people.super_admin


@pytest.mark.asyncio
async def test_teacher_target_must_be_in_their_classes(guard, people, roster) -> None:
    allowed = OperationTarget(student_id=roster.student_1, class_id=roster.class_1)
    assert await guard.authorize(people.teacher_a, {Role.TEACHER}, allowed)

    with pytest.raises(PermissionDeniedError, match="students in your classes"):
        await guard.authorize(
            people.teacher_a, {Role.TEACHER}, OperationTarget(student_id=roster.student_3)
        )
    with pytest.raises(PermissionDeniedError, match="classes you teach"):
        await guard.authorize(
            people.teacher_a, {Role.TEACHER}, OperationTarget(class_id=roster.class_2)
        )


@pytest.mark.asyncio
async def test_parent_target_must_be_their_child(guard, people, roster) -> None:
    assert await guard.authorize(
        people.parent_1, (), OperationTarget(student_id=roster.student_3)
    )

    with pytest.raises(PermissionDeniedError, match="your own children"):
        await guard.authorize(people.parent_1, (), OperationTarget(student_id=roster.student_2))
    with pytest.raises(PermissionDeniedError):
        await guard.authorize(people.parent_2, (), OperationTarget(student_id="unknown"))


@pytest.mark.asyncio
async def test_student_may_only_target_themselves(guard, people, roster) -> None:
    assert await guard.authorize(
        people.student_1, (), OperationTarget(student_id=roster.student_1)
    )

    with pytest.raises(PermissionDeniedError, match="their own records"):
        await guard.authorize(people.student_1, (), OperationTarget(student_id=roster.student_2))
