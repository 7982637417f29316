"""Canonical visibility policy registry.

Every ``(Role, ResourceKind)`` pair that may read a resource has exactly one
entry. A missing pair means the role has no access at all. SUPER_ADMIN never
appears here: the resolver bypasses the table for it.

ADMIN scope is decided per resource: unrestricted everywhere except events,
where admins see public events and the events they created. Admins still
change only the assignments, grades and events they own.
"""

from __future__ import annotations

from collections.abc import Mapping

from schoolhub_api.features.events.models import EventVisibility

from ..auth.principal import Principal
from ..errors import NotFoundError
from .lookups import RelationshipLookups
from .policy import ScopeBuilder, ScopedPolicy, UnrestrictedPolicy, VisibilityPolicy
from .scope import (
    AudienceIncludes,
    Criterion,
    FieldEquals,
    IsNull,
    all_of,
    any_of,
    field_in,
)
from .types import ADMIN_ROLES, MutationRule, ResourceKind, Role

_PUBLIC = FieldEquals("visibility", EventVisibility.PUBLIC)


def _unrestricted(
    role: Role,
    resource: ResourceKind,
    *,
    owner_field: str | None = None,
    mutation: MutationRule = MutationRule.ANY_IN_SCOPE,
) -> VisibilityPolicy:
    return UnrestrictedPolicy(role, resource, owner_field=owner_field, mutation=mutation)


def _scoped(
    role: Role,
    resource: ResourceKind,
    builder: ScopeBuilder,
    *,
    owner_field: str | None = None,
    mutation: MutationRule = MutationRule.DENY,
) -> VisibilityPolicy:
    return ScopedPolicy(role, resource, builder, owner_field=owner_field, mutation=mutation)


def _own(field: str, principal: Principal) -> Criterion:
    return field_in(field, {principal.id})


# ---------------------------------------------------------------------------
# ADMIN
# ---------------------------------------------------------------------------


async def _admin_events(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return any_of(_PUBLIC, _own("creator_id", principal))


# ---------------------------------------------------------------------------
# TEACHER
# ---------------------------------------------------------------------------


async def _teacher_assignments(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = await lookups.teacher_class_ids(principal.id)
    return any_of(field_in("class_id", classes), _own("teacher_id", principal))


async def _teacher_grades(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = await lookups.teacher_class_ids(principal.id)
    return any_of(field_in("class_id", classes), _own("teacher_id", principal))


async def _teacher_class_members(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("class_id", await lookups.teacher_class_ids(principal.id))


async def _teacher_parents(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = await lookups.teacher_class_ids(principal.id)
    return field_in("id", await lookups.parent_ids_for_classes(classes))


async def _teacher_classes(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("id", await lookups.teacher_class_ids(principal.id))


async def _teacher_events(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = field_in("class_id", await lookups.teacher_class_ids(principal.id))
    return any_of(
        _own("creator_id", principal),
        all_of(
            _PUBLIC,
            any_of(
                all_of(AudienceIncludes(Role.TEACHER), any_of(IsNull("class_id"), classes)),
                all_of(AudienceIncludes(Role.STUDENT), classes),
            ),
        ),
    )


async def _teacher_announcements(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = await lookups.teacher_class_ids(principal.id)
    return any_of(
        field_in("class_id", classes),
        _own("creator_id", principal),
        all_of(IsNull("class_id"), AudienceIncludes(Role.TEACHER, ADMIN_ROLES)),
    )


# ---------------------------------------------------------------------------
# STUDENT
# ---------------------------------------------------------------------------


async def _require_student_class(principal: Principal, lookups: RelationshipLookups) -> str:
    class_id = await lookups.student_class_id(principal.id)
    if class_id is None:
        raise NotFoundError("Student not found")
    return class_id


async def _student_assignments(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("class_id", {await _require_student_class(principal, lookups)})


async def _student_own_records(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return _own("student_id", principal)


async def _student_self(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return _own("id", principal)


async def _student_parent(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("id", {await lookups.student_parent_id(principal.id)})


async def _student_classes(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("id", {await lookups.student_class_id(principal.id)})


async def _student_events(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    own_class = field_in("class_id", {await lookups.student_class_id(principal.id)})
    return any_of(
        _own("creator_id", principal),
        all_of(
            _PUBLIC,
            any_of(all_of(AudienceIncludes(Role.STUDENT), IsNull("class_id")), own_class),
        ),
    )


async def _student_announcements(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    own_class = field_in("class_id", {await lookups.student_class_id(principal.id)})
    return any_of(
        own_class,
        all_of(
            IsNull("class_id"),
            AudienceIncludes(Role.STUDENT, ADMIN_ROLES | {Role.TEACHER}),
        ),
    )


# ---------------------------------------------------------------------------
# PARENT
# ---------------------------------------------------------------------------


async def _parent_assignments(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = await lookups.parent_child_class_ids(principal.id)
    if not classes:
        raise NotFoundError("No children found for this parent")
    return field_in("class_id", classes)


async def _parent_child_records(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("student_id", await lookups.parent_child_ids(principal.id))


async def _parent_children(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("id", await lookups.parent_child_ids(principal.id))


async def _parent_self(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return _own("id", principal)


async def _parent_classes(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    return field_in("id", await lookups.parent_child_class_ids(principal.id))


async def _parent_events(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = field_in("class_id", await lookups.parent_child_class_ids(principal.id))
    return any_of(
        _own("creator_id", principal),
        all_of(
            _PUBLIC,
            any_of(all_of(AudienceIncludes(Role.PARENT), IsNull("class_id")), classes),
        ),
    )


async def _parent_announcements(principal: Principal, lookups: RelationshipLookups) -> Criterion:
    classes = field_in("class_id", await lookups.parent_child_class_ids(principal.id))
    return any_of(classes, all_of(IsNull("class_id"), AudienceIncludes(Role.PARENT)))


POLICIES: tuple[VisibilityPolicy, ...] = (
    # ADMIN ----------------------------------------------------------------
    _unrestricted(
        Role.ADMIN,
        ResourceKind.ASSIGNMENTS,
        owner_field="teacher_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    _unrestricted(Role.ADMIN, ResourceKind.ATTENDANCE),
    _unrestricted(
        Role.ADMIN,
        ResourceKind.GRADES,
        owner_field="teacher_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    _unrestricted(Role.ADMIN, ResourceKind.STUDENTS),
    _unrestricted(Role.ADMIN, ResourceKind.PARENTS),
    _unrestricted(Role.ADMIN, ResourceKind.CLASSES),
    _unrestricted(Role.ADMIN, ResourceKind.ANNOUNCEMENTS, owner_field="creator_id"),
    _scoped(
        Role.ADMIN,
        ResourceKind.EVENTS,
        _admin_events,
        owner_field="creator_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    # TEACHER --------------------------------------------------------------
    _scoped(
        Role.TEACHER,
        ResourceKind.ASSIGNMENTS,
        _teacher_assignments,
        owner_field="teacher_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    _scoped(Role.TEACHER, ResourceKind.ATTENDANCE, _teacher_class_members),
    _scoped(
        Role.TEACHER,
        ResourceKind.GRADES,
        _teacher_grades,
        owner_field="teacher_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    _scoped(Role.TEACHER, ResourceKind.STUDENTS, _teacher_class_members),
    _scoped(Role.TEACHER, ResourceKind.PARENTS, _teacher_parents),
    _scoped(Role.TEACHER, ResourceKind.CLASSES, _teacher_classes),
    _scoped(
        Role.TEACHER,
        ResourceKind.EVENTS,
        _teacher_events,
        owner_field="creator_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    _scoped(
        Role.TEACHER,
        ResourceKind.ANNOUNCEMENTS,
        _teacher_announcements,
        owner_field="creator_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    # STUDENT --------------------------------------------------------------
    _scoped(Role.STUDENT, ResourceKind.ASSIGNMENTS, _student_assignments),
    _scoped(Role.STUDENT, ResourceKind.ATTENDANCE, _student_own_records),
    _scoped(Role.STUDENT, ResourceKind.GRADES, _student_own_records),
    _scoped(Role.STUDENT, ResourceKind.STUDENTS, _student_self),
    _scoped(Role.STUDENT, ResourceKind.PARENTS, _student_parent),
    _scoped(Role.STUDENT, ResourceKind.CLASSES, _student_classes),
    _scoped(
        Role.STUDENT,
        ResourceKind.EVENTS,
        _student_events,
        owner_field="creator_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    _scoped(Role.STUDENT, ResourceKind.ANNOUNCEMENTS, _student_announcements),
    # PARENT ---------------------------------------------------------------
    _scoped(Role.PARENT, ResourceKind.ASSIGNMENTS, _parent_assignments),
    _scoped(Role.PARENT, ResourceKind.ATTENDANCE, _parent_child_records),
    _scoped(Role.PARENT, ResourceKind.GRADES, _parent_child_records),
    _scoped(Role.PARENT, ResourceKind.STUDENTS, _parent_children),
    _scoped(Role.PARENT, ResourceKind.PARENTS, _parent_self),
    _scoped(Role.PARENT, ResourceKind.CLASSES, _parent_classes),
    _scoped(
        Role.PARENT,
        ResourceKind.EVENTS,
        _parent_events,
        owner_field="creator_id",
        mutation=MutationRule.OWNER_ONLY,
    ),
    _scoped(Role.PARENT, ResourceKind.ANNOUNCEMENTS, _parent_announcements),
)


def _build_registry(
    policies: tuple[VisibilityPolicy, ...],
) -> dict[tuple[Role, ResourceKind], VisibilityPolicy]:
    registry: dict[tuple[Role, ResourceKind], VisibilityPolicy] = {}
    for policy in policies:
        if policy.role is Role.SUPER_ADMIN:
            raise ValueError("SUPER_ADMIN bypasses the policy registry")
        if policy.key in registry:
            raise ValueError(f"Duplicate visibility policy for {policy.key}")
        registry[policy.key] = policy
    return registry


POLICY_REGISTRY: Mapping[tuple[Role, ResourceKind], VisibilityPolicy] = _build_registry(POLICIES)


__all__ = ["POLICIES", "POLICY_REGISTRY"]
