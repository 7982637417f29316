"""Enumerations shared by visibility policies, the guard and the gateway."""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    """Closed set of principal roles."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    PARENT = "PARENT"
    STUDENT = "STUDENT"


class ResourceKind(str, enum.Enum):
    """Collections whose visibility is scoped per principal."""

    ASSIGNMENTS = "assignments"
    ATTENDANCE = "attendance"
    GRADES = "grades"
    STUDENTS = "students"
    PARENTS = "parents"
    CLASSES = "classes"
    EVENTS = "events"
    ANNOUNCEMENTS = "announcements"


class MutationRule(str, enum.Enum):
    """How a role may modify records inside its visibility scope."""

    ANY_IN_SCOPE = "any_in_scope"
    OWNER_ONLY = "owner_only"
    DENY = "deny"


ADMIN_ROLES: frozenset[Role] = frozenset({Role.SUPER_ADMIN, Role.ADMIN})

__all__ = ["ADMIN_ROLES", "MutationRule", "ResourceKind", "Role"]
