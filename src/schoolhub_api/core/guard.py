"""Access guard: role gate plus target-level ownership checks.

Every operation declares the roles allowed to call it (an empty set means
"any authenticated principal"). When the arguments name a target student or
class and the caller is a TEACHER or PARENT, the guard also confirms the
target lies inside the caller's scope. All checks happen before any write.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass

from schoolhub_api.common.logging import log_context
from schoolhub_api.features.school.models import SchoolClass, Student

from .auth.principal import Principal
from .errors import AuthenticationError, PermissionDeniedError
from .rbac.resolver import VisibilityResolver
from .rbac.types import ResourceKind, Role

logger = logging.getLogger(__name__)

_DYNAMIC_ROLES = frozenset({Role.TEACHER, Role.PARENT})


@dataclass(frozen=True, slots=True)
class OperationTarget:
    """Entity ids embedded in an operation's arguments."""

    student_id: str | None = None
    class_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.student_id is None and self.class_id is None


class AccessGuard:
    """Authorize an operation for a principal before it executes."""

    def __init__(self, resolver: VisibilityResolver) -> None:
        self._resolver = resolver

    async def authorize(
        self,
        principal: Principal | None,
        allowed_roles: Collection[Role] = (),
        target: OperationTarget | None = None,
    ) -> Principal:
        """Return ``principal`` when allowed, otherwise raise.

        Raises :class:`AuthenticationError` when no principal is present and
        :class:`PermissionDeniedError` on a role or target mismatch.
        """

        if principal is None:
            raise AuthenticationError()

        allowed = frozenset(allowed_roles)
        if allowed:
            if principal.is_super_admin:
                return principal
            if principal.role not in allowed:
                self._log_denial(principal, "role", allowed=sorted(role.value for role in allowed))
                raise PermissionDeniedError(
                    "Your role is not allowed to perform this operation",
                    role=principal.role.value,
                )

        if target is None or target.is_empty:
            return principal

        if principal.role in _DYNAMIC_ROLES:
            await self._check_target(principal, target)
        elif principal.role is Role.STUDENT and target.student_id not in (None, principal.id):
            self._log_denial(principal, "student_target", student_id=target.student_id)
            raise PermissionDeniedError(
                "Students may only access their own records",
                resource=ResourceKind.STUDENTS.value,
                role=principal.role.value,
            )
        return principal

    async def _check_target(self, principal: Principal, target: OperationTarget) -> None:
        if target.student_id is not None:
            student = await self._resolver.session.get(Student, target.student_id)
            if student is None or not await self._resolver.is_visible(
                principal, ResourceKind.STUDENTS, student
            ):
                self._log_denial(principal, "student_target", student_id=target.student_id)
                raise PermissionDeniedError(
                    _TARGET_MESSAGES[(principal.role, ResourceKind.STUDENTS)],
                    resource=ResourceKind.STUDENTS.value,
                    role=principal.role.value,
                )

        if target.class_id is not None:
            school_class = await self._resolver.session.get(SchoolClass, target.class_id)
            if school_class is None or not await self._resolver.is_visible(
                principal, ResourceKind.CLASSES, school_class
            ):
                self._log_denial(principal, "class_target", class_id=target.class_id)
                raise PermissionDeniedError(
                    _TARGET_MESSAGES[(principal.role, ResourceKind.CLASSES)],
                    resource=ResourceKind.CLASSES.value,
                    role=principal.role.value,
                )

    @staticmethod
    def _log_denial(principal: Principal, check: str, **extra: object) -> None:
        logger.info(
            "guard.denied",
            extra=log_context(user_id=principal.id, role=principal.role, check=check, **extra),
        )


_TARGET_MESSAGES: dict[tuple[Role, ResourceKind], str] = {
    (Role.TEACHER, ResourceKind.STUDENTS): "You can only access students in your classes",
    (Role.TEACHER, ResourceKind.CLASSES): "You can only access classes you teach",
    (Role.PARENT, ResourceKind.STUDENTS): "You can only access your own children's records",
    (Role.PARENT, ResourceKind.CLASSES): "You can only access your children's classes",
}


__all__ = ["AccessGuard", "OperationTarget"]
