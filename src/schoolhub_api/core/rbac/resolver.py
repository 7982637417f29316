"""Resolve visibility scopes and enforce read/mutation access."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.common.logging import log_context

from ..auth.principal import Principal
from ..errors import NotFoundError, PermissionDeniedError
from .lookups import RelationshipLookups
from .policy import VisibilityPolicy
from .registry import POLICY_REGISTRY
from .scope import VisibilityScope
from .types import MutationRule, ResourceKind, Role

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class VisibilityResolver:
    """Compute what a principal may read and change.

    Precedence for mutations is SUPER_ADMIN, then the record's owner, then the
    role's scope when its policy allows scoped mutation, then denial.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        registry: Mapping[tuple[Role, ResourceKind], VisibilityPolicy] | None = None,
        lookups: RelationshipLookups | None = None,
    ) -> None:
        self._session = session
        self._registry = POLICY_REGISTRY if registry is None else registry
        self._lookups = lookups or RelationshipLookups(session)

    @property
    def session(self) -> AsyncSession:
        return self._session

    @property
    def lookups(self) -> RelationshipLookups:
        return self._lookups

    def policy_for(self, role: Role, resource: ResourceKind) -> VisibilityPolicy | None:
        return self._registry.get((role, resource))

    async def resolve(self, principal: Principal, resource: ResourceKind) -> VisibilityScope:
        """Return the scope for ``principal`` on ``resource``; never raises on denial."""

        if principal.is_super_admin:
            return VisibilityScope.unrestricted(resource)
        policy = self.policy_for(principal.role, resource)
        if policy is None:
            return VisibilityScope.denied(
                resource,
                reason=f"Role {principal.role.value} may not access {resource.value}",
            )
        return await policy.scope(principal, self._lookups)

    async def require_scope(
        self,
        principal: Principal,
        resource: ResourceKind,
    ) -> VisibilityScope:
        """Return a non-denied scope or raise :class:`PermissionDeniedError`."""

        scope = await self.resolve(principal, resource)
        if scope.is_denied:
            logger.info(
                "rbac.scope.denied",
                extra=log_context(
                    user_id=principal.id,
                    role=principal.role,
                    resource=resource.value,
                ),
            )
            raise PermissionDeniedError(
                scope.reason,
                resource=resource.value,
                role=principal.role.value,
            )
        return scope

    async def apply(
        self,
        statement: Select[Any],
        principal: Principal,
        resource: ResourceKind,
        model: type[Any],
    ) -> Select[Any]:
        """Restrict ``statement`` over ``model`` to the principal's scope."""

        scope = await self.require_scope(principal, resource)
        clause = scope.where(model)
        if clause is None:
            return statement
        return statement.where(clause)

    async def is_visible(
        self,
        principal: Principal,
        resource: ResourceKind,
        entity: Any,
    ) -> bool:
        scope = await self.resolve(principal, resource)
        return scope.permits(entity)

    async def ensure_visible(
        self,
        principal: Principal,
        resource: ResourceKind,
        entity: Any,
        *,
        message: str | None = None,
    ) -> None:
        scope = await self.require_scope(principal, resource)
        if not scope.permits(entity):
            raise PermissionDeniedError(
                message or f"You do not have access to this {_singular(resource)}",
                resource=resource.value,
                role=principal.role.value,
            )

    async def get_visible(
        self,
        principal: Principal,
        resource: ResourceKind,
        model: type[ModelT],
        entity_id: str,
    ) -> ModelT:
        """Load ``model`` by id, raising NotFound when absent and Forbidden when out of scope."""

        entity = await self._session.get(model, entity_id)
        if entity is None:
            raise NotFoundError(f"{_singular(resource).capitalize()} not found")
        await self.ensure_visible(principal, resource, entity)
        return entity

    async def can_mutate(
        self,
        principal: Principal,
        resource: ResourceKind,
        entity: Any,
    ) -> bool:
        if principal.is_super_admin:
            return True
        policy = self.policy_for(principal.role, resource)
        if policy is None:
            return False
        if policy.owner_field and getattr(entity, policy.owner_field, None) == principal.id:
            return True
        if policy.mutation is MutationRule.ANY_IN_SCOPE:
            scope = await policy.scope(principal, self._lookups)
            return scope.permits(entity)
        return False

    async def ensure_can_mutate(
        self,
        principal: Principal,
        resource: ResourceKind,
        entity: Any,
        *,
        message: str | None = None,
    ) -> None:
        if await self.can_mutate(principal, resource, entity):
            return
        logger.info(
            "rbac.mutation.denied",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                resource=resource.value,
                entity_id=getattr(entity, "id", None),
            ),
        )
        raise PermissionDeniedError(
            message or f"You can only modify {resource.value} you created",
            resource=resource.value,
            role=principal.role.value,
        )


def _singular(resource: ResourceKind) -> str:
    names = {
        ResourceKind.ASSIGNMENTS: "assignment",
        ResourceKind.ATTENDANCE: "attendance record",
        ResourceKind.GRADES: "grade",
        ResourceKind.STUDENTS: "student",
        ResourceKind.PARENTS: "parent",
        ResourceKind.CLASSES: "class",
        ResourceKind.EVENTS: "event",
        ResourceKind.ANNOUNCEMENTS: "announcement",
    }
    return names[resource]


__all__ = ["VisibilityResolver"]
