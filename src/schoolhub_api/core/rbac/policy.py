"""Visibility policy abstractions.

One policy instance exists per ``(Role, ResourceKind)`` pair; the registry in
:mod:`schoolhub_api.core.rbac.registry` maps pairs to instances. Policies
answer two questions: what may this principal read (``scope``) and on which
grounds may it change a record (``owner_field`` plus ``mutation``).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from ..auth.principal import Principal
from .lookups import RelationshipLookups
from .scope import Criterion, VisibilityScope
from .types import MutationRule, ResourceKind, Role

ScopeBuilder = Callable[[Principal, RelationshipLookups], Awaitable[Criterion]]


class VisibilityPolicy:
    """Base class for per-role, per-resource visibility rules."""

    def __init__(
        self,
        role: Role,
        resource: ResourceKind,
        *,
        owner_field: str | None = None,
        mutation: MutationRule = MutationRule.DENY,
    ) -> None:
        self.role = role
        self.resource = resource
        self.owner_field = owner_field
        self.mutation = mutation

    @property
    def key(self) -> tuple[Role, ResourceKind]:
        return (self.role, self.resource)

    async def scope(
        self,
        principal: Principal,
        lookups: RelationshipLookups,
    ) -> VisibilityScope:
        raise NotImplementedError

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(role={self.role.value}, resource={self.resource.value}, "
            f"mutation={self.mutation.value})"
        )


class UnrestrictedPolicy(VisibilityPolicy):
    """The role sees every record of the resource."""

    async def scope(
        self,
        principal: Principal,
        lookups: RelationshipLookups,
    ) -> VisibilityScope:
        return VisibilityScope.unrestricted(self.resource)


class ScopedPolicy(VisibilityPolicy):
    """The role sees the records matched by a criterion built per request."""

    def __init__(
        self,
        role: Role,
        resource: ResourceKind,
        builder: ScopeBuilder,
        *,
        owner_field: str | None = None,
        mutation: MutationRule = MutationRule.DENY,
    ) -> None:
        super().__init__(role, resource, owner_field=owner_field, mutation=mutation)
        self._builder = builder

    async def scope(
        self,
        principal: Principal,
        lookups: RelationshipLookups,
    ) -> VisibilityScope:
        criterion = await self._builder(principal, lookups)
        return VisibilityScope.scoped(self.resource, criterion)


__all__ = ["ScopeBuilder", "ScopedPolicy", "UnrestrictedPolicy", "VisibilityPolicy"]
