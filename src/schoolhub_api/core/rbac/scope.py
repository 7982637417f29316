"""Scope descriptors produced by visibility policies.

A :class:`VisibilityScope` is the single currency between policies and the
code that reads or mutates data. It is either *unrestricted*, *denied*, or
*scoped* by a small criterion tree. The same tree compiles to a SQLAlchemy
``WHERE`` clause for list queries and evaluates in memory against an already
loaded row for single-record checks, so both paths always agree.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from .types import ResourceKind, Role


class Criterion:
    """Node of a scope criterion tree."""

    __slots__ = ()

    def compile(self, model: type[Any]) -> ColumnElement[bool]:
        raise NotImplementedError

    def matches(self, row: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class FieldIn(Criterion):
    """``row.<field>`` is one of ``values``. An empty set matches nothing."""

    field: str
    values: frozenset[Any]

    def compile(self, model: type[Any]) -> ColumnElement[bool]:
        if not self.values:
            return false()
        return getattr(model, self.field).in_(sorted(self.values, key=str))

    def matches(self, row: Any) -> bool:
        return getattr(row, self.field) in self.values


@dataclass(frozen=True, slots=True)
class FieldEquals(Criterion):
    field: str
    value: Any

    def compile(self, model: type[Any]) -> ColumnElement[bool]:
        return getattr(model, self.field) == self.value

    def matches(self, row: Any) -> bool:
        return getattr(row, self.field) == self.value


@dataclass(frozen=True, slots=True)
class IsNull(Criterion):
    field: str

    def compile(self, model: type[Any]) -> ColumnElement[bool]:
        return getattr(model, self.field).is_(None)

    def matches(self, row: Any) -> bool:
        return getattr(row, self.field) is None


@dataclass(frozen=True, slots=True)
class AudienceIncludes(Criterion):
    """The row targets ``role`` through its ``audiences`` relationship.

    When ``creator_roles`` is set the row must also have been created by one
    of those roles.
    """

    role: Role
    creator_roles: frozenset[Role] | None = None

    def compile(self, model: type[Any]) -> ColumnElement[bool]:
        relationship = model.audiences
        target = relationship.property.mapper.class_
        clause = relationship.any(target.role == self.role)
        if self.creator_roles is not None:
            clause = and_(clause, model.creator_role.in_(sorted(self.creator_roles)))
        return clause

    def matches(self, row: Any) -> bool:
        if not any(audience.role == self.role for audience in row.audiences):
            return False
        return self.creator_roles is None or row.creator_role in self.creator_roles


@dataclass(frozen=True, slots=True)
class AllOf(Criterion):
    parts: tuple[Criterion, ...]

    def compile(self, model: type[Any]) -> ColumnElement[bool]:
        if not self.parts:
            return true()
        return and_(*(part.compile(model) for part in self.parts))

    def matches(self, row: Any) -> bool:
        return all(part.matches(row) for part in self.parts)


@dataclass(frozen=True, slots=True)
class AnyOf(Criterion):
    parts: tuple[Criterion, ...]

    def compile(self, model: type[Any]) -> ColumnElement[bool]:
        if not self.parts:
            return false()
        return or_(*(part.compile(model) for part in self.parts))

    def matches(self, row: Any) -> bool:
        return any(part.matches(row) for part in self.parts)


def field_in(field: str, values: Iterable[Any]) -> FieldIn:
    return FieldIn(field, frozenset(value for value in values if value is not None))


def all_of(*parts: Criterion) -> AllOf:
    return AllOf(tuple(parts))


def any_of(*parts: Criterion) -> AnyOf:
    return AnyOf(tuple(parts))


class ScopeAccess(str, enum.Enum):
    UNRESTRICTED = "unrestricted"
    SCOPED = "scoped"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class VisibilityScope:
    """What a principal may see of one resource collection."""

    resource: ResourceKind
    access: ScopeAccess
    criterion: Criterion | None = None
    reason: str | None = None

    @classmethod
    def unrestricted(cls, resource: ResourceKind) -> VisibilityScope:
        return cls(resource=resource, access=ScopeAccess.UNRESTRICTED)

    @classmethod
    def scoped(cls, resource: ResourceKind, criterion: Criterion) -> VisibilityScope:
        return cls(resource=resource, access=ScopeAccess.SCOPED, criterion=criterion)

    @classmethod
    def denied(cls, resource: ResourceKind, reason: str) -> VisibilityScope:
        return cls(resource=resource, access=ScopeAccess.DENIED, reason=reason)

    @property
    def is_unrestricted(self) -> bool:
        return self.access is ScopeAccess.UNRESTRICTED

    @property
    def is_denied(self) -> bool:
        return self.access is ScopeAccess.DENIED

    def where(self, model: type[Any]) -> ColumnElement[bool] | None:
        """Return the filter for ``model`` or ``None`` when unrestricted."""

        if self.access is ScopeAccess.UNRESTRICTED:
            return None
        if self.access is ScopeAccess.DENIED or self.criterion is None:
            return false()
        return self.criterion.compile(model)

    def permits(self, row: Any) -> bool:
        """Return whether an already loaded ``row`` falls inside the scope."""

        if self.access is ScopeAccess.UNRESTRICTED:
            return True
        if self.access is ScopeAccess.DENIED or self.criterion is None:
            return False
        return self.criterion.matches(row)


__all__ = [
    "AllOf",
    "AnyOf",
    "AudienceIncludes",
    "Criterion",
    "FieldEquals",
    "FieldIn",
    "IsNull",
    "ScopeAccess",
    "VisibilityScope",
    "all_of",
    "any_of",
    "field_in",
]
