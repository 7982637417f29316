"""Role visibility types and scope descriptors.

The resolver, registry and lookups live in their own modules and are imported
by full path; they depend on the ORM models, which in turn import
:mod:`schoolhub_api.core.rbac.types`.
"""

from .scope import ScopeAccess, VisibilityScope
from .types import ADMIN_ROLES, MutationRule, ResourceKind, Role

__all__ = [
    "ADMIN_ROLES",
    "MutationRule",
    "ResourceKind",
    "Role",
    "ScopeAccess",
    "VisibilityScope",
]
