"""FastAPI dependencies that bridge HTTP requests to auth, RBAC and realtime."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.db.session import get_session
from schoolhub_api.realtime.gateway import BroadcastGateway, InMemoryBroadcastGateway
from schoolhub_api.settings import Settings, get_app_settings

from ..auth.pipeline import authenticate_request
from ..auth.principal import Principal
from ..guard import AccessGuard, OperationTarget
from ..rbac.resolver import VisibilityResolver
from ..rbac.types import Role

_STUDENT_KEYS = ("student_id", "studentId")
_CLASS_KEYS = ("class_id", "classId")


def get_request_settings(request: Request) -> Settings:
    return get_app_settings(request.app)


SettingsDep = Annotated[Settings, Depends(get_request_settings)]
SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_current_principal(request: Request, settings: SettingsDep) -> Principal:
    """Authenticate the bearer token on ``request``; raise 401 on failure."""

    principal = authenticate_request(request, settings)
    request.state.principal = principal
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_resolver(session: SessionDep) -> VisibilityResolver:
    return VisibilityResolver(session)


ResolverDep = Annotated[VisibilityResolver, Depends(get_resolver)]


def get_guard(resolver: ResolverDep) -> AccessGuard:
    return AccessGuard(resolver)


GuardDep = Annotated[AccessGuard, Depends(get_guard)]


def get_gateway(request: Request) -> BroadcastGateway:
    """Return the application's broadcast gateway, creating one if absent."""

    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        settings = get_app_settings(request.app)
        gateway = InMemoryBroadcastGateway(queue_size=settings.realtime_send_queue_size)
        request.app.state.gateway = gateway
    return gateway


GatewayDep = Annotated[BroadcastGateway, Depends(get_gateway)]


def _first_param(request: Request, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = request.path_params.get(key) or request.query_params.get(key)
        if value:
            return str(value)
    return None


def target_from_request(request: Request) -> OperationTarget:
    """Collect target student/class ids from path and query parameters."""

    return OperationTarget(
        student_id=_first_param(request, _STUDENT_KEYS),
        class_id=_first_param(request, _CLASS_KEYS),
    )


def require_roles(*roles: Role) -> Callable[..., Awaitable[Principal]]:
    """Return a dependency that authorizes the caller through the access guard.

    An empty ``roles`` tuple admits any authenticated principal; target ids
    found in the path or query string are still checked.
    """

    allowed = frozenset(roles)

    async def dependency(
        request: Request,
        principal: CurrentPrincipal,
        guard: GuardDep,
    ) -> Principal:
        return await guard.authorize(principal, allowed, target_from_request(request))

    return dependency


__all__ = [
    "CurrentPrincipal",
    "GatewayDep",
    "GuardDep",
    "ResolverDep",
    "SessionDep",
    "SettingsDep",
    "get_current_principal",
    "get_gateway",
    "get_guard",
    "get_request_settings",
    "get_resolver",
    "require_roles",
    "target_from_request",
]
