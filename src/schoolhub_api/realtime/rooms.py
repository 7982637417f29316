"""Room naming: ``role-<ROLE>``, ``class-<classId>`` and ``user-<userId>``."""

from __future__ import annotations

from collections.abc import Iterable

from schoolhub_api.core.rbac.types import Role

ROLE_ROOM_PREFIX = "role-"
CLASS_ROOM_PREFIX = "class-"
USER_ROOM_PREFIX = "user-"


def role_room(role: Role | str) -> str:
    value = role.value if isinstance(role, Role) else str(role)
    return f"{ROLE_ROOM_PREFIX}{value}"


def class_room(class_id: str) -> str:
    return f"{CLASS_ROOM_PREFIX}{class_id}"


def user_room(user_id: str) -> str:
    return f"{USER_ROOM_PREFIX}{user_id}"


def role_rooms(roles: Iterable[Role | str]) -> list[str]:
    return sorted({role_room(role) for role in roles})


def rooms_for_join(role: Role, user_id: str, class_id: str | None = None) -> list[str]:
    """Rooms a ``joinRooms`` request adds: role, optional class, always user."""

    rooms = [role_room(role)]
    if class_id:
        rooms.append(class_room(class_id))
    rooms.append(user_room(user_id))
    return rooms


__all__ = [
    "CLASS_ROOM_PREFIX",
    "ROLE_ROOM_PREFIX",
    "USER_ROOM_PREFIX",
    "class_room",
    "role_room",
    "role_rooms",
    "rooms_for_join",
    "user_room",
]
