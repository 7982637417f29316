"""Client frames accepted on the real-time channel."""

from __future__ import annotations

from pydantic import ConfigDict

from schoolhub_api.common.schema import BaseSchema
from schoolhub_api.core.rbac.types import Role


class AuthFrame(BaseSchema):
    model_config = ConfigDict(extra="ignore")

    token: str


class JoinRoomsRequest(BaseSchema):
    """``joinRooms`` payload. The authenticated identity always wins."""

    model_config = ConfigDict(extra="ignore")

    role: Role | None = None
    class_id: str | None = None
    user_id: str | None = None


__all__ = ["AuthFrame", "JoinRoomsRequest"]
