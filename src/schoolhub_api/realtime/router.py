"""WebSocket endpoint for real-time notifications.

Handshake: the client supplies a bearer token in the ``Authorization`` header,
a ``token`` query parameter, or as a first ``auth`` frame sent within the
handshake timeout. Authentication failures produce an ``error`` event and a
close. Once authenticated the server emits ``connected`` and the client may
send ``joinRooms`` to subscribe to its role, class and personal rooms.

Frames are JSON objects of the form ``{"event": <name>, "data": <payload>}``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from schoolhub_api.common.logging import log_context
from schoolhub_api.core.auth.pipeline import authenticate_token, extract_handshake_token
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.errors import AuthenticationError
from schoolhub_api.core.rbac.resolver import VisibilityResolver
from schoolhub_api.core.rbac.types import ResourceKind
from schoolhub_api.db.session import get_sessionmaker
from schoolhub_api.features.school.models import SchoolClass
from schoolhub_api.settings import Settings, get_app_settings

from .events import (
    AUTH_REQUIRED_MESSAGE,
    AUTH_TIMEOUT_MESSAGE,
    CONNECTED_MESSAGE,
    INVALID_MESSAGE,
    RealtimeEvent,
    envelope,
)
from .gateway import BroadcastGateway, Connection, InMemoryBroadcastGateway
from .rooms import rooms_for_join
from .schemas import AuthFrame, JoinRoomsRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

WS_CLOSE_BAD_REQUEST = 4400
WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_TIMEOUT = 4408

FOREIGN_IDENTITY_MESSAGE = "Cannot join rooms for another user"
CLASS_FORBIDDEN_MESSAGE = "You do not have access to this class"


class HandshakeRejected(Exception):
    """Raised when the handshake fails; carries the close code and message."""

    def __init__(self, message: str, close_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.close_code = close_code


def _gateway_for(websocket: WebSocket, settings: Settings) -> BroadcastGateway:
    gateway = getattr(websocket.app.state, "gateway", None)
    if gateway is None:
        gateway = InMemoryBroadcastGateway(queue_size=settings.realtime_send_queue_size)
        websocket.app.state.gateway = gateway
    return gateway


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json(envelope(RealtimeEvent.ERROR, {"message": message}))


async def _receive_frame(websocket: WebSocket) -> Any:
    """Return the next JSON frame; binary or malformed frames raise ``ValueError``."""

    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    text = message.get("text")
    if text is None:
        raise ValueError("Binary frames are not accepted")
    return json.loads(text)


async def _read_auth_frame(websocket: WebSocket, settings: Settings) -> str:
    timeout = settings.realtime_handshake_timeout.total_seconds()
    try:
        with anyio.fail_after(timeout):
            raw = await _receive_frame(websocket)
    except TimeoutError as exc:
        raise HandshakeRejected(AUTH_TIMEOUT_MESSAGE, WS_CLOSE_TIMEOUT) from exc
    except ValueError as exc:
        raise HandshakeRejected(INVALID_MESSAGE, WS_CLOSE_BAD_REQUEST) from exc

    if not isinstance(raw, dict) or raw.get("event") != RealtimeEvent.AUTH.value:
        raise HandshakeRejected(AUTH_REQUIRED_MESSAGE, WS_CLOSE_UNAUTHORIZED)
    try:
        frame = AuthFrame.model_validate(raw.get("data") or {})
    except ValidationError as exc:
        raise HandshakeRejected(AUTH_REQUIRED_MESSAGE, WS_CLOSE_UNAUTHORIZED) from exc
    return frame.token


async def _authenticate(websocket: WebSocket, settings: Settings) -> Principal:
    token = extract_handshake_token(websocket)
    if token is None:
        token = await _read_auth_frame(websocket, settings)
    try:
        return authenticate_token(token, settings)
    except AuthenticationError as exc:
        raise HandshakeRejected(exc.message, WS_CLOSE_UNAUTHORIZED) from exc


async def _class_visible(principal: Principal, class_id: str, settings: Settings) -> bool:
    session_factory = get_sessionmaker(settings)
    async with session_factory() as session:
        school_class = await session.get(SchoolClass, class_id)
        if school_class is None:
            return False
        resolver = VisibilityResolver(session)
        return await resolver.is_visible(principal, ResourceKind.CLASSES, school_class)


async def _handle_join(
    gateway: BroadcastGateway,
    connection: Connection,
    data: Any,
    settings: Settings,
) -> None:
    principal = connection.principal
    try:
        request = JoinRoomsRequest.model_validate(data or {})
    except ValidationError:
        await gateway.send(connection, RealtimeEvent.ERROR, {"message": INVALID_MESSAGE})
        return

    if (request.role is not None and request.role is not principal.role) or (
        request.user_id is not None and request.user_id != principal.id
    ):
        logger.info(
            "realtime.join.rejected",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                connection_id=connection.id,
                requested_user_id=request.user_id,
            ),
        )
        await gateway.send(connection, RealtimeEvent.ERROR, {"message": FOREIGN_IDENTITY_MESSAGE})
        return

    class_id = request.class_id
    if class_id and not await _class_visible(principal, class_id, settings):
        logger.info(
            "realtime.join.rejected",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                class_id=class_id,
                connection_id=connection.id,
            ),
        )
        await gateway.send(connection, RealtimeEvent.ERROR, {"message": CLASS_FORBIDDEN_MESSAGE})
        return

    await gateway.join(connection, rooms_for_join(principal.role, principal.id, class_id))


@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket) -> None:
    settings = get_app_settings(websocket.app)
    gateway = _gateway_for(websocket, settings)

    await websocket.accept()
    try:
        principal = await _authenticate(websocket, settings)
    except HandshakeRejected as exc:
        logger.info("realtime.handshake.rejected", extra=log_context(reason=exc.message))
        await _send_error(websocket, exc.message)
        await websocket.close(code=exc.close_code)
        return
    except WebSocketDisconnect:
        return

    connection = await gateway.register(websocket, principal)
    logger.info(
        "realtime.connected",
        extra=log_context(
            user_id=principal.id,
            role=principal.role,
            connection_id=connection.id,
        ),
    )
    await gateway.send(
        connection,
        RealtimeEvent.CONNECTED,
        {"message": CONNECTED_MESSAGE, "userId": principal.id},
    )

    try:
        while True:
            try:
                message = await _receive_frame(websocket)
            except ValueError:
                await gateway.send(connection, RealtimeEvent.ERROR, {"message": INVALID_MESSAGE})
                continue
            if not isinstance(message, dict):
                await gateway.send(connection, RealtimeEvent.ERROR, {"message": INVALID_MESSAGE})
                continue
            if message.get("event") == RealtimeEvent.JOIN_ROOMS.value:
                await _handle_join(gateway, connection, message.get("data"), settings)
    except WebSocketDisconnect:
        pass
    finally:
        await gateway.unregister(connection)
        logger.info(
            "realtime.disconnected",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                connection_id=connection.id,
            ),
        )


__all__ = ["router"]
