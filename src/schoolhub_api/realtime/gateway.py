"""Room-based broadcast gateway.

Connections join named rooms and the rest of the application emits events
to rooms, to roles, to a single user or to everyone. Each connection owns an
ordered send queue drained by its own writer task, so events reach a client
in the order they were emitted and one slow socket never blocks the others.
"""

from __future__ import annotations

import abc
import asyncio
import enum
import logging
from collections.abc import Iterable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4

from schoolhub_api.common.logging import log_context
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.rbac.types import Role

from .events import RealtimeEvent, envelope, event_name
from .rooms import class_room, role_rooms, user_room

logger = logging.getLogger(__name__)

DEFAULT_SEND_QUEUE_SIZE = 256
WS_CLOSE_TRY_AGAIN_LATER = 1013


class MessageSink(Protocol):
    """The part of a WebSocket the gateway writes to."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


@dataclass(slots=True, eq=False)
class Connection:
    """One authenticated client socket and the rooms it belongs to."""

    id: str
    socket: MessageSink
    principal: Principal
    queue: asyncio.Queue[dict[str, Any]]
    state: ConnectionState = ConnectionState.AUTHENTICATED
    rooms: set[str] = field(default_factory=set)
    writer: asyncio.Task[None] | None = None

    @property
    def user_id(self) -> str:
        return self.principal.id

    @property
    def role(self) -> Role:
        return self.principal.role


class BroadcastGateway(abc.ABC):
    """Publish events to connected clients by room."""

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @abc.abstractmethod
    async def register(self, socket: MessageSink, principal: Principal) -> Connection:
        """Track an authenticated socket; it belongs to no room yet."""

    @abc.abstractmethod
    async def unregister(self, connection: Connection) -> None:
        """Remove ``connection`` from every room it joined."""

    @abc.abstractmethod
    async def join(self, connection: Connection, rooms: Iterable[str]) -> list[str]:
        """Add ``connection`` to ``rooms``; membership is additive."""

    @abc.abstractmethod
    async def send(
        self,
        connection: Connection,
        event: RealtimeEvent | str,
        payload: Any,
    ) -> bool:
        """Queue ``event`` for a single connection."""

    @abc.abstractmethod
    async def emit_to_rooms(
        self,
        rooms: Iterable[str],
        payload: Any,
        event: RealtimeEvent | str,
    ) -> int:
        """Deliver once to every connection in any of ``rooms``; return the count."""

    @abc.abstractmethod
    async def emit_to_all(self, payload: Any, event: RealtimeEvent | str) -> int:
        """Deliver to every connected client."""

    async def emit_to_class(
        self,
        class_id: str,
        payload: Any,
        event: RealtimeEvent | str,
    ) -> int:
        return await self.emit_to_rooms([class_room(class_id)], payload, event)

    async def emit_to_roles(
        self,
        payload: Any,
        roles: Iterable[Role],
        event: RealtimeEvent | str,
    ) -> int:
        return await self.emit_to_rooms(role_rooms(roles), payload, event)

    async def emit_to_user(
        self,
        user_id: str,
        payload: Any,
        event: RealtimeEvent | str,
    ) -> int:
        return await self.emit_to_rooms([user_room(user_id)], payload, event)


class InMemoryBroadcastGateway(BroadcastGateway):
    """Single-process gateway keeping room membership in memory."""

    def __init__(self, *, queue_size: int = DEFAULT_SEND_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def rooms(self) -> dict[str, frozenset[str]]:
        """Snapshot of room name to member connection ids."""

        return {room: frozenset(members) for room, members in self._rooms.items()}

    def room_members(self, room: str) -> frozenset[str]:
        return frozenset(self._rooms.get(room, ()))

    async def close(self) -> None:
        async with self._lock:
            connections = list(self._connections.values())
        for connection in connections:
            await self.unregister(connection)
        logger.info("realtime.gateway.closed", extra=log_context(connections=len(connections)))

    async def register(self, socket: MessageSink, principal: Principal) -> Connection:
        connection = Connection(
            id=uuid4().hex,
            socket=socket,
            principal=principal,
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        connection.writer = asyncio.create_task(
            self._write_loop(connection),
            name=f"realtime-writer-{connection.id}",
        )
        async with self._lock:
            self._connections[connection.id] = connection
        logger.debug(
            "realtime.connection.registered",
            extra=log_context(
                user_id=principal.id,
                role=principal.role,
                connection_id=connection.id,
            ),
        )
        return connection

    async def unregister(self, connection: Connection) -> None:
        await self._forget(connection)
        writer = connection.writer
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
            with suppress(asyncio.CancelledError):
                await writer
        _discard_pending(connection.queue)

    async def join(self, connection: Connection, rooms: Iterable[str]) -> list[str]:
        requested = [room for room in rooms if room]
        async with self._lock:
            if connection.id not in self._connections:
                return []
            for room in requested:
                self._rooms.setdefault(room, set()).add(connection.id)
                connection.rooms.add(room)
            connection.state = ConnectionState.JOINED
            joined = sorted(connection.rooms)
        logger.debug(
            "realtime.rooms.joined",
            extra=log_context(
                user_id=connection.user_id,
                role=connection.role,
                connection_id=connection.id,
                rooms=joined,
            ),
        )
        return joined

    async def send(
        self,
        connection: Connection,
        event: RealtimeEvent | str,
        payload: Any,
    ) -> bool:
        message = envelope(event, payload)
        if self._enqueue(connection, message):
            return True
        await self._drop(connection)
        return False

    async def emit_to_rooms(
        self,
        rooms: Iterable[str],
        payload: Any,
        event: RealtimeEvent | str,
    ) -> int:
        names = list(rooms)
        async with self._lock:
            targets: dict[str, Connection] = {}
            for room in names:
                for connection_id in self._rooms.get(room, ()):
                    targets.setdefault(connection_id, self._connections[connection_id])
        return await self._fan_out(targets.values(), event, payload, rooms=names)

    async def emit_to_all(self, payload: Any, event: RealtimeEvent | str) -> int:
        async with self._lock:
            targets = list(self._connections.values())
        return await self._fan_out(targets, event, payload, rooms=["*"])

    async def drain(self) -> None:
        """Wait until every queued message has been handed to its socket."""

        for connection in list(self._connections.values()):
            if connection.writer is not None and not connection.writer.done():
                await connection.queue.join()

    async def _fan_out(
        self,
        targets: Iterable[Connection],
        event: RealtimeEvent | str,
        payload: Any,
        *,
        rooms: list[str],
    ) -> int:
        message = envelope(event, payload)
        delivered = 0
        overflowed: list[Connection] = []
        for connection in targets:
            if self._enqueue(connection, message):
                delivered += 1
            else:
                overflowed.append(connection)
        for connection in overflowed:
            await self._drop(connection)
        logger.debug(
            "realtime.emit",
            extra=log_context(event=event_name(event), rooms=rooms, delivered=delivered),
        )
        return delivered

    def _enqueue(self, connection: Connection, message: dict[str, Any]) -> bool:
        if connection.state is ConnectionState.DISCONNECTED:
            return False
        try:
            connection.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                "realtime.connection.overflow",
                extra=log_context(
                    user_id=connection.user_id,
                    connection_id=connection.id,
                    queue_size=self._queue_size,
                ),
            )
            return False
        return True

    async def _drop(self, connection: Connection) -> None:
        if connection.state is ConnectionState.DISCONNECTED:
            return
        await self.unregister(connection)
        with suppress(Exception):
            await connection.socket.close(code=WS_CLOSE_TRY_AGAIN_LATER)

    async def _forget(self, connection: Connection) -> None:
        async with self._lock:
            self._connections.pop(connection.id, None)
            for room in connection.rooms:
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.discard(connection.id)
                if not members:
                    self._rooms.pop(room, None)
            connection.rooms.clear()
            connection.state = ConnectionState.DISCONNECTED

    async def _write_loop(self, connection: Connection) -> None:
        queue = connection.queue
        while True:
            message = await queue.get()
            try:
                await connection.socket.send_json(message)
            except Exception:
                logger.info(
                    "realtime.send.failed",
                    extra=log_context(user_id=connection.user_id, connection_id=connection.id),
                    exc_info=True,
                )
                await self._forget(connection)
                _discard_pending(queue)
                return
            finally:
                queue.task_done()


def _discard_pending(queue: asyncio.Queue[dict[str, Any]]) -> None:
    while True:
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            return
        queue.task_done()


__all__ = [
    "BroadcastGateway",
    "Connection",
    "ConnectionState",
    "DEFAULT_SEND_QUEUE_SIZE",
    "InMemoryBroadcastGateway",
    "MessageSink",
]
