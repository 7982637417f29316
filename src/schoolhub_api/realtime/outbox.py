"""Post-commit emission buffer.

Services record the notifications a mutation should trigger on an
:class:`Outbox`. Nothing is sent until the surrounding transaction commits;
a rollback discards the buffer so clients never hear about writes that did
not happen.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub_api.common.logging import log_context
from schoolhub_api.core.rbac.types import Role

from .events import RealtimeEvent, event_name
from .gateway import BroadcastGateway

logger = logging.getLogger(__name__)


class EmissionTarget(str, enum.Enum):
    CLASS = "class"
    ROLES = "roles"
    USER = "user"
    ALL = "all"


@dataclass(frozen=True, slots=True)
class Emission:
    """A notification waiting for its transaction to commit."""

    target: EmissionTarget
    event: RealtimeEvent
    payload: Any
    class_id: str | None = None
    user_id: str | None = None
    roles: tuple[Role, ...] = ()

    async def deliver(self, gateway: BroadcastGateway) -> int:
        if self.target is EmissionTarget.CLASS:
            assert self.class_id is not None
            return await gateway.emit_to_class(self.class_id, self.payload, self.event)
        if self.target is EmissionTarget.ROLES:
            return await gateway.emit_to_roles(self.payload, self.roles, self.event)
        if self.target is EmissionTarget.USER:
            assert self.user_id is not None
            return await gateway.emit_to_user(self.user_id, self.payload, self.event)
        return await gateway.emit_to_all(self.payload, self.event)


class Outbox:
    """Ordered list of pending emissions for one unit of work."""

    def __init__(self) -> None:
        self._pending: list[Emission] = []

    @property
    def pending(self) -> tuple[Emission, ...]:
        return tuple(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def to_class(self, class_id: str, payload: Any, event: RealtimeEvent) -> None:
        self._pending.append(
            Emission(EmissionTarget.CLASS, event, payload, class_id=class_id)
        )

    def to_roles(self, payload: Any, roles: Iterable[Role], event: RealtimeEvent) -> None:
        targets = tuple(sorted(set(roles), key=lambda role: role.value))
        if not targets:
            return
        self._pending.append(Emission(EmissionTarget.ROLES, event, payload, roles=targets))

    def to_user(self, user_id: str, payload: Any, event: RealtimeEvent) -> None:
        self._pending.append(Emission(EmissionTarget.USER, event, payload, user_id=user_id))

    def to_all(self, payload: Any, event: RealtimeEvent) -> None:
        self._pending.append(Emission(EmissionTarget.ALL, event, payload))

    def discard(self) -> None:
        self._pending.clear()

    async def flush(self, gateway: BroadcastGateway) -> int:
        """Deliver pending emissions in order; failures are logged, not raised."""

        emissions, self._pending = self._pending, []
        delivered = 0
        for emission in emissions:
            try:
                delivered += await emission.deliver(gateway)
            except Exception:
                logger.warning(
                    "realtime.outbox.delivery_failed",
                    extra=log_context(
                        event=event_name(emission.event),
                        target=emission.target.value,
                        class_id=emission.class_id,
                        recipient_id=emission.user_id,
                    ),
                    exc_info=True,
                )
        return delivered


@asynccontextmanager
async def committed(
    session: AsyncSession,
    gateway: BroadcastGateway | None,
) -> AsyncIterator[Outbox]:
    """Yield an outbox, commit ``session`` and only then deliver its emissions.

    Any exception inside the block rolls the session back, discards the
    outbox and propagates.
    """

    outbox = Outbox()
    try:
        yield outbox
        await session.commit()
    except BaseException:
        outbox.discard()
        await session.rollback()
        raise
    if gateway is not None:
        await outbox.flush(gateway)


__all__ = ["Emission", "EmissionTarget", "Outbox", "committed"]
