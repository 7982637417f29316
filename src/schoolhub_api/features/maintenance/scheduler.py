"""Background scheduling for maintenance ticks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from schoolhub_api.common.logging import log_context
from schoolhub_api.common.time import utc_now
from schoolhub_api.db.session import get_sessionmaker
from schoolhub_api.realtime.gateway import BroadcastGateway
from schoolhub_api.realtime.outbox import Outbox, committed
from schoolhub_api.settings import Settings, get_settings

from .tasks import (
    TaskCategory,
    archive_announcements,
    complete_events,
    delete_announcements,
)

logger = logging.getLogger(__name__)

TaskFn = Callable[[AsyncSession, Outbox, datetime], Awaitable[int]]


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    category: TaskCategory
    affected: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class TickReport:
    """Result of one maintenance pass."""

    started_at: datetime
    skipped: bool = False
    outcomes: list[TaskOutcome] = field(default_factory=list)

    def outcome(self, category: TaskCategory) -> TaskOutcome | None:
        for outcome in self.outcomes:
            if outcome.category is category:
                return outcome
        return None

    @property
    def failed(self) -> list[TaskCategory]:
        return [outcome.category for outcome in self.outcomes if not outcome.succeeded]


class ScheduledTaskRunner:
    """Run the maintenance categories on a fixed interval.

    Ticks never overlap: a tick that starts while another is still running
    is skipped. Every category commits in its own session, and a failing
    category is logged without stopping the ones after it.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        gateway: BroadcastGateway | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session_factory = session_factory or get_sessionmaker(self._settings)
        self._gateway = gateway
        self._enabled = self._settings.scheduler_enabled
        self._interval = self._settings.scheduler_interval.total_seconds()
        self._run_on_startup = self._settings.scheduler_run_on_startup
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    @property
    def tick_in_progress(self) -> bool:
        return self._lock.locked()

    def _categories(self) -> list[tuple[TaskCategory, TaskFn]]:
        archive_after = self._settings.announcement_archive_after
        delete_after = self._settings.announcement_delete_after
        # Rows must stay archived for the gap between the two ages before deletion.
        archived_for = max(delete_after - archive_after, timedelta(0))

        async def _complete(session: AsyncSession, outbox: Outbox, now: datetime) -> int:
            return await complete_events(session, outbox, now=now)

        async def _archive(session: AsyncSession, outbox: Outbox, now: datetime) -> int:
            return await archive_announcements(session, outbox, now=now, older_than=archive_after)

        async def _delete(session: AsyncSession, outbox: Outbox, now: datetime) -> int:
            return await delete_announcements(
                session,
                outbox,
                now=now,
                older_than=delete_after,
                archived_for=archived_for,
            )

        return [
            (TaskCategory.EVENT_COMPLETION, _complete),
            (TaskCategory.ANNOUNCEMENT_ARCHIVAL, _archive),
            (TaskCategory.ANNOUNCEMENT_DELETION, _delete),
        ]

    async def start(self) -> None:
        """Spawn the background loop when enabled."""

        if not self._enabled:
            logger.info("maintenance.scheduler.disabled")
            return

        if self._interval <= 0:
            logger.warning(
                "maintenance.scheduler.invalid_interval",
                extra=log_context(interval_seconds=self._interval),
            )
            return

        if self._task is not None:
            return

        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        logger.info(
            "maintenance.scheduler.started",
            extra=log_context(interval_seconds=self._interval),
        )

    async def stop(self) -> None:
        """Signal the background loop to exit and wait for completion."""

        if self._task is None or self._stop_event is None:
            return

        self._stop_event.set()
        task = self._task
        try:
            await task
        finally:
            self._task = None
            self._stop_event = None
            logger.info("maintenance.scheduler.stopped")

    async def _run(self) -> None:
        assert self._stop_event is not None

        try:
            if self._run_on_startup:
                await self.run_once()

            while True:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                    break
                except TimeoutError:
                    await self.run_once()
        except Exception:  # pragma: no cover - defensive logging
            logger.exception("maintenance.scheduler.crashed")
        finally:
            self._task = None

    async def run_once(self, now: datetime | None = None) -> TickReport:
        """Run every category once, in order; skip if a tick is already running."""

        started_at = now or utc_now()
        if self._lock.locked():
            logger.warning(
                "maintenance.tick.skipped",
                extra=log_context(started_at=started_at.isoformat()),
            )
            return TickReport(started_at=started_at, skipped=True)

        async with self._lock:
            report = TickReport(started_at=started_at)
            for category, task in self._categories():
                report.outcomes.append(await self._run_category(category, task, started_at))

        logger.info(
            "maintenance.tick.completed",
            extra=log_context(
                started_at=started_at.isoformat(),
                **{outcome.category.value: outcome.affected for outcome in report.outcomes},
                failed=[category.value for category in report.failed],
            ),
        )
        return report

    async def _run_category(
        self,
        category: TaskCategory,
        task: TaskFn,
        now: datetime,
    ) -> TaskOutcome:
        try:
            async with self._session_factory() as session:
                async with committed(session, self._gateway) as outbox:
                    affected = await task(session, outbox, now)
        except Exception as exc:
            logger.exception(
                "maintenance.task.failed",
                extra=log_context(category=category.value),
            )
            return TaskOutcome(category=category, error=str(exc) or type(exc).__name__)

        if affected:
            logger.info(
                "maintenance.task.applied",
                extra=log_context(category=category.value, affected=affected),
            )
        return TaskOutcome(category=category, affected=affected)


__all__ = ["ScheduledTaskRunner", "TaskOutcome", "TickReport"]
