"""Schemas for maintenance tick reports."""

from __future__ import annotations

from schoolhub_api.common.schema import BaseSchema, UtcDatetime

from .scheduler import TickReport
from .tasks import TaskCategory


class TaskOutcomeOut(BaseSchema):
    category: TaskCategory
    affected: int
    error: str | None = None


class TickReportOut(BaseSchema):
    started_at: UtcDatetime
    skipped: bool
    outcomes: list[TaskOutcomeOut]

    @classmethod
    def from_report(cls, report: TickReport) -> TickReportOut:
        return cls(
            started_at=report.started_at,
            skipped=report.skipped,
            outcomes=[
                TaskOutcomeOut(
                    category=outcome.category,
                    affected=outcome.affected,
                    error=outcome.error,
                )
                for outcome in report.outcomes
            ],
        )


__all__ = ["TaskOutcomeOut", "TickReportOut"]
