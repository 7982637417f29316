"""Service factories used by API routers.

Routers import their per-request service constructors from here so each
feature module stays free of session, resolver and gateway plumbing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

from schoolhub_api.core.http.dependencies import (
    GatewayDep,
    GuardDep,
    ResolverDep,
    SessionDep,
    SettingsDep,
)

if TYPE_CHECKING:
    from schoolhub_api.features.announcements.service import AnnouncementsService
    from schoolhub_api.features.assignments.service import AssignmentsService
    from schoolhub_api.features.attendance.service import AttendanceService
    from schoolhub_api.features.events.service import EventsService
    from schoolhub_api.features.grades.service import GradesService
    from schoolhub_api.features.maintenance.scheduler import ScheduledTaskRunner
    from schoolhub_api.features.school.service import DirectoryService


def get_announcements_service(
    session: SessionDep,
    resolver: ResolverDep,
    guard: GuardDep,
    gateway: GatewayDep,
) -> AnnouncementsService:
    from schoolhub_api.features.announcements.service import AnnouncementsService

    return AnnouncementsService(session=session, resolver=resolver, guard=guard, gateway=gateway)


def get_events_service(
    session: SessionDep,
    resolver: ResolverDep,
    guard: GuardDep,
    gateway: GatewayDep,
) -> EventsService:
    from schoolhub_api.features.events.service import EventsService

    return EventsService(session=session, resolver=resolver, guard=guard, gateway=gateway)


def get_attendance_service(
    session: SessionDep,
    resolver: ResolverDep,
    guard: GuardDep,
    gateway: GatewayDep,
) -> AttendanceService:
    from schoolhub_api.features.attendance.service import AttendanceService

    return AttendanceService(session=session, resolver=resolver, guard=guard, gateway=gateway)


def get_assignments_service(
    session: SessionDep,
    resolver: ResolverDep,
    guard: GuardDep,
    gateway: GatewayDep,
) -> AssignmentsService:
    from schoolhub_api.features.assignments.service import AssignmentsService

    return AssignmentsService(session=session, resolver=resolver, guard=guard, gateway=gateway)


def get_grades_service(
    session: SessionDep,
    resolver: ResolverDep,
    guard: GuardDep,
) -> GradesService:
    from schoolhub_api.features.grades.service import GradesService

    return GradesService(session=session, resolver=resolver, guard=guard)


def get_directory_service(session: SessionDep, resolver: ResolverDep) -> DirectoryService:
    from schoolhub_api.features.school.service import DirectoryService

    return DirectoryService(session=session, resolver=resolver)


def get_task_runner(
    request: Request,
    settings: SettingsDep,
    gateway: GatewayDep,
) -> ScheduledTaskRunner:
    """Return the app's maintenance runner, creating an idle one if absent."""

    from schoolhub_api.features.maintenance.scheduler import ScheduledTaskRunner

    runner = getattr(request.app.state, "task_runner", None)
    if runner is None:
        runner = ScheduledTaskRunner(settings=settings, gateway=gateway)
        request.app.state.task_runner = runner
    return runner


__all__ = [
    "get_announcements_service",
    "get_assignments_service",
    "get_attendance_service",
    "get_directory_service",
    "get_events_service",
    "get_grades_service",
    "get_task_runner",
]
