"""API router composition for the SchoolHub FastAPI application."""

from __future__ import annotations

from fastapi import APIRouter

from schoolhub_api.features.announcements.router import router as announcements_router
from schoolhub_api.features.assignments.router import router as assignments_router
from schoolhub_api.features.attendance.router import router as attendance_router
from schoolhub_api.features.events.router import router as events_router
from schoolhub_api.features.grades.router import router as grades_router
from schoolhub_api.features.maintenance.router import router as maintenance_router
from schoolhub_api.features.school.router import router as directory_router

api_router = APIRouter()
api_router.include_router(directory_router)
api_router.include_router(announcements_router)
api_router.include_router(events_router)
api_router.include_router(attendance_router)
api_router.include_router(assignments_router)
api_router.include_router(grades_router)
api_router.include_router(maintenance_router)

__all__ = ["api_router"]
