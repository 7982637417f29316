"""Administrative trigger for a maintenance tick."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from schoolhub_api.api.deps import get_task_runner
from schoolhub_api.common.logging import log_context
from schoolhub_api.core.auth.principal import Principal
from schoolhub_api.core.http.dependencies import require_roles
from schoolhub_api.core.rbac.types import Role

from .scheduler import ScheduledTaskRunner
from .schemas import TickReportOut

router = APIRouter(prefix="/maintenance", tags=["maintenance"])
logger = logging.getLogger(__name__)


@router.post("/tick", response_model=TickReportOut, summary="Run one maintenance pass now")
async def run_tick(
    principal: Annotated[Principal, Depends(require_roles(Role.ADMIN))],
    runner: Annotated[ScheduledTaskRunner, Depends(get_task_runner)],
) -> TickReportOut:
    logger.info(
        "maintenance.tick.requested",
        extra=log_context(user_id=principal.id, role=principal.role),
    )
    return TickReportOut.from_report(await runner.run_once())


__all__ = ["router"]
