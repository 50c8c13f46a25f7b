"""Tick history and timer monitoring endpoints."""

from fastapi import APIRouter, Query
from pydantic import BaseModel
from sqlalchemy import select

from discount_scheduler.core.scheduler import get_job_schedules
from discount_scheduler.dependencies import DBSession
from discount_scheduler.models.tick_run import TickRun
from discount_scheduler.schemas.discount import TickRunResponse

router = APIRouter()


class TimerScheduleResponse(BaseModel):
    """Response model for an in-process timer schedule."""

    id: str
    task_id: str
    trigger: str
    next_fire_time: str | None
    last_fire_time: str | None


@router.get("/runs", response_model=list[TickRunResponse])
async def list_tick_runs(
    db: DBSession,
    trigger: str | None = Query(default=None, description="Filter by trigger"),
    limit: int = Query(default=50, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[TickRunResponse]:
    """
    List tick history, newest first.

    Includes cron ticks, in-process timer ticks, CLI runs and emergency stops.
    """
    query = select(TickRun).order_by(TickRun.started_at.desc())

    if trigger:
        query = query.where(TickRun.trigger == trigger)

    query = query.offset(offset).limit(limit)
    result = await db.execute(query)
    runs = result.scalars().all()

    return [
        TickRunResponse(
            id=run.id,
            trigger=run.trigger,
            started_at=run.started_at,
            finished_at=run.finished_at,
            duration_seconds=(run.finished_at - run.started_at).total_seconds(),
            activated=run.activated,
            reverted=run.reverted,
            cancelled=run.cancelled,
            errors=run.errors_json or [],
        )
        for run in runs
    ]


@router.get("/runs/schedules", response_model=list[TimerScheduleResponse])
async def list_timer_schedules() -> list[TimerScheduleResponse]:
    """List in-process timer schedules (empty when the external cron drives ticks)."""
    schedules = await get_job_schedules()
    return [TimerScheduleResponse(**s) for s in schedules]
