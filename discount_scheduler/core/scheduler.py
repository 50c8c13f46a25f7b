"""
APScheduler integration for FastAPI.

Optional in-process timer for deployments without an external cron service.
When enabled, it runs the same tick as GET /api/cron on a cron schedule
(every minute by default) and shares the application's tick lock, so an
HTTP-triggered tick and a timer tick in the same process never overlap.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from apscheduler import AsyncScheduler, ConflictPolicy
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from discount_scheduler.config import get_config, get_settings
from discount_scheduler.core.logging import get_logger
from discount_scheduler.services.price_store import BasePriceStore

logger = get_logger(__name__)


@dataclass
class TickContext:
    """Resources the timer tick borrows from the application lifespan."""

    session_factory: async_sessionmaker[AsyncSession]
    price_store: BasePriceStore
    lock: asyncio.Lock


# Set while the scheduler is running
scheduler: AsyncScheduler | None = None
_tick_context: TickContext | None = None


async def discount_tick_job() -> None:
    """Timer tick - activates and reverts due discounts."""
    from discount_scheduler.services.discount_runner import run_tick

    if _tick_context is None:
        logger.warning("discount_tick_without_context")
        return

    config = get_config()
    async with _tick_context.session_factory() as db:
        try:
            await run_tick(
                db,
                _tick_context.price_store,
                batch_size=config.runner.batch_size,
                concurrency=config.runner.activation_concurrency,
                trigger="scheduler",
                lock=_tick_context.lock,
            )
        except Exception as e:
            logger.bind(error=str(e)).error("scheduled_discount_tick_failed")
            raise  # Re-raise so APScheduler records the failure


async def start_scheduler(context: TickContext) -> AsyncScheduler | None:
    """Initialize and start the in-process timer if enabled."""
    global scheduler, _tick_context

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    config = get_config()
    _tick_context = context

    # Schedules are rebuilt on every start, nothing to persist
    scheduler = AsyncScheduler(data_store=MemoryDataStore())

    # Start the scheduler first (required before calling other methods in APScheduler 4.x)
    await scheduler.__aenter__()

    await scheduler.add_schedule(
        discount_tick_job,
        CronTrigger(minute=config.runner.tick_cron),
        id="discount_tick",
        conflict_policy=ConflictPolicy.replace,
    )

    # Start the scheduler's background worker to actually process jobs
    await scheduler.start_in_background()

    logger.bind(tick_cron=config.runner.tick_cron).info("scheduler_started")
    return scheduler


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global scheduler, _tick_context
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None
    _tick_context = None


async def get_job_schedules() -> list[dict[str, Any]]:
    """Get all registered timer schedules."""
    if not scheduler:
        return []

    schedules = await scheduler.get_schedules()
    return [
        {
            "id": s.id,
            "task_id": s.task_id,
            "trigger": str(s.trigger),
            "next_fire_time": s.next_fire_time.isoformat() if s.next_fire_time else None,
            "last_fire_time": s.last_fire_time.isoformat() if s.last_fire_time else None,
        }
        for s in schedules
    ]
