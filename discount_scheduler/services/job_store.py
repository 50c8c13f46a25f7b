"""Job record store for scheduled discounts.

All reads and writes of ``DiscountJob`` go through here. Database failures
are rolled back and re-raised as PersistenceError so request handlers can
answer 500 without leaking driver exceptions.

Status changes commit immediately, one job at a time: a tick that dies
halfway leaves the jobs it already processed recorded, and the rest are
picked up again by the next tick.
"""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from discount_scheduler.core.datetime_utils import to_naive_utc, utc_now
from discount_scheduler.core.errors import PersistenceError, ValidationError
from discount_scheduler.core.logging import get_logger
from discount_scheduler.models.discount_job import DiscountJob, JobStatus
from discount_scheduler.models.tick_run import TickRun

logger = get_logger(__name__)


async def _commit(db: AsyncSession, operation: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.bind(operation=operation, error=str(e)).error("job_store_commit_failed")
        raise PersistenceError(f"{operation} failed: {e}") from e


async def create_jobs(
    db: AsyncSession,
    variant_ids: Sequence[str] | None,
    discount_percent: float,
    start_time: datetime,
    end_time: datetime,
) -> int:
    """
    Create one pending job per variant in a single batch insert.

    Re-scheduling a variant creates a second, independent job.

    Args:
        db: Database session
        variant_ids: Variants to discount
        discount_percent: Merchant discount percentage
        start_time: When the discount starts
        end_time: When the original price is restored

    Returns:
        Number of jobs created

    Raises:
        ValidationError: If no variant ids were given
    """
    if not variant_ids:
        raise ValidationError("No variant IDs provided.")

    start = to_naive_utc(start_time)
    end = to_naive_utc(end_time)
    jobs = [
        DiscountJob(
            variant_id=str(variant_id),
            discount_percent=discount_percent,
            start_time=start,
            end_time=end,
            status=JobStatus.PENDING,
        )
        for variant_id in variant_ids
    ]
    db.add_all(jobs)
    await _commit(db, "create_jobs")

    logger.bind(
        count=len(jobs),
        discount_percent=discount_percent,
        start_time=start.isoformat(),
        end_time=end.isoformat(),
    ).info("discount_jobs_scheduled")
    return len(jobs)


async def _select_jobs(db: AsyncSession, query) -> list[DiscountJob]:
    try:
        result = await db.execute(query)
    except SQLAlchemyError as e:
        logger.bind(error=str(e)).error("job_store_query_failed")
        raise PersistenceError(f"Job query failed: {e}") from e
    return list(result.scalars().all())


async def get_jobs_to_activate(db: AsyncSession, now: datetime, limit: int) -> list[DiscountJob]:
    """Pending jobs whose start time has passed, oldest first."""
    return await _select_jobs(
        db,
        select(DiscountJob)
        .where(DiscountJob.start_time <= now, DiscountJob.status == JobStatus.PENDING)
        .order_by(DiscountJob.start_time)
        .limit(limit),
    )


async def get_jobs_to_revert(db: AsyncSession, now: datetime, limit: int) -> list[DiscountJob]:
    """Active jobs whose end time has passed, oldest first."""
    return await _select_jobs(
        db,
        select(DiscountJob)
        .where(DiscountJob.end_time <= now, DiscountJob.status == JobStatus.ACTIVE)
        .order_by(DiscountJob.end_time)
        .limit(limit),
    )


async def get_active_jobs(db: AsyncSession) -> list[DiscountJob]:
    """Every active job, regardless of end time."""
    return await _select_jobs(
        db,
        select(DiscountJob)
        .where(DiscountJob.status == JobStatus.ACTIVE)
        .order_by(DiscountJob.end_time),
    )


async def get_open_jobs(db: AsyncSession) -> list[DiscountJob]:
    """Pending and active jobs ordered by start time."""
    return await _select_jobs(
        db,
        select(DiscountJob)
        .where(DiscountJob.status.in_([JobStatus.PENDING, JobStatus.ACTIVE]))
        .order_by(DiscountJob.start_time),
    )


async def mark_active(
    db: AsyncSession,
    job: DiscountJob,
    original_price: str,
    original_compare_at: str | None,
) -> None:
    """Record the pre-discount prices and move a job to active."""
    job.original_price = original_price
    job.original_compare_at = original_compare_at
    job.status = JobStatus.ACTIVE
    job.last_error = None
    await _commit(db, "mark_active")


async def mark_completed(db: AsyncSession, job: DiscountJob) -> None:
    """Move an active job to completed after its prices were restored."""
    job.status = JobStatus.COMPLETED
    job.last_error = None
    await _commit(db, "mark_completed")


async def record_job_error(db: AsyncSession, job: DiscountJob, message: str) -> None:
    """Keep the latest failure on the job without touching its status."""
    job.last_error = message
    await _commit(db, "record_job_error")


async def cancel_pending_jobs(db: AsyncSession) -> int:
    """Complete every pending job in one bulk update. Returns the count."""
    try:
        result = await db.execute(
            update(DiscountJob)
            .where(DiscountJob.status == JobStatus.PENDING)
            .values(status=JobStatus.COMPLETED, updated_at=utc_now())
        )
    except SQLAlchemyError as e:
        await db.rollback()
        logger.bind(error=str(e)).error("job_store_cancel_failed")
        raise PersistenceError(f"cancel_pending_jobs failed: {e}") from e

    cancelled = result.rowcount or 0
    await _commit(db, "cancel_pending_jobs")
    return cancelled


async def record_tick_run(
    db: AsyncSession,
    trigger: str,
    started_at: datetime,
    activated: int = 0,
    reverted: int = 0,
    cancelled: int = 0,
    errors: list[str] | None = None,
) -> TickRun:
    """Append a tick to the run history."""
    run = TickRun(
        trigger=trigger,
        started_at=started_at,
        finished_at=utc_now(),
        activated=activated,
        reverted=reverted,
        cancelled=cancelled,
        errors_json=list(errors or []),
    )
    db.add(run)
    await _commit(db, "record_tick_run")
    return run
