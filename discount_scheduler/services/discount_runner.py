"""
Discount runner: the tick state machine and the emergency stop.

A tick runs two passes over due jobs, each capped at ``batch_size`` so a
single invocation stays inside the caller's execution-time budget:

- Activation (pending -> active): read the variant's prices, write the
  discounted price, remember what was there before.
- Reversion (active -> completed): write the remembered prices back.

Activation reads prices with bounded, unordered concurrency, then writes
and records one job at a time. At most one job can have a discounted price
live at the store while its record still says pending, so an aborted tick
never leaves a batch of variants to be discounted twice. Reversion writes
fan out and are recorded afterwards, since restoring a price twice is
harmless. A job is only marked active/completed once its price write has
succeeded. A failing job is logged and left in its current status for the
next tick to retry; it never blocks the rest of the batch. Database
failures are not per-job and abort the whole tick.

Overlapping ticks are only guarded within a process (``lock``). Two
processes ticking at once can apply the same job twice.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from discount_scheduler.core.datetime_utils import utc_now
from discount_scheduler.core.logging import get_logger
from discount_scheduler.models.discount_job import DiscountJob
from discount_scheduler.services import job_store
from discount_scheduler.services.price_store import BasePriceStore, VariantPrice
from discount_scheduler.services.pricing import discounted_price

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 20
DEFAULT_CONCURRENCY = 5

T = TypeVar("T")


@dataclass
class TickLog:
    """Outcome of one tick."""

    started: int = 0
    reverted: int = 0
    errors: list[str] = field(default_factory=list)
    skipped: bool = False


@dataclass
class RevertResult:
    """Outcome of reverting a single job during an emergency stop."""

    job_id: str
    variant_id: str
    success: bool
    error: str | None = None


@dataclass
class EmergencyStopResult:
    """Outcome of an emergency stop."""

    cancelled_future_jobs: int = 0
    reverted_active_jobs: int = 0
    errors: list[str] = field(default_factory=list)
    results: list[RevertResult] = field(default_factory=list)


def _describe(job: DiscountJob, error: Exception) -> str:
    return f"[{job.variant_id}] {error}"


async def _fan_out(
    jobs: Sequence[DiscountJob],
    fn: Callable[[DiscountJob], Awaitable[T]],
    concurrency: int,
) -> list[tuple[DiscountJob, T | Exception]]:
    """Run fn over jobs with at most `concurrency` in flight; failures are returned, not raised."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run(job: DiscountJob) -> tuple[DiscountJob, T | Exception]:
        async with semaphore:
            try:
                return job, await fn(job)
            except Exception as e:
                return job, e

    return list(await asyncio.gather(*(_run(job) for job in jobs)))


async def apply_discount(
    price_store: BasePriceStore,
    job: DiscountJob,
    current: VariantPrice,
) -> None:
    """Write the discounted price for one variant, computed from the prices just read."""
    change = discounted_price(current.price, current.compare_at_price, job.discount_percent)
    await price_store.write_price(job.variant_id, change.price, change.compare_at_price)

    logger.bind(
        variant_id=job.variant_id,
        original_price=current.price,
        original_compare_at=current.compare_at_price,
        new_price=change.price,
        compare_at_price=change.compare_at_price,
    ).info("discount_applied")


async def restore_price(price_store: BasePriceStore, job: DiscountJob) -> None:
    """Write a job's original prices back, clearing compare-at if there was none."""
    if not job.original_price:
        raise ValueError(f"No original price found for {job.variant_id}")

    await price_store.write_price(job.variant_id, job.original_price, job.original_compare_at)
    logger.bind(
        variant_id=job.variant_id,
        price=job.original_price,
        compare_at_price=job.original_compare_at,
    ).info("discount_reverted")


async def _activation_failed(
    db: AsyncSession, job: DiscountJob, error: Exception, errors: list[str]
) -> None:
    message = _describe(job, error)
    logger.bind(job_id=str(job.id), variant_id=job.variant_id, error=str(error)).error(
        "discount_activation_failed"
    )
    errors.append(message)
    await job_store.record_job_error(db, job, message)


async def activate_due_jobs(
    db: AsyncSession,
    price_store: BasePriceStore,
    now: datetime,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> tuple[int, list[str]]:
    """
    Pass A: move due pending jobs to active. Returns (activated, errors).

    Reads fan out; each write is followed by that job's commit before the
    next write starts.
    """
    jobs = await job_store.get_jobs_to_activate(db, now, batch_size)
    if not jobs:
        return 0, []

    reads = await _fan_out(jobs, lambda job: price_store.read_price(job.variant_id), concurrency)

    activated = 0
    errors: list[str] = []
    for job, current in reads:
        if isinstance(current, Exception):
            await _activation_failed(db, job, current, errors)
            continue

        try:
            await apply_discount(price_store, job, current)
        except Exception as e:
            await _activation_failed(db, job, e, errors)
            continue

        await job_store.mark_active(db, job, current.price, current.compare_at_price)
        activated += 1

    return activated, errors


async def revert_jobs(
    db: AsyncSession,
    price_store: BasePriceStore,
    jobs: Sequence[DiscountJob],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[RevertResult]:
    """Restore prices for the given active jobs and complete the ones that succeeded."""
    outcomes = await _fan_out(jobs, lambda job: restore_price(price_store, job), concurrency)

    results: list[RevertResult] = []
    for job, outcome in outcomes:
        if isinstance(outcome, Exception):
            message = _describe(job, outcome)
            logger.bind(
                job_id=str(job.id), variant_id=job.variant_id, error=str(outcome)
            ).error("discount_revert_failed")
            await job_store.record_job_error(db, job, message)
            results.append(
                RevertResult(
                    job_id=str(job.id), variant_id=job.variant_id, success=False, error=message
                )
            )
            continue

        await job_store.mark_completed(db, job)
        results.append(RevertResult(job_id=str(job.id), variant_id=job.variant_id, success=True))

    return results


async def revert_due_jobs(
    db: AsyncSession,
    price_store: BasePriceStore,
    now: datetime,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> tuple[int, list[str]]:
    """Pass B: move expired active jobs to completed. Returns (reverted, errors)."""
    jobs = await job_store.get_jobs_to_revert(db, now, batch_size)
    if not jobs:
        return 0, []

    results = await revert_jobs(db, price_store, jobs, concurrency)
    reverted = sum(1 for r in results if r.success)
    errors = [r.error for r in results if r.error]
    return reverted, errors


async def run_tick(
    db: AsyncSession,
    price_store: BasePriceStore,
    now: datetime | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    concurrency: int = DEFAULT_CONCURRENCY,
    trigger: str = "cron",
    lock: asyncio.Lock | None = None,
) -> TickLog:
    """
    Run one scheduler tick: activation pass, then reversion pass.

    Args:
        db: Database session
        price_store: Price store to read and write variant prices
        now: Reference time (naive UTC), defaults to the current time
        batch_size: Max jobs handled per pass
        concurrency: Max price store calls in flight per pass
        trigger: Label recorded in the tick history
        lock: Per-process guard; a tick that finds it held is skipped

    Returns:
        TickLog with activated/reverted counts and per-job errors

    Raises:
        PersistenceError: If the job store fails; the tick is aborted
    """
    if lock is not None:
        if lock.locked():
            logger.bind(trigger=trigger).warning("tick_skipped_already_running")
            return TickLog(skipped=True)
        async with lock:
            return await run_tick(db, price_store, now, batch_size, concurrency, trigger)

    started_at = utc_now()
    now = now or started_at

    log = TickLog()
    log.started, activation_errors = await activate_due_jobs(
        db, price_store, now, batch_size, concurrency
    )
    log.errors.extend(activation_errors)

    log.reverted, revert_errors = await revert_due_jobs(
        db, price_store, now, batch_size, concurrency
    )
    log.errors.extend(revert_errors)

    await job_store.record_tick_run(
        db,
        trigger=trigger,
        started_at=started_at,
        activated=log.started,
        reverted=log.reverted,
        errors=log.errors,
    )

    if log.started or log.reverted or log.errors:
        logger.bind(
            trigger=trigger,
            started=log.started,
            reverted=log.reverted,
            errors=len(log.errors),
        ).info("tick_completed")
    else:
        logger.bind(trigger=trigger).debug("tick_no_due_jobs")

    return log


async def end_all(
    db: AsyncSession,
    price_store: BasePriceStore,
    concurrency: int = DEFAULT_CONCURRENCY,
    trigger: str = "end_all",
) -> EmergencyStopResult:
    """
    Emergency stop: cancel every pending job and revert every active one now.

    Pending jobs are completed in one bulk update with no price store calls.
    Active jobs get the same restoration as the reversion pass, without
    waiting for their end time and without a batch cap.

    Raises:
        PersistenceError: If the job store fails
    """
    started_at = utc_now()

    cancelled = await job_store.cancel_pending_jobs(db)
    active_jobs = await job_store.get_active_jobs(db)
    results = await revert_jobs(db, price_store, active_jobs, concurrency)

    result = EmergencyStopResult(
        cancelled_future_jobs=cancelled,
        reverted_active_jobs=sum(1 for r in results if r.success),
        errors=[r.error for r in results if r.error],
        results=results,
    )

    await job_store.record_tick_run(
        db,
        trigger=trigger,
        started_at=started_at,
        reverted=result.reverted_active_jobs,
        cancelled=result.cancelled_future_jobs,
        errors=result.errors,
    )

    logger.bind(
        cancelled=result.cancelled_future_jobs,
        reverted=result.reverted_active_jobs,
        failed=len(result.errors),
    ).warning("emergency_stop_completed")
    return result
