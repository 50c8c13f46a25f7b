"""Discount scheduling endpoints.

The theme editor section posts schedules here; an external cron service
hits /cron every minute with the shared secret.
"""

from fastapi import APIRouter, Request

from discount_scheduler.core.errors import UpstreamError
from discount_scheduler.core.logging import get_logger
from discount_scheduler.core.rate_limit import limiter, schedule_limit
from discount_scheduler.dependencies import (
    Config,
    DBSession,
    PriceStore,
    TickLock,
    TriggerAuth,
)
from discount_scheduler.schemas.discount import (
    CronLog,
    CronResponse,
    DiscountJobRecord,
    EndAllDetails,
    EndAllResponse,
    JobListItem,
    RevertOutcome,
    ScheduleRequest,
    ScheduleResponse,
)
from discount_scheduler.services import job_store
from discount_scheduler.services.discount_runner import end_all, run_tick

logger = get_logger(__name__)

router = APIRouter()


@router.post("/schedule", response_model=ScheduleResponse)
@limiter.limit(schedule_limit)
async def schedule_discount(
    request: Request,
    body: ScheduleRequest,
    db: DBSession,
) -> ScheduleResponse:
    """
    Schedule a discount window for a batch of variants.

    Creates one pending job per variant. Scheduling a variant twice creates
    two independent jobs.
    """
    count = await job_store.create_jobs(
        db,
        variant_ids=body.variant_ids,
        discount_percent=body.discount,
        start_time=body.start_at,
        end_time=body.end_at,
    )
    return ScheduleResponse(message=f"Successfully scheduled {count} items.")


@router.get("/cron", response_model=CronResponse, dependencies=[TriggerAuth])
async def cron_tick(
    db: DBSession,
    price_store: PriceStore,
    config: Config,
    lock: TickLock,
) -> CronResponse:
    """
    Run one scheduler tick.

    Starts due discounts, then reverts expired ones. Per-job failures are
    reported in the log and retried on the next tick.
    """
    log = await run_tick(
        db,
        price_store,
        batch_size=config.runner.batch_size,
        concurrency=config.runner.activation_concurrency,
        trigger="cron",
        lock=lock,
    )
    return CronResponse(
        skipped=log.skipped,
        log=CronLog(started=log.started, reverted=log.reverted, errors=log.errors),
    )


@router.post("/end-all", response_model=EndAllResponse, dependencies=[TriggerAuth])
async def end_all_discounts(
    db: DBSession,
    price_store: PriceStore,
    config: Config,
) -> EndAllResponse:
    """
    Emergency stop.

    Cancels every pending job and immediately restores prices for every
    active one.
    """
    result = await end_all(db, price_store, concurrency=config.runner.activation_concurrency)
    return EndAllResponse(
        message=(
            f"Cancelled {result.cancelled_future_jobs} scheduled jobs and reverted "
            f"{result.reverted_active_jobs} active discounts."
        ),
        details=EndAllDetails(
            cancelled_future_jobs=result.cancelled_future_jobs,
            reverted_active_jobs=result.reverted_active_jobs,
            errors=result.errors,
            results=[
                RevertOutcome(
                    job_id=r.job_id,
                    variant_id=r.variant_id,
                    success=r.success,
                    error=r.error,
                )
                for r in result.results
            ],
        ),
    )


@router.get("/list-jobs", response_model=list[JobListItem])
async def list_jobs(db: DBSession, price_store: PriceStore) -> list[JobListItem]:
    """
    List pending and active jobs with catalog details.

    If the catalog can't be reached the jobs are still returned, without
    titles, images or current prices.
    """
    jobs = await job_store.get_open_jobs(db)
    if not jobs:
        return []

    try:
        details = await price_store.fetch_variant_details([job.variant_id for job in jobs])
    except UpstreamError as e:
        logger.bind(error=str(e), jobs=len(jobs)).warning("list_jobs_enrichment_failed")
        details = {}

    items = []
    for job in jobs:
        record = DiscountJobRecord.model_validate(job).model_dump()
        info = details.get(job.variant_id)
        if info:
            record.update(
                title=info.title,
                product_title=info.product_title,
                image_url=info.image_url,
                current_price=info.price,
            )
        items.append(JobListItem(**record))

    return items
