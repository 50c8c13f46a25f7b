"""
Discount scheduler CLI - run ticks and manage jobs without the HTTP API.

Usage:
    discounts --help                  Show all commands
    discounts tick                    Run one scheduler tick
    discounts end-all                 Cancel pending jobs and revert active ones
    discounts schedule 111 222 -d 15 --start 2026-11-27T00:00:00Z --end 2026-11-30T23:59:00Z
    discounts list                    Show pending and active jobs
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import typer
from sqlalchemy.ext.asyncio import AsyncSession

from discount_scheduler.core.errors import DiscountSchedulerError
from discount_scheduler.services.price_store import BasePriceStore, build_price_store

app = typer.Typer(
    name="discounts",
    help="Discount scheduler CLI - scheduled price discounts for Shopify",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


@asynccontextmanager
async def _runtime() -> AsyncGenerator[tuple[AsyncSession, BasePriceStore], None]:
    """Engine, session and price store for one CLI invocation, released on exit."""
    from discount_scheduler.config import get_settings
    from discount_scheduler.core.database import build_engine, build_session_factory

    settings = get_settings()
    engine = build_engine(settings.database_url)
    try:
        async with httpx.AsyncClient(timeout=settings.price_store_timeout) as http_client:
            async with build_session_factory(engine)() as db:
                yield db, build_price_store(http_client, settings)
    finally:
        await engine.dispose()


def _run(coro) -> None:
    """Run a command coroutine, turning domain errors into a non-zero exit."""
    from discount_scheduler.core.logging import setup_logging

    setup_logging()
    try:
        asyncio.run(coro)
    except DiscountSchedulerError as e:
        _print_error(str(e))
        raise typer.Exit(code=1) from e


@app.command()
def tick():
    """Run one scheduler tick (start due discounts, revert expired ones)."""
    from discount_scheduler.config import get_config
    from discount_scheduler.services.discount_runner import run_tick

    async def _tick() -> None:
        config = get_config()
        async with _runtime() as (db, price_store):
            log = await run_tick(
                db,
                price_store,
                batch_size=config.runner.batch_size,
                concurrency=config.runner.activation_concurrency,
                trigger="cli",
            )
        _print_success(f"Started {log.started}, reverted {log.reverted}")
        for error in log.errors:
            _print_warning(error)

    _run(_tick())


@app.command("end-all")
def end_all_command(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Emergency stop: cancel all pending jobs and revert all active discounts now."""
    from discount_scheduler.config import get_config
    from discount_scheduler.services.discount_runner import end_all

    if not yes:
        typer.confirm("Cancel every scheduled discount and revert active ones?", abort=True)

    async def _end_all() -> None:
        config = get_config()
        async with _runtime() as (db, price_store):
            result = await end_all(db, price_store, concurrency=config.runner.activation_concurrency)
        _print_success(
            f"Cancelled {result.cancelled_future_jobs}, reverted {result.reverted_active_jobs}"
        )
        for error in result.errors:
            _print_warning(error)

    _run(_end_all())


@app.command()
def schedule(
    variant_ids: list[str] = typer.Argument(..., help="Variant IDs to discount"),
    discount: float = typer.Option(..., "--discount", "-d", help="Discount percentage"),
    start: str = typer.Option(..., "--start", help="Start time (ISO8601)"),
    end: str = typer.Option(..., "--end", help="End time (ISO8601)"),
):
    """Schedule a discount window for one or more variants."""
    from discount_scheduler.core.datetime_utils import parse_iso_datetime
    from discount_scheduler.services import job_store

    try:
        start_time = parse_iso_datetime(start)
        end_time = parse_iso_datetime(end)
    except ValueError as e:
        _print_error(f"Invalid date: {e}")
        raise typer.Exit(code=2) from e

    async def _schedule() -> None:
        async with _runtime() as (db, _):
            count = await job_store.create_jobs(db, variant_ids, discount, start_time, end_time)
        _print_success(f"Successfully scheduled {count} items.")

    _run(_schedule())


@app.command("list")
def list_command():
    """Show pending and active jobs."""
    from discount_scheduler.services import job_store

    async def _list() -> None:
        async with _runtime() as (db, _):
            jobs = await job_store.get_open_jobs(db)
        if not jobs:
            typer.echo("No pending or active jobs.")
            return
        for job in jobs:
            typer.echo(
                f"{job.status.value:<8} {job.variant_id:<16} -{job.discount_percent:g}%  "
                f"{job.start_time:%Y-%m-%d %H:%M} -> {job.end_time:%Y-%m-%d %H:%M}"
                + (f"  (was {job.original_price})" if job.original_price else "")
            )

    _run(_list())


if __name__ == "__main__":
    app()
