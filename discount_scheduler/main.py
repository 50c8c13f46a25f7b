import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from discount_scheduler.api.router import api_router
from discount_scheduler.config import get_settings
from discount_scheduler.core.database import build_engine, build_session_factory
from discount_scheduler.core.errors import register_exception_handlers
from discount_scheduler.core.logging import get_logger, setup_logging
from discount_scheduler.core.rate_limit import limiter, rate_limit_exceeded_handler
from discount_scheduler.core.scheduler import TickContext, start_scheduler, stop_scheduler
from discount_scheduler.core.security import SharedSecretChecker
from discount_scheduler.services.price_store import build_price_store

logger = get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build per-process resources on startup and release them on shutdown."""
    setup_logging()

    engine = build_engine(settings.database_url, echo=settings.debug)
    app.state.session_factory = build_session_factory(engine)
    app.state.credential_checker = SharedSecretChecker(settings.cron_secret)
    app.state.tick_lock = asyncio.Lock()

    async with httpx.AsyncClient(timeout=settings.price_store_timeout) as http_client:
        app.state.price_store = build_price_store(http_client, settings)
        await start_scheduler(
            TickContext(
                session_factory=app.state.session_factory,
                price_store=app.state.price_store,
                lock=app.state.tick_lock,
            )
        )
        logger.bind(shop=settings.shop_domain).info("app_started")
        try:
            yield
        finally:
            await stop_scheduler()
            await engine.dispose()
            logger.info("app_stopped")


app = FastAPI(
    title="Discount Scheduler",
    description="Scheduled price discounts for a Shopify storefront",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# The theme editor calls from the shop's own domain
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)

# Include API routes
app.include_router(api_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root check."""
    return {"message": "Price Scheduler API is running!"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}
