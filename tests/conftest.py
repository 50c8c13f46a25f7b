"""
Pytest configuration and fixtures for discount scheduler tests.

Provides:
- Async test database with SQLite
- In-memory price store standing in for Shopify
- Test client for API testing
- Factory fixtures for creating discount jobs
"""

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from discount_scheduler.config import Settings, get_settings
from discount_scheduler.core.database import get_db
from discount_scheduler.core.datetime_utils import utc_now
from discount_scheduler.core.errors import UpstreamError
from discount_scheduler.core.security import SharedSecretChecker
from discount_scheduler.main import app
from discount_scheduler.models import Base
from discount_scheduler.models.discount_job import DiscountJob, JobStatus
from discount_scheduler.services.price_store import BasePriceStore, VariantDetails, VariantPrice

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CRON_SECRET = "test-cron-secret"


# Override settings for testing
class TestSettings(Settings):
    database_url: str = TEST_DATABASE_URL
    debug: bool = True
    shop_domain: str = "test-shop.myshopify.com"
    shopify_token: str = "shpat_test"
    cron_secret: str = CRON_SECRET


class FakePriceStore(BasePriceStore):
    """In-memory catalog that records every write."""

    provider_name = "fake"

    def __init__(self) -> None:
        self.prices: dict[str, VariantPrice] = {}
        self.details: dict[str, VariantDetails] = {}
        self.writes: list[tuple[str, str, str | None]] = []
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()
        self.fail_details = False

    def set_price(self, variant_id: str, price: str, compare_at_price: str | None = None) -> None:
        self.prices[variant_id] = VariantPrice(price=price, compare_at_price=compare_at_price)

    async def read_price(self, variant_id: str) -> VariantPrice:
        if variant_id in self.fail_reads or variant_id not in self.prices:
            raise UpstreamError("Fetch failed: HTTP 404", variant_id)
        return self.prices[variant_id]

    async def write_price(self, variant_id: str, price: str, compare_at_price: str | None) -> None:
        if variant_id in self.fail_writes:
            raise UpstreamError("Update failed: HTTP 500", variant_id)
        self.writes.append((variant_id, price, compare_at_price))
        self.prices[variant_id] = VariantPrice(price=price, compare_at_price=compare_at_price)

    async def fetch_variant_details(self, variant_ids: list[str]) -> dict[str, VariantDetails]:
        if self.fail_details:
            raise UpstreamError("Details failed: HTTP 503")
        return {v: self.details[v] for v in variant_ids if v in self.details}


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def price_store() -> FakePriceStore:
    """Fresh in-memory price store."""
    return FakePriceStore()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, price_store: FakePriceStore
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database and price store overrides."""
    from discount_scheduler.core.rate_limit import limiter

    async def override_get_db():
        yield db_session

    def override_get_settings():
        return TestSettings()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = override_get_settings

    # ASGITransport doesn't run the lifespan, so wire app state by hand
    app.state.price_store = price_store
    app.state.credential_checker = SharedSecretChecker(CRON_SECRET)
    app.state.tick_lock = asyncio.Lock()

    # Reset rate limiter storage before each test
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def job_factory(db_session: AsyncSession):
    """Factory for creating discount jobs."""

    async def _create_job(
        variant_id: str = "1001",
        discount_percent: float = 10.0,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        status: JobStatus = JobStatus.PENDING,
        original_price: str | None = None,
        original_compare_at: str | None = None,
    ) -> DiscountJob:
        now = utc_now()
        job = DiscountJob(
            variant_id=variant_id,
            discount_percent=discount_percent,
            start_time=start_time or now - timedelta(minutes=5),
            end_time=end_time or now + timedelta(hours=1),
            status=status,
            original_price=original_price,
            original_compare_at=original_compare_at,
        )
        db_session.add(job)
        await db_session.commit()
        return job

    return _create_job
