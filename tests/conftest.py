import os

# settings are read at import time, so the environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ.setdefault("API_KEY_PEPPER", "test-pepper")
os.environ.setdefault("INTERNAL_ADMIN_KEY", "test-internal-key")

import pytest
import httpx

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

# Import Base + all models so metadata is complete
import marketplace.models  # noqa: F401
from marketplace.models.base import Base

from marketplace.main import app
from marketplace.core.db import get_db
from marketplace.services.rate_limit import RateLimitResult, get_rate_limiter
from marketplace.services.storage import PresignedUpload, get_presigner

from tests.fixtures_seed import (  # noqa: F401
    seed_agency_admin,
    seed_agent,
    seed_brand,
    seed_developer,
    seed_plan,
    seed_super_admin,
)


def _test_db_url() -> str:
    # DATABASE_URL_TEST points the suite at PostgreSQL; in-memory SQLite otherwise
    return os.getenv("DATABASE_URL_TEST", "sqlite+aiosqlite://")


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # one shared connection so every session sees the same in-memory database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


class FakePresigner:
    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    def presign_put(self, *, key: str, content_type: str) -> PresignedUpload:
        self.calls.append((key, content_type))
        return PresignedUpload(
            upload_url=f"https://uploads.test/{key}?X-Amz-Signature=fake",
            key=key,
            public_url=f"https://cdn.test/{key}",
            content_type=content_type,
            expires_in=900,
        )


class FakeRateLimiter:
    def __init__(self, limit: int = 1000):
        self.limit = limit
        self.counts: dict[str, int] = {}

    async def allow(self, *, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        self.counts[key] = self.counts.get(key, 0) + 1
        used = self.counts[key]
        effective = min(limit, self.limit)
        return RateLimitResult(allowed=used <= effective, remaining=max(0, effective - used), reset_seconds=42)


@pytest.fixture
async def async_engine():
    url = _test_db_url()
    engine = create_async_engine(url, **_engine_kwargs(url))
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(async_engine):
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False, class_=AsyncSession)
    async with session_factory() as session:
        yield session


@pytest.fixture
def presigner() -> FakePresigner:
    return FakePresigner()


@pytest.fixture
def rate_limiter() -> FakeRateLimiter:
    return FakeRateLimiter()


@pytest.fixture
async def client(db_session: AsyncSession, presigner: FakePresigner, rate_limiter: FakeRateLimiter):
    """
    HTTP client that uses the test DB session via dependency override.
    S3 and Redis are replaced with in-process fakes.
    """
    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_presigner] = lambda: presigner
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
