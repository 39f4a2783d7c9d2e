"""Shared pytest fixtures for service and API tests.

Every test gets its own SQLite database file so that concurrent sessions can be
opened against the same store.
"""

import datetime
import logging
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config import Settings, get_settings
from app.database import Base, get_db
from app.dependencies import _service_manager, get_metadata_fetcher
from app.exceptions import FetchFailed
from app.main import app
from app.url_service import URLShorteningService

PRODUCT_PAGE = """
<html>
  <head>
    <meta property="og:title" content="Linen Shirt | HYPD">
    <meta property="og:image" content="https://cdn.hypd.store/images/og.jpg">
  </head>
  <body>
    <h1 class="product-title">Linen Shirt</h1>
    <div class="brand">Visit the Fabindia Store</div>
    <span class="price">MRP ₹1,299.00 incl. of all taxes</span>
    <div class="product-image">
      <img src="placeholder" data-src="//cdn.hypd.store/images/shirt.webp">
    </div>
  </body>
</html>
"""


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime.datetime):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += datetime.timedelta(**kwargs)


class FakeFetcher:
    def __init__(self, markup: str = PRODUCT_PAGE):
        self.markup = markup
        self.error: str | None = None
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if self.error is not None:
            raise FetchFailed(self.error)
        return self.markup


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("urlshortener.tests")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime.datetime(2025, 1, 1, 12, 0, tzinfo=datetime.timezone.utc))


@pytest.fixture
def url_service(db_session, settings, logger, clock) -> URLShorteningService:
    return URLShorteningService(db=db_session, settings=settings, logger=logger, clock=clock)


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def product_url() -> str:
    return "https://www.hypd.store/hypd_store/product/64f1c2e9a7?title=Linen+Shirt"


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, fake_fetcher: FakeFetcher) -> AsyncGenerator[AsyncClient, None]:
    await _service_manager.initialize()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_metadata_fetcher] = lambda: fake_fetcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await _service_manager.cleanup()
