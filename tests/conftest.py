"""Shared test fixtures: in-memory click store, fake locator, app client."""
from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from clicklog.core.config import get_settings
from clicklog.core.deps import get_click_store, get_locator
from clicklog.core.rate_limit import limiter
from clicklog.main import app
from clicklog.models.click import Click
from clicklog.services.click_store import ClickStore
from clicklog.services.geoip import ApproximateLocation

# A single shared connection so every session sees the same in-memory DB
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

MOUNTAIN_VIEW = ApproximateLocation(
    country="US",
    region="CA",
    city="Mountain View",
    latitude=37.386,
    longitude=-122.0838,
    accuracy_km=20,
)


class FakeLocator:
    """Locator returning a fixed answer and remembering what it was asked."""

    def __init__(self, location: ApproximateLocation | None = None):
        self.location = location
        self.calls: list[str | None] = []

    async def lookup(self, ip_address):
        self.calls.append(ip_address)
        return self.location

    def close(self) -> None:
        pass


class FailingStore(ClickStore):
    """Store whose writes always fail like a locked or missing database."""

    def __init__(self):
        self.attempts = 0

    async def add(self, click):
        self.attempts += 1
        raise OperationalError("INSERT INTO clicks", {}, Exception("database is locked"))

    async def enrich(self, click_id, values):
        self.attempts += 1
        raise OperationalError("UPDATE clicks", {}, Exception("database is locked"))


def make_click(click_id: str, created_at: str, **fields) -> Click:
    """Build a click row with sensible capture-time defaults."""
    values = {
        "ip": "203.0.113.7",
        "ip_chain": "",
        "user_agent": "pytest",
        "accept_language": "en",
        "referrer": "",
        "dest_url": "https://example.com/",
    }
    values.update(fields)
    return Click(id=click_id, created_at=created_at, **values)


@pytest.fixture
def settings():
    return get_settings()


@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def store(engine):
    click_store = ClickStore(engine)
    await click_store.migrate()
    return click_store


@pytest.fixture
def locator():
    return FakeLocator(MOUNTAIN_VIEW)


@pytest_asyncio.fixture
async def client(store, locator):
    app.dependency_overrides[get_click_store] = lambda: store
    app.dependency_overrides[get_locator] = lambda: locator
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
