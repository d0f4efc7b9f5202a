"""
Wiki Backend: Test Configuration (conftest.py)
==============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped, created fresh for each test):
    test_settings ── Settings pointing at a SQLite file in tmp_path
    └── engine ── pooled async engine (aiosqlite)
        └── page_store ── PageStore with the Pages table created
            └── local_service ── LocalWikiDatabaseService
                └── wiki_service ── proxy bound through event_bus
    event_bus ── EventBus, closed after the test
    test_app ── FastAPI app built from test_settings
    └── test_client ── HTTPX AsyncClient running the app's lifespan
"""

import os

# Override settings for testing BEFORE any app imports
os.environ["WIKIDB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from wikiapp.config import Settings
from wikiapp.database import SqlQueries, create_wiki_engine, dispose_engine
from wikiapp.eventbus import EventBus
from wikiapp.services.database_service import (
    LocalWikiDatabaseService,
    bind_database_service,
    create_proxy,
)
from wikiapp.services.page_store import PageStore

WIKIDB_QUEUE = "wikidb.queue"


@pytest.fixture
def test_settings(tmp_path):
    """
    Settings backed by a throwaway SQLite file.

    A file (not :memory:) so that pooled connections share one database.
    """
    return Settings(
        wikidb_url=f"sqlite+aiosqlite:///{tmp_path / 'wiki.db'}",
        wikidb_max_pool_size=5,
        wikidb_call_timeout=5.0,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def engine(test_settings):
    engine = create_wiki_engine(test_settings)
    yield engine
    await dispose_engine(engine)


@pytest_asyncio.fixture
async def page_store(engine):
    store = PageStore(engine, SqlQueries())
    await store.create_table()
    return store


@pytest.fixture
def local_service(page_store):
    return LocalWikiDatabaseService(page_store, timeout=5.0)


@pytest_asyncio.fixture
async def event_bus():
    bus = EventBus(default_timeout=5.0)
    yield bus
    await bus.close()


@pytest_asyncio.fixture
async def wiki_service(event_bus, local_service):
    """
    The Database Service as route handlers see it: a proxy whose calls
    travel over the bus to a consumer backed by the real store.
    """
    bind_database_service(event_bus, WIKIDB_QUEUE, local_service)
    return create_proxy(event_bus, WIKIDB_QUEUE, timeout=5.0)


@pytest.fixture
def test_app(test_settings):
    """Application built with the test settings; lifespan not yet started."""
    from wikiapp.main import create_app

    return create_app(test_settings)


@pytest_asyncio.fixture
async def test_client(test_app):
    """
    Async HTTP client talking to a fully started application.

    ASGITransport does not send lifespan events, so the app's lifespan is
    entered explicitly around the client.

    Usage:
        async def test_alive(test_client):
            response = await test_client.get("/alive")
            assert response.status_code == 200
    """
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
