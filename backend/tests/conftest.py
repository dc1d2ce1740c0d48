"""
OurPortfolio Backend — Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    ├── mock_db_session:   Mock database session (no real DB needed)
    ├── temp_storage:      Temporary directory for file operations
    ├── sample_image_bytes: Fake image content for upload tests
    ├── session_factory:   Real SQLite database (aiosqlite) with all tables
    ├── db_session:        One session from session_factory
    ├── seeded:            Two users and three projects in that database
    ├── fresh_index:       Empty synchronizer, isolated from the app singleton
    └── test_client:       HTTPX AsyncClient wired to the app and the test DB
"""

import os
import tempfile

# Settings are read at import time, so the environment must be in place
# before anything from ourportfolio is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="ourportfolio_db_"), "app.db"
)
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="ourportfolio_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ourportfolio.database import Base, get_db_session
from ourportfolio.models import Portfolio, Project, User
from ourportfolio.services.index_sync import TechStackIndexSynchronizer, tech_stack_index
from ourportfolio.services.prefix_index import PrefixIndex


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.get.return_value = None
        with pytest.raises(NotFoundError): ...
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    """A fresh storage directory per test (pytest cleans tmp_path up)."""
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """Smallest JPEG-looking payload: SOI + JFIF header + EOI."""
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """
    A real database per test.

    SQLite through aiosqlite, schema created from Base.metadata, sessions
    configured like the application's (expire_on_commit=False).
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory):
    """
    Users and projects every portfolio test needs.

    alice (id 1) owns projects 1 and 2; bob (id 2) owns project 3.
    """
    async with session_factory() as session:
        session.add_all([
            User(id=1, email="alice@example.com", nickname="alice"),
            User(id=2, email="bob@example.com", nickname="bob"),
        ])
        await session.flush()
        session.add_all([
            Project(id=1, user_id=1, title="Blog engine"),
            Project(id=2, user_id=1, title="Chat bot"),
            Project(id=3, user_id=2, title="Game"),
        ])
        await session.commit()

    return {"alice": 1, "bob": 2, "alice_projects": [1, 2], "bob_projects": [3]}


@pytest.fixture
def fresh_index():
    return TechStackIndexSynchronizer(PrefixIndex())


@pytest.fixture
def reset_app_index():
    """Clears the process-wide index before and after a test that touches it."""
    tech_stack_index.index.clear()
    tech_stack_index._ready = False
    yield tech_stack_index
    tech_stack_index.index.clear()
    tech_stack_index._ready = False


@pytest_asyncio.fixture
async def test_client(session_factory, reset_app_index):
    """
    HTTPX AsyncClient talking to the FastAPI app in-process.

    Request sessions come from the per-test database. The lifespan does not
    run under ASGITransport, so tests warm the index themselves when needed.
    """
    from ourportfolio.main import app

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def add_portfolio(session_factory):
    """Insert a portfolio row directly, bypassing the service and the index."""

    async def _add(portfolio_id, tech_stack, user_id=1, title=None):
        async with session_factory() as session:
            session.add(Portfolio(
                id=portfolio_id,
                user_id=user_id,
                title=title or f"Portfolio {portfolio_id}",
                tech_stack=tech_stack,
            ))
            await session.commit()

    return _add
