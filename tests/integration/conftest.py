"""Integration test fixtures: HTTP client wired to the test store."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from attendance_ledger.api.app import create_app
from attendance_ledger.api.dependencies import (
    get_blob_store,
    get_db_session,
    get_role_provider,
)
from attendance_ledger.database import get_engine, make_session_factory


@pytest_asyncio.fixture
async def client(session_factory, roles, blob_store) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app()

    async def _session():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_role_provider] = lambda: roles
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def bare_client(tmp_path) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over a store whose tables were never created."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'bare.db'}")
    factory = make_session_factory(engine)
    app = create_app()

    async def _session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await engine.dispose()
