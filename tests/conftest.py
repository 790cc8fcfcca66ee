"""
Shared pytest fixtures for the ticketbridge tests.

This module provides:
- Configuration fixtures (config, disabled_config)
- Repository fixtures (source_repo, target_repo, seeded_source)
- Storage and transport fixtures (storage, file_server, http_client)
- Tracing fixtures (mock_tracer)
- SQLite fixtures (sqlite_engine, sqlite_target_repo)

All in-memory fixtures are function scoped so every test starts clean.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ticketbridge.config import MigrationConfig
from ticketbridge.observability import MockTracer
from ticketbridge.repositories import (
    InMemorySourceRepository,
    InMemoryTargetRepository,
    SQLAlchemyTargetRepository,
)
from ticketbridge.storage import InMemoryContentStorage
from tests.fixtures import (
    DOWNLOAD_BASE_URL,
    LEGACY_TICKET_TYPE,
    FakeFileServer,
    make_actor,
    make_category,
    make_classification,
    make_ticket,
)

# ============================================================================
# Configuration
# ============================================================================


@pytest.fixture
def config() -> MigrationConfig:
    """Configuration with the legacy store enabled and small batches."""
    return MigrationConfig(
        source_enabled=True,
        file_download_base_url=DOWNLOAD_BASE_URL,
        fetch_timeout=5.0,
        max_concurrency=4,
        legacy_ticket_owner_type=LEGACY_TICKET_TYPE,
    )


@pytest.fixture
def disabled_config() -> MigrationConfig:
    """Configuration with the legacy store switched off."""
    return MigrationConfig(source_enabled=False)


# ============================================================================
# Repositories
# ============================================================================


@pytest.fixture
def source_repo() -> InMemorySourceRepository:
    """Empty in-memory legacy store."""
    return InMemorySourceRepository()


@pytest.fixture
def seeded_source(source_repo: InMemorySourceRepository) -> InMemorySourceRepository:
    """
    Legacy store with one category (1), one classification (10),
    one ticket (100) and one actor (7).
    """
    source_repo.add(
        make_category(),
        make_classification(),
        make_ticket(),
        make_actor(),
    )
    return source_repo


@pytest.fixture
def target_repo() -> InMemoryTargetRepository:
    """Empty in-memory local store."""
    return InMemoryTargetRepository()


# ============================================================================
# Storage and transport
# ============================================================================


@pytest.fixture
def storage() -> InMemoryContentStorage:
    return InMemoryContentStorage()


@pytest.fixture
def file_server() -> FakeFileServer:
    return FakeFileServer()


@pytest_asyncio.fixture
async def http_client(file_server: FakeFileServer) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client wired to the fake legacy download endpoint."""
    async with file_server.client() as client:
        yield client


# ============================================================================
# Tracing
# ============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    return MockTracer()


# ============================================================================
# SQLite
# ============================================================================


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed aiosqlite engine, disposed after the test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'target.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_target_repo(sqlite_engine: AsyncEngine) -> SQLAlchemyTargetRepository:
    """SQLAlchemy target repository with the schema created."""
    repo = SQLAlchemyTargetRepository(sqlite_engine, enable_tracing=False)
    await repo.initialize()
    return repo
