"""
Pytest configuration and fixtures for backend tests.

Provides a file-backed SQLite database per test (so that independent
sessions see each other's commits), session factories, an audit recorder
bound to the test database, and an async HTTP client.
"""
import os

# Keep the application engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from raas.audit.audit_logger import AuditRecorder
from raas.audit.context import clear_audit_context
from raas.core.database import get_db, Base
from raas.main import app
from raas.models.audit_log import AuditAction, AuditLog, AuditStatus


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine backed by a temporary file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}",
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for tests."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def recorder(session_maker) -> AuditRecorder:
    """Audit recorder writing to the test database."""
    return AuditRecorder(session_maker)


@pytest.fixture(autouse=True)
def reset_audit_context():
    yield
    clear_audit_context()


@pytest_asyncio.fixture(scope="function")
async def audit_log_factory(session_maker):
    """
    Insert audit records directly, with explicit timestamps.

    Used to set up query fixtures; production records are only written by
    the AuditRecorder.
    """
    async def create(
        entity_name: str = "Contract",
        entity_id: int = 1,
        action: AuditAction = AuditAction.CREATE,
        status: AuditStatus = AuditStatus.SUCCESS,
        timestamp: Optional[datetime] = None,
        **fields,
    ) -> AuditLog:
        entry = AuditLog(
            entity_name=entity_name,
            entity_id=entity_id,
            action=action,
            status=status,
            timestamp=timestamp or datetime.now(timezone.utc),
            **fields,
        )
        async with session_maker() as session:
            session.add(entry)
            await session.commit()
        return entry

    return create


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
