"""Root conftest — shared fixtures: async DB, fakes for external collaborators, test client.

Invariants:
    - Every test gets a fresh SQLite database file under tmp_path
    - get_db and get_runtime dependencies overridden; db_manager patched for background work
    - No test talks to Anthropic or LiveKit: FakeAssessmentEngine / FakeGateway stand in
    - Room timers run on VirtualScheduler; time only moves when a test calls advance()

Design Decisions:
    - File-backed SQLite rather than :memory:: the in-memory pool shares one connection
      across sessions, so a background session returning it would roll back the
      request session's pending writes
    - Partial unique indexes are emitted for SQLite too, so identity uniqueness is
      exercised here
    - bcrypt cost 4 in tests: same code path, a fraction of the time
"""

import os

# Ensure tests don't accidentally use real credentials
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test-fake-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from casecoach.config import Settings
from casecoach.db.base import Base
from casecoach.infrastructure.database import get_db, DatabaseSessionManager
import casecoach.infrastructure.database as db_module
import casecoach.models  # noqa: F401
from casecoach.main import app
from casecoach.services.identity_lifecycle import IdentityLifecycleManager
from casecoach.services.runtime import build_runtime, get_runtime
from casecoach.services.token_issuer import TokenIssuer
from tests.fakes import FakeAssessmentEngine, FakeGateway, VirtualScheduler

TEST_BCRYPT_ROUNDS = 4


# -- Database -----------------------------------------------------------------


@pytest.fixture
async def test_engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


# -- Services -----------------------------------------------------------------


@pytest.fixture
def settings():
    return Settings(
        jwt_access_secret="test-access-secret-0123456789abcdef",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef",
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
        analysis_workers=1,
        analysis_queue_size=10,
    )


@pytest.fixture
def issuer(settings):
    return TokenIssuer(
        access_secret=settings.jwt_access_secret,
        refresh_secret=settings.jwt_refresh_secret,
        access_ttl_seconds=settings.jwt_access_ttl_seconds,
        refresh_ttl_seconds=settings.jwt_refresh_ttl_seconds,
    )


@pytest.fixture
def lifecycle(test_db, issuer):
    return IdentityLifecycleManager(test_db, issuer, bcrypt_rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def fake_engine():
    return FakeAssessmentEngine()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
async def runtime(settings, fake_engine, fake_gateway, scheduler, test_session_factory):
    rt = build_runtime(
        settings,
        engine=fake_engine,
        gateway=fake_gateway,
        scheduler=scheduler,
        session_scope=test_session_factory,
    )
    rt.orchestrator.start()
    yield rt
    await rt.orchestrator.shutdown(drain=True)
    await rt.room_timer.shutdown()


# -- HTTP ---------------------------------------------------------------------


@pytest.fixture
async def client(test_engine, test_session_factory, runtime):
    """FastAPI test client with DB and runtime dependencies overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_runtime] = lambda: runtime

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager

