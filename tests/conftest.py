"""Shared pytest fixtures for unit and integration tests."""

import os
import tempfile
import uuid
from datetime import date, timedelta
from typing import Optional

# Test environment must be in place before the app (and its settings) import
_TEST_DB_DIR = tempfile.mkdtemp(prefix="billtracker-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB_DIR}/app.db")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.main import app
from app.config import settings
from app.database import Base, get_db
from app.core.policy import AssignmentPolicy, get_assignment_policy
from app.models import Bill, BillStage, User
from app.utils.time import get_utc_now


@pytest.fixture
def api_base() -> str:
    """Base URL for API requests."""
    return f"http://test{settings.API_V1_PREFIX}"


@pytest.fixture
def unique_suffix() -> str:
    """Unique suffix for test data to avoid collisions."""
    return str(uuid.uuid4())[:8]


@pytest.fixture
def policy() -> AssignmentPolicy:
    """Default rules; isolation is left to SQLite's own locking."""
    return AssignmentPolicy(isolation_level=None)


@pytest.fixture
async def engine(tmp_path):
    """Fresh file-backed SQLite database per test (separate connections per session)."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bills.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 15},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    """A session for arranging and inspecting test data."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory, policy: AssignmentPolicy):
    """Async HTTP client wired to the test database and policy."""

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_assignment_policy] = lambda: policy
    transport = ASGITransport(app=app)
    client = AsyncClient(transport=transport, base_url="http://test", timeout=30.0)
    yield client
    await client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory, unique_suffix: str):
    """Factory inserting a user and returning it."""
    counter = {"n": 0}

    async def _make(name: str = "Test User") -> User:
        counter["n"] += 1
        async with session_factory() as session:
            user = User(name=name, email=f"user{counter['n']}_{unique_suffix}@example.com")
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest.fixture
def make_bill(session_factory, unique_suffix: str):
    """Factory inserting a bill; created_at increases with each call."""
    counter = {"n": 0}
    base_time = get_utc_now() - timedelta(days=1)

    async def _make(
        stage: BillStage = BillStage.DRAFT,
        assigned_to: Optional[User] = None,
        submitted_at=None,
        reference: Optional[str] = None,
    ) -> Bill:
        counter["n"] += 1
        async with session_factory() as session:
            bill = Bill(
                bill_reference=reference or f"BILL-{unique_suffix}-{counter['n']:04d}",
                bill_date=date(2024, 1, 15),
                stage=stage,
                submitted_at=submitted_at,
                assigned_to_id=assigned_to.id if assigned_to else None,
                created_at=base_time + timedelta(seconds=counter["n"]),
            )
            session.add(bill)
            await session.commit()
            return bill

    return _make
