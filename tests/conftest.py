"""Pytest configuration and fixtures for backend tests."""

from datetime import date
from typing import AsyncGenerator
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from myfitlog.api.v1.endpoints.auth import get_backend
from myfitlog.core.database import Base, get_db
from myfitlog.core.security import get_password_hash
from myfitlog.main import app as main_app
from myfitlog.services.stopwatch import StopwatchRegistry
from tests.fakes import FAKE_SESSION_ID, FakeBackend

# Import all models to ensure they're registered with Base
from myfitlog.models import ExerciseRecord, Goal, User


# -------------------------------------------------------------------------
# Database Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def app(db_session: AsyncSession) -> AsyncGenerator[FastAPI, None]:
    """FastAPI app wired to the test database with a fresh stopwatch registry."""

    async def override_get_db():
        yield db_session

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.state.stopwatches = StopwatchRegistry()
    yield main_app
    await main_app.state.stopwatches.close_all()
    main_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -------------------------------------------------------------------------
# User Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(
        email="test@example.com",
        password_hash=get_password_hash("testpassword123"),
        display_name="Test User",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def auth_client(
    app: FastAPI,
    test_user: User,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an authenticated HTTP client backed by the test database."""
    session_store = {
        f"test_session_{test_user.id}": {
            "user_id": test_user.id,
            "email": test_user.email,
            "display_name": test_user.display_name,
        }
    }

    async def mock_get_session(session_id: str) -> dict | None:
        return session_store.get(session_id)

    # Patch at the location where it's imported, not where it's defined
    with patch("myfitlog.services.backend.get_session", mock_get_session):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={"session_id": f"test_session_{test_user.id}"},
        ) as ac:
            yield ac


# -------------------------------------------------------------------------
# Fake Backend Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def fake_client(
    app: FastAPI,
    fake_backend: FakeBackend,
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated client whose views talk to the in-memory FakeBackend."""
    app.dependency_overrides[get_backend] = lambda: fake_backend
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={"session_id": FAKE_SESSION_ID},
    ) as ac:
        yield ac


# -------------------------------------------------------------------------
# Exercise Data Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def sample_records(db_session: AsyncSession, test_user: User) -> list[ExerciseRecord]:
    """Three records on two days of October 2026."""
    records = [
        ExerciseRecord(
            user_id=test_user.id,
            name="Jogging",
            duration_minutes=30,
            calories=245,
            date=date(2026, 10, 5),
        ),
        ExerciseRecord(
            user_id=test_user.id,
            name="Yoga",
            duration_minutes=45,
            calories=158,
            date=date(2026, 10, 5),
        ),
        ExerciseRecord(
            user_id=test_user.id,
            name="Swimming",
            duration_minutes=20,
            calories=140,
            date=date(2026, 10, 12),
        ),
    ]
    db_session.add_all(records)
    await db_session.commit()
    return records


@pytest.fixture
async def sample_goal(db_session: AsyncSession, test_user: User) -> Goal:
    goal = Goal(user_id=test_user.id, goal_type="Weekly exercise time", target_minutes=150)
    db_session.add(goal)
    await db_session.commit()
    await db_session.refresh(goal)
    return goal
