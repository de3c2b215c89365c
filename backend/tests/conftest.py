"""
Pytest fixtures for test database, client, stores and authentication.

Each test gets a fresh in-memory SQLite database; the app's DB dependency
is overridden to use it.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from gym_booking.main import app
from gym_booking.db.base import Base
from gym_booking.db.session import get_db
from gym_booking.core.security import create_access_token
from gym_booking.infrastructure.memory_store import InMemoryBookingStore
from gym_booking.infrastructure.sql_store import SqlBookingStore
from gym_booking.models.class_schedule import ClassSchedule
from gym_booking.models.profile import Profile, UserRole

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def token_for(profile: Profile) -> dict:
    token = create_access_token(data={"sub": str(profile.id), "role": profile.role})
    return {"Authorization": f"Bearer {token}"}


def upcoming(days: int = 7, hours: int = 0) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days, hours=hours)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema per test on a single shared in-memory connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def sql_store(db_session: AsyncSession) -> SqlBookingStore:
    return SqlBookingStore(db_session, atomic=True)


@pytest_asyncio.fixture
async def memory_store() -> InMemoryBookingStore:
    return InMemoryBookingStore(atomic=True)


async def _add_profile(
    db_session: AsyncSession, email: str, full_name: str, credits: int, role: UserRole
) -> Profile:
    profile = Profile(email=email, full_name=full_name, credits=credits, role=role.value)
    db_session.add(profile)
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def member(db_session: AsyncSession) -> Profile:
    """Member with a single credit."""
    return await _add_profile(db_session, "maria@example.com", "Maria Garcia", 1, UserRole.MEMBER)


@pytest_asyncio.fixture
async def other_member(db_session: AsyncSession) -> Profile:
    return await _add_profile(db_session, "pedro@example.com", "Pedro Lopez", 5, UserRole.MEMBER)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> Profile:
    return await _add_profile(db_session, "admin@example.com", "Carlos Admin", 0, UserRole.ADMIN)


@pytest_asyncio.fixture
async def coach(db_session: AsyncSession) -> Profile:
    return await _add_profile(db_session, "coach@example.com", "Diego Coach", 0, UserRole.COACH)


@pytest_asyncio.fixture
async def member_headers(member: Profile) -> dict:
    return token_for(member)


@pytest_asyncio.fixture
async def other_member_headers(other_member: Profile) -> dict:
    return token_for(other_member)


@pytest_asyncio.fixture
async def admin_headers(admin: Profile) -> dict:
    return token_for(admin)


@pytest_asyncio.fixture
async def coach_headers(coach: Profile) -> dict:
    return token_for(coach)


async def _add_class(db_session: AsyncSession, title: str, capacity: int, start: datetime) -> ClassSchedule:
    class_schedule = ClassSchedule(
        title=title,
        description=f"{title} session",
        capacity=capacity,
        start_time=start,
        end_time=start + timedelta(hours=1),
        location="Main Room",
    )
    db_session.add(class_schedule)
    await db_session.commit()
    await db_session.refresh(class_schedule)
    return class_schedule


@pytest_asyncio.fixture
async def single_spot_class(db_session: AsyncSession) -> ClassSchedule:
    """Class with capacity 1 and no bookings."""
    return await _add_class(db_session, "CrossFit", 1, upcoming(days=3))


@pytest_asyncio.fixture
async def yoga_class(db_session: AsyncSession) -> ClassSchedule:
    """Class with capacity 20."""
    return await _add_class(db_session, "Yoga", 20, upcoming(days=5))
