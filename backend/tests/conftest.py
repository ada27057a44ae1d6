"""Pytest configuration and fixtures."""

from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from bizgov.main import app
from bizgov.core.config import Settings, get_settings
from bizgov.core.database import get_session
from bizgov.core.limiter import limiter
from bizgov.core.security import get_password_hash
from bizgov.models import User, UserRole


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


async def make_engine():
    """Create an empty in-memory database with every table."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = await make_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def upload_dir(tmp_path):
    """Empty evidence upload directory."""
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest_asyncio.fixture(scope="function")
async def client(test_session, upload_dir) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with overridden dependencies."""

    async def override_get_session():
        yield test_session

    def override_get_settings():
        return Settings(upload_dir=str(upload_dir))

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = override_get_settings
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest_asyncio.fixture(scope="function")
async def admin_user(test_session) -> User:
    """Create admin user for testing."""
    user = User(
        username="admin",
        email="admin@test.com",
        hashed_password=get_password_hash("admin123"),
        full_name="Admin User",
        role=UserRole.ADMIN,
    )
    test_session.add(user)
    await test_session.commit()
    await test_session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def regular_user(test_session) -> User:
    """Create regular user for testing."""
    user = User(
        username="staff",
        email="staff@test.com",
        hashed_password=get_password_hash("staff123"),
        full_name="Staff User",
        role=UserRole.USER,
    )
    test_session.add(user)
    await test_session.commit()
    await test_session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def admin_token(client, admin_user) -> str:
    """Get admin authentication token."""
    response = await client.post(
        "/api/auth/login",
        json={"username": "admin", "password": "admin123"},
    )
    return response.json()["access_token"]


@pytest_asyncio.fixture(scope="function")
async def user_token(client, regular_user) -> str:
    """Get regular user authentication token."""
    response = await client.post(
        "/api/auth/login",
        json={"username": "staff", "password": "staff123"},
    )
    return response.json()["access_token"]


def auth_headers(token: str) -> dict:
    """Create authorization headers."""
    return {"Authorization": f"Bearer {token}"}
