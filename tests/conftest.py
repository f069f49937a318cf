"""Shared fixtures: an in-memory database per test, the service and an API client."""

import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_ADMIN_ACTIONS", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import bodymap_api.models  # noqa: E402, F401
from bodymap_api.config import get_settings  # noqa: E402
from bodymap_api.db.session import Base, get_db  # noqa: E402
from bodymap_api.main import app  # noqa: E402
from bodymap_api.services import BodyAssignmentService  # noqa: E402

ADMIN_ID = "6650f0c2a1b2c3d4e5f60718"


def issue_admin_token(admin_id: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Sign a token the way the admin identity provider does."""
    settings = get_settings()
    claims = {"sub": admin_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(db: AsyncSession) -> BodyAssignmentService:
    return BodyAssignmentService(db)


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin_id() -> str:
    return ADMIN_ID


@pytest.fixture
def auth_headers(admin_id: str) -> dict[str, str]:
    token = issue_admin_token(admin_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_token():
    return issue_admin_token
