"""Shared test fixtures for StudySage tests.

Provides:
- In-memory async SQLite database per test
- Async FastAPI test client with the database and AI generator overridden
- Mock database session for pure service-flow tests
- Auth helpers (token generation for authenticated requests)
"""
import os

# Set env vars BEFORE importing app modules (config reads at import time)
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from studysage.models import Base, User  # noqa: E402
from studysage.services.generation import GenerationService  # noqa: E402


@pytest.fixture
async def session_maker():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def create_user(session_maker):
    """Factory: insert a user row with the given progress fields."""

    async def _create(user_id: str = "user-1", **fields) -> User:
        async with session_maker() as session:
            fields.setdefault("email", f"{user_id}@example.com")
            user = User(id=user_id, **fields)
            session.add(user)
            await session.commit()
            return user

    return _create


@pytest.fixture
def mock_db():
    """Mock async database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.refresh = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def fake_generator():
    """GenerationService stand-in whose generate_* calls are AsyncMocks."""
    generator = MagicMock(spec=GenerationService)
    generator.generate_flashcards = AsyncMock(return_value=[])
    generator.generate_quiz = AsyncMock(return_value=[])
    return generator


@pytest.fixture
async def client(session_maker, fake_generator):
    """Async HTTP test client for the FastAPI app.

    Uses httpx AsyncClient with ASGI transport, no real server needed.
    """
    from studysage.api.documents import get_generation_service
    from studysage.core.database import get_db
    from studysage.main import app

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generation_service] = lambda: fake_generator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user_id: str = "user-1", email: str | None = None) -> dict:
    """Authorization headers with a valid bearer token for ``user_id``."""
    from studysage.services.auth import create_access_token
    return {"Authorization": f"Bearer {create_access_token(user_id, email=email)}"}
