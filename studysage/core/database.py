"""Async engine and session factory.

Production runs on PostgreSQL through asyncpg; the test suite points
DATABASE_URL at ``sqlite+aiosqlite:///:memory:`` and builds its own engine per
test (see ``tests/conftest.py``), overriding ``get_db``.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from studysage.core.config import settings


def get_async_database_url(url: str) -> str:
    """Normalize a DATABASE_URL to an async driver.

    Hosted PostgreSQL URLs come as postgres:// or postgresql://; both are
    rewritten to postgresql+asyncpg://. URLs already naming a driver
    (sqlite+aiosqlite://, postgresql+asyncpg://) pass through.
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


engine = create_async_engine(
    get_async_database_url(settings.database_url),
    echo=settings.debug,
    pool_pre_ping=True,
)

# Routes serialize rows after the service has committed them
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """Request-scoped session; a failed request rolls back its open unit of work."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
