"""
Database engine and session factory.

PostgreSQL (asyncpg) in deployment; a SQLite URL (aiosqlite) works for
local development. Sessions never expire loaded objects on commit, so a
booking returned from a service can still be serialized after its
transaction has ended.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings


def build_engine(database_url: str = None):
    url = database_url or settings.database_url
    options = {"echo": settings.db_echo}
    if not url.startswith("sqlite"):
        # SQLite pools are not sized
        options.update(pool_size=settings.db_pool_size, max_overflow=settings.db_max_overflow)
    return create_async_engine(url, **options)


engine = build_engine()

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        yield session
