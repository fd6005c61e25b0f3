"""
Database configuration and session management.

Uses SQLModel for ORM with async support. Table models are defined in
``poketrade.models`` and registered on the shared metadata by ``init_db``.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from .config import settings


def to_async_url(url: str) -> str:
    """
    Convert a sync database URL to its async driver equivalent.

    SQLite: sqlite:/// -> sqlite+aiosqlite:///
    PostgreSQL: postgresql:// -> postgresql+asyncpg://
    """
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    return url


# Create async engine
engine = create_async_engine(
    to_async_url(settings.database_url),
    echo=settings.debug and settings.app_env != "test",
    future=True,
)

# Create async session factory
async_session = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """
    Initialize the database by creating all tables.

    Should be called on application startup.
    """
    # Register table models on the shared metadata
    from poketrade import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Yields:
        AsyncSession: Database session for the request.

    Example:
        @router.get("/lists/me")
        async def get_lists(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
