"""Async database engine and session management.

Configures the SQLAlchemy async engine and provides dependency injection
for database sessions. The application stores its session factory on
``app.state.session_factory`` so tests can point a whole app instance at
a throwaway database.
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from house_finder.core.config import settings
from house_finder.models import Base

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db(bind: AsyncEngine) -> None:
    """Create all auth tables that do not exist yet.

    Args:
        bind: Engine to create the schema on.
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session.

    Commits when the endpoint returns normally, rolls back on any error.
    """
    factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
