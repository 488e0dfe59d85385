import os

# Endpoint throttling would make repeated login requests flaky across tests.
# Must be set before house_finder modules build the global limiter.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SWEEP_ENABLED", "false")

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from house_finder.core.config import settings  # noqa: E402
from house_finder.main import create_app  # noqa: E402
from house_finder.models import Base, Session  # noqa: E402

TEST_ADMIN_EMAIL = "admin@example.com"
TEST_USER_EMAIL = "bob@example.com"


@pytest.fixture(autouse=True)
def admin_email(monkeypatch: pytest.MonkeyPatch) -> str:
    """Configure a known admin address for every test."""
    monkeypatch.setattr(settings, "admin_email", TEST_ADMIN_EMAIL)
    monkeypatch.setattr(settings, "dev_mode", True)
    return TEST_ADMIN_EMAIL


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Per-test SQLite database file with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app(session_factory) -> FastAPI:
    return create_app(session_factory)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client. Redirects are not followed."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
    ) as ac:
        yield ac


async def create_session(
    db: AsyncSession,
    email: str,
    *,
    expires_in: timedelta = timedelta(days=1),
) -> Session:
    """Insert a session row directly for test setup."""
    session = Session(
        id=os.urandom(32).hex(),
        email=email,
        expires_at=datetime.now(UTC) + expires_in,
    )
    db.add(session)
    await db.commit()
    return session


@pytest_asyncio.fixture
async def admin_client(
    app: FastAPI, db_session: AsyncSession
) -> AsyncGenerator[AsyncClient, None]:
    """Client carrying a session cookie for the admin."""
    session = await create_session(db_session, TEST_ADMIN_EMAIL)
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
        cookies={settings.session_cookie_name: session.id},
    ) as ac:
        yield ac
