"""Repository for browser sessions.

Session IDs are opaque 256-bit random values carried in an httpOnly
cookie. Validation is a primary-key lookup; expired rows are deleted the
first time they are seen.
"""

import secrets
from datetime import UTC, datetime, timedelta

from fastapi import Response
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from house_finder.core.auth import clear_session_cookie
from house_finder.core.config import settings
from house_finder.models.session import Session


class SessionStore:
    """Stateless repository for Session table operations."""

    @staticmethod
    async def create(db: AsyncSession, email: str) -> Session:
        """Create a session for an authenticated address.

        Pair with set_session_cookie() to hand the session to the browser.

        Args:
            db: Async database session.
            email: Authenticated address.

        Returns:
            Created Session.
        """
        session = Session(
            id=secrets.token_hex(32),
            email=email,
            expires_at=datetime.now(UTC) + timedelta(days=settings.session_ttl_days),
        )
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def get(db: AsyncSession, session_id: str) -> Session | None:
        """Look up a session row by ID, expired or not."""
        return await db.get(Session, session_id)

    @staticmethod
    async def validate(db: AsyncSession, conn: HTTPConnection) -> str | None:
        """Resolve the session cookie on a connection to an address.

        Args:
            db: Async database session.
            conn: Incoming request (or websocket) carrying cookies.

        Returns:
            Bound email address, or None if the cookie is missing, unknown,
            or expired. Expired rows are deleted as a side effect.
        """
        session_id = conn.cookies.get(settings.session_cookie_name)
        if not session_id:
            return None

        session = await SessionStore.get(db, session_id)
        if session is None:
            return None

        if session.expires_at <= datetime.now(UTC):
            await db.delete(session)
            await db.flush()
            return None

        return session.email

    @staticmethod
    async def destroy(
        db: AsyncSession, conn: HTTPConnection, response: Response
    ) -> None:
        """Log out: delete the session row and expire the cookie.

        A request without a session cookie is not an error.
        """
        session_id = conn.cookies.get(settings.session_cookie_name)
        if session_id:
            await db.execute(delete(Session).where(Session.id == session_id))
        clear_session_cookie(response)

    @staticmethod
    async def sweep(db: AsyncSession) -> int:
        """Delete every expired session.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(Session).where(Session.expires_at <= datetime.now(UTC))
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
