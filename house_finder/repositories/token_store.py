"""Repository for single-use magic link tokens.

Redemption is a single conditional UPDATE ... RETURNING, so two concurrent
redemptions of the same token cannot both succeed no matter how requests
interleave.
"""

import logging
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from house_finder.core.config import settings
from house_finder.core.errors import InvalidCredentialError
from house_finder.models.auth_token import AuthToken

logger = logging.getLogger(__name__)

_INVALID_LOGIN_LINK_MSG = "Invalid or expired login link"


class TokenStore:
    """Stateless repository for AuthToken table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def issue(db: AsyncSession, email: str) -> str:
        """Issue a new login token for an address.

        Args:
            db: Async database session.
            email: Address the token authenticates.

        Returns:
            The 64-character hex token to embed in the login link.
        """
        token = secrets.token_hex(32)
        db.add(
            AuthToken(
                token=token,
                email=email,
                expires_at=datetime.now(UTC)
                + timedelta(minutes=settings.login_token_ttl_minutes),
                used=False,
            )
        )
        await db.flush()
        return token

    @staticmethod
    async def redeem(db: AsyncSession, token: str) -> str:
        """Consume a token and return the address it was issued for.

        The row is marked used by the same statement that checks it, so
        exactly one caller can ever observe a given token as valid.

        Args:
            db: Async database session.
            token: Token from the login link.

        Returns:
            Email address bound to the token.

        Raises:
            InvalidCredentialError: Token is unknown, already used, or expired.
        """
        stmt = (
            update(AuthToken)
            .where(
                AuthToken.token == token,
                AuthToken.used.is_(False),
                AuthToken.expires_at > datetime.now(UTC),
            )
            .values(used=True)
            .returning(AuthToken.email)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        email = result.scalar_one_or_none()
        if email is None:
            raise InvalidCredentialError(_INVALID_LOGIN_LINK_MSG)
        return email

    @staticmethod
    async def sweep(db: AsyncSession) -> int:
        """Delete every expired token, used or not.

        Args:
            db: Async database session.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(AuthToken).where(AuthToken.expires_at <= datetime.now(UTC))
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        if row_count:
            logger.info("Swept %d expired login tokens", row_count)
        return row_count
