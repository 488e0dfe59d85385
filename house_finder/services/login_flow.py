"""Magic link login flow.

Request: issue a login token only for addresses on the allow list, and
tell every caller the same thing either way.
Redeem: consume the token, re-check the allow list (the user may have been
removed since the link was sent), and hand back the address so the caller
can open a session or mint a CLI key.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from house_finder.core.errors import InvalidCredentialError
from house_finder.models.session import Session
from house_finder.repositories.session_store import SessionStore
from house_finder.repositories.token_store import TokenStore
from house_finder.repositories.user_store import UserStore, normalize_email

logger = logging.getLogger(__name__)

LOGIN_LINK_SENT_MESSAGE = (
    "If that email is registered, a login link has been sent. Check your inbox."
)


async def request_login(db: AsyncSession, email: str) -> tuple[str, str] | None:
    """Issue a login token if the address may log in.

    Args:
        db: Async database session.
        email: Submitted address, in any case.

    Returns:
        (normalized_email, token) for authorized addresses, else None.
    """
    email = normalize_email(email)
    if not await UserStore.is_authorized(db, email):
        logger.info("Login requested for unauthorized address")
        return None
    token = await TokenStore.issue(db, email)
    return email, token


async def redeem_login(db: AsyncSession, token: str) -> str:
    """Consume a login token.

    Raises:
        InvalidCredentialError: Token is invalid, or its address is no
            longer authorized.
    """
    email = await TokenStore.redeem(db, token)
    if not await UserStore.is_authorized(db, email):
        logger.info("Login link redeemed for removed user")
        raise InvalidCredentialError("Invalid or expired login link")
    return email


async def start_session(db: AsyncSession, token: str) -> Session:
    """Redeem a browser login link and open a session for it."""
    email = await redeem_login(db, token)
    return await SessionStore.create(db, email)
