"""Session cookie and credential hashing helpers.

Shared by the session store, the login endpoints, and the gatekeeper.
"""

import hashlib

from fastapi import Response

from house_finder.core.config import settings
from house_finder.models.session import Session


def hash_secret(raw: str) -> str:
    """Hex SHA-256 of a raw credential string."""
    return hashlib.sha256(raw.encode()).hexdigest()


def set_session_cookie(response: Response, session: Session) -> None:
    """Set the httpOnly session cookie on a response.

    The cookie expiry mirrors the stored session expiry so the browser
    drops it at the same moment the server stops honoring it.

    Args:
        response: Outgoing response.
        session: Freshly created session row.
    """
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.id,
        expires=session.expires_at,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
    )


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie.

    Cookie attributes must match set_session_cookie() for the browser to
    delete it.
    """
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
    )
