"""ASGI middleware that picks and enforces the auth scheme for every request.

Each path falls into exactly one class:

- PUBLIC: login, logout, health, static assets, passkey login, CLI login.
  Passed through untouched.
- MANAGEMENT: /api/keys and /api/users. A browser session is required;
  bearer keys are never accepted, so a leaked key cannot mint more keys
  or change who may log in.
- BEARER: every other /api/ path. An ``Authorization: Bearer`` key is
  validated (subject to the per-source failure throttle); without one, a
  browser session is accepted so the web UI can call the same handlers.
- SESSION: everything else. Unauthenticated browsers are redirected to
  the login page.

On success the resolved address is stored in ``request.state.user_email``
and the scheme in ``request.state.auth_method``.

This is a raw ASGI middleware (not BaseHTTPMiddleware) so rejected
requests never reach routing or dependency resolution.
"""

from enum import StrEnum

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import HTTPConnection
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send

from house_finder.core.errors import (
    APIError,
    InternalError,
    InvalidCredentialError,
    RateLimitedError,
    UnauthorizedError,
)
from house_finder.core.rate_limiting import FailureRateLimiter
from house_finder.core.responses import error_response
from house_finder.repositories.api_key_store import APIKeyStore
from house_finder.repositories.session_store import SessionStore
from house_finder.repositories.user_store import UserStore

logger = structlog.get_logger()

_PUBLIC_PATHS = frozenset(
    {
        "/health",
        "/login",
        "/auth/login",
        "/auth/verify",
        "/auth/logout",
        "/passkey/login/begin",
        "/passkey/login/finish",
        "/cli/auth",
        "/cli/auth/verify",
        "/cli/auth/complete",
    }
)
_PUBLIC_PREFIXES = ("/static/",)
_MANAGEMENT_ROOTS = ("/api/keys", "/api/users")
_BEARER_PREFIX = "/api/"
_LOGIN_PAGE = "/login"


class RouteClass(StrEnum):
    """Which authentication scheme a path requires."""

    PUBLIC = "public"
    MANAGEMENT = "management"
    BEARER = "bearer"
    SESSION = "session"


def classify_path(path: str) -> RouteClass:
    """Classify a request path.

    Args:
        path: URL path without query string.

    Returns:
        The RouteClass that governs the path.
    """
    if path in _PUBLIC_PATHS or path.startswith(_PUBLIC_PREFIXES):
        return RouteClass.PUBLIC
    for root in _MANAGEMENT_ROOTS:
        if path == root or path.startswith(root + "/"):
            return RouteClass.MANAGEMENT
    if path.startswith(_BEARER_PREFIX):
        return RouteClass.BEARER
    return RouteClass.SESSION


def _bearer_token(conn: HTTPConnection) -> str | None:
    """Extract the key from an ``Authorization: Bearer`` header, if any."""
    header = conn.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip()


def _client_address(conn: HTTPConnection) -> str:
    return conn.client.host if conn.client else "unknown"


class Gatekeeper:
    """Authenticate requests according to their RouteClass.

    Args:
        app: The next ASGI application in the middleware chain.
        session_factory: Factory for the database sessions used to
            validate credentials.
        failure_limiter: Throttle for failed bearer key attempts.
    """

    def __init__(
        self,
        app: ASGIApp,
        session_factory: async_sessionmaker[AsyncSession],
        failure_limiter: FailureRateLimiter,
    ) -> None:
        self.app = app
        self.session_factory = session_factory
        self.failure_limiter = failure_limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        route_class = classify_path(scope["path"])
        if route_class is RouteClass.PUBLIC:
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        try:
            identity = await self._authenticate(route_class, conn)
        except APIError as exc:
            await error_response(exc)(scope, receive, send)
            return
        except SQLAlchemyError:
            logger.exception("Credential lookup failed", path=scope["path"])
            await error_response(InternalError())(scope, receive, send)
            return

        if isinstance(identity, Response):
            await identity(scope, receive, send)
            return

        email, method = identity
        state = scope.setdefault("state", {})
        state["user_email"] = email
        state["auth_method"] = method
        await self.app(scope, receive, send)

    async def _authenticate(
        self, route_class: RouteClass, conn: HTTPConnection
    ) -> tuple[str, str] | Response:
        """Resolve the caller or produce the rejection.

        Returns:
            (email, auth_method) on success, or a redirect response for
            unauthenticated browser pages.

        Raises:
            APIError: For rejections rendered as a JSON error envelope.
        """
        if route_class is RouteClass.BEARER:
            token = _bearer_token(conn)
            if token is not None:
                return await self._authenticate_bearer(conn, token), "bearer"

        email = await self._session_email(conn)
        if email is not None:
            return email, "session"

        if route_class is RouteClass.SESSION:
            return RedirectResponse(url=_LOGIN_PAGE, status_code=303)
        raise UnauthorizedError()

    async def _authenticate_bearer(self, conn: HTTPConnection, token: str) -> str:
        source = _client_address(conn)
        if self.failure_limiter.is_limited(source):
            logger.warning("Bearer attempt throttled", source=source)
            raise RateLimitedError(self.failure_limiter.retry_after(source))

        owner = None
        if token:
            async with self.session_factory() as db:
                owner = await APIKeyStore.validate(db, token)
                await db.commit()

        if owner is None:
            exceeded = self.failure_limiter.record_failure(source)
            logger.warning(
                "Invalid bearer key",
                source=source,
                path=conn.url.path,
                threshold_exceeded=exceeded,
            )
            raise InvalidCredentialError("Invalid API key")
        return owner

    async def _session_email(self, conn: HTTPConnection) -> str | None:
        """Validate the session cookie and re-check the allow list."""
        async with self.session_factory() as db:
            email = await SessionStore.validate(db, conn)
            # Persist lazy deletion of an expired session
            await db.commit()
            if email is None:
                return None
            if not await UserStore.is_authorized(db, email):
                return None
        return email
