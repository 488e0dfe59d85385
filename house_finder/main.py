"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Exception handlers for API errors
- Gatekeeper, security header, and request logging middleware
- Lifespan: schema creation and the expired credential sweeper
- Health check endpoint
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from house_finder.api.router import router
from house_finder.core.config import settings
from house_finder.core.database import async_session_factory, init_db
from house_finder.core.errors import APIError
from house_finder.core.gatekeeper import Gatekeeper
from house_finder.core.logging import configure_logging
from house_finder.core.rate_limiting import (
    FailureRateLimiter,
    limiter,
    rate_limit_exceeded_handler,
)
from house_finder.core.request_logging import RequestLoggingMiddleware
from house_finder.core.responses import ErrorDetail, ErrorResponse, error_response
from house_finder.services.passkey_ceremony import PasskeyCeremonies
from house_finder.services.sweeper import CredentialSweeper

logger = structlog.get_logger()

_NO_STORE_PREFIXES = ("/api/", "/auth/", "/cli/", "/passkey")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Controls referrer information leakage
    - Cache-Control: No caching of credential-bearing responses
    - Content-Security-Policy: Same-origin resources only, never framed
    - Strict-Transport-Security: Forces HTTPS (production only)
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Endpoints may set a stricter policy (e.g. login link redemption)
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )

        # Keys, sessions, and login links must never land in a shared cache
        if request.url.path.startswith(_NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; frame-ancestors 'none'"
        )

        # HSTS only in production (assumes HTTPS via reverse proxy)
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors.

    Args:
        request: The incoming request.
        exc: The APIError that was raised.

    Returns:
        JSONResponse with error envelope and appropriate status code.
    """
    return error_response(exc)


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors from FastAPI.

    Converts FastAPI's validation errors to the standard envelope.

    Returns:
        JSONResponse with VALIDATION_ERROR code and field-level details.
    """
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="VALIDATION_ERROR",
                message="Request validation failed",
                details=[
                    {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                    for e in exc.errors()
                ],
            )
        ).model_dump(),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Returns 500 INTERNAL_ERROR without exposing stack traces; the full
    exception is logged.
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
            )
        ).model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables on startup and run the sweeper while the app is up."""
    session_factory: async_sessionmaker[AsyncSession] = app.state.session_factory
    await init_db(session_factory.kw["bind"])

    sweeper: CredentialSweeper | None = None
    if settings.sweep_enabled:
        sweeper = CredentialSweeper(
            session_factory, interval_seconds=settings.sweep_interval_seconds
        )
        sweeper.start()
    logger.info("house_finder.startup", base_url=settings.base_url)

    yield

    logger.info("house_finder.shutdown")
    if sweeper is not None:
        await sweeper.stop()


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_factory: Database session factory. Defaults to the one
            bound to DATABASE_URL; tests pass their own.

    Returns:
        Configured FastAPI application instance.
    """
    configure_logging()

    session_factory = session_factory or async_session_factory
    failure_limiter = FailureRateLimiter(
        threshold=settings.bearer_failure_limit,
        window=settings.bearer_failure_window_seconds,
    )

    app = FastAPI(
        title="House Finder",
        version="0.1.0",
        description="Authentication core for the House Finder app",
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory
    app.state.failure_limiter = failure_limiter
    app.state.passkeys = PasskeyCeremonies(ttl=settings.passkey_ceremony_ttl_seconds)
    # Login submission throttling
    app.state.limiter = limiter

    # Middleware order: Starlette uses LIFO, so the LAST added runs FIRST.
    # Request logging sees gatekeeper rejections; security headers apply to them.
    app.add_middleware(
        Gatekeeper,
        session_factory=session_factory,
        failure_limiter=failure_limiter,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers
    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.include_router(router)

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring."""
        return {"status": "healthy"}

    return app


# Create the application instance
# Used by uvicorn: uvicorn house_finder.main:app
app = create_app()
