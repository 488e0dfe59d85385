"""Per-request access logging.

One structured event per request with method, path, status, duration,
and client address. Static assets and health probes are skipped.
"""

import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = structlog.get_logger()

_SKIPPED_PREFIXES = ("/static/", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request at a level chosen by response status."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(_SKIPPED_PREFIXES):
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        fields = {
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "client_ip": request.client.host if request.client else None,
        }
        if response.status_code >= 500:
            logger.error("request", **fields)
        elif response.status_code >= 400:
            logger.warning("request", **fields)
        else:
            logger.info("request", **fields)
        return response
