"""Rate limiting and credential-guessing throttles.

Two mechanisms:

- ``limiter`` (slowapi): fixed per-IP limits on the login submission
  endpoints, so nobody can flood an inbox with login links.
- ``FailureRateLimiter``: sliding-window counter of failed bearer key
  attempts per source address, consulted by the gatekeeper before a key
  is validated.

Usage in routers:
    from house_finder.core.rate_limiting import limiter

    @router.post("/auth/login")
    @limiter.limit(lambda: settings.rate_limit_login)
    async def request_login(request: Request, ...):
        ...
"""

import threading
import time
from collections.abc import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from house_finder.core.config import settings

# Global limiter instance
# Configured with in-memory storage (suitable for single-instance deployment)
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # Parse retry-after from exception detail (e.g., "5 per 1 hour")
    # Fallback to 60 seconds if parsing fails
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
                "details": None,
            }
        },
        headers={"Retry-After": retry_after},
    )


class FailureRateLimiter:
    """Per-source sliding window of failed authentication attempts.

    A source is limited once ``threshold`` failures fall inside the last
    ``window`` seconds. Safe to share across threads and tasks.

    Args:
        threshold: Failures allowed inside one window.
        window: Window length in seconds.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        threshold: int = 10,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.window = window
        self._clock = clock
        self._failures: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def _prune(self, source: str, now: float) -> list[float]:
        cutoff = now - self.window
        valid = [t for t in self._failures.get(source, []) if t > cutoff]
        if valid:
            self._failures[source] = valid
        else:
            self._failures.pop(source, None)
        return valid

    def record_failure(self, source: str) -> bool:
        """Record one failure.

        Returns:
            True if the source has now exceeded the threshold.
        """
        with self._lock:
            now = self._clock()
            valid = self._prune(source, now)
            valid.append(now)
            self._failures[source] = valid
            return len(valid) > self.threshold

    def is_limited(self, source: str) -> bool:
        """Whether a source must be refused before its credential is checked."""
        with self._lock:
            return len(self._prune(source, self._clock())) >= self.threshold

    def retry_after(self, source: str) -> int:
        """Seconds until the oldest counted failure leaves the window."""
        with self._lock:
            now = self._clock()
            valid = self._prune(source, now)
            if not valid:
                return 0
            return max(1, int(valid[0] + self.window - now) + 1)
