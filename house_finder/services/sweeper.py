"""Expired credential sweeper.

Background asyncio task started by the application lifespan. Deletes
expired login tokens (used or not) and expired sessions on a fixed
interval. Validation already ignores expired rows, so the sweep only
keeps the tables small.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from house_finder.repositories.session_store import SessionStore
from house_finder.repositories.token_store import TokenStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60 * 60


@dataclass(frozen=True)
class SweepResult:
    """Rows removed by one sweep.

    Attributes:
        tokens_deleted: Expired login tokens deleted.
        sessions_deleted: Expired sessions deleted.
    """

    tokens_deleted: int
    sessions_deleted: int


class CredentialSweeper:
    """Background worker that periodically deletes expired credentials.

    Lifecycle:
    - start() creates an asyncio task that runs the sweep loop.
    - stop() cancels the task and waits for it to finish.
    - run_once() executes a single sweep (for testing).

    Args:
        session_factory: Async session factory for DB access.
        interval_seconds: Seconds between sweeps.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background sweep loop.

        No-op if already running. Must be called with a running event loop.
        """
        if self.is_running:
            logger.warning("Credential sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Credential sweeper started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Credential sweeper stopped")

    async def run_once(self) -> SweepResult:
        """Execute a single sweep in its own transaction.

        Returns:
            SweepResult with the number of rows removed.
        """
        async with self._session_factory() as db:
            tokens_deleted = await TokenStore.sweep(db)
            sessions_deleted = await SessionStore.sweep(db)
            await db.commit()
        return SweepResult(
            tokens_deleted=tokens_deleted,
            sessions_deleted=sessions_deleted,
        )

    async def _run_loop(self) -> None:
        """Background loop: sweep → sleep → repeat."""
        try:
            while self._running:
                try:
                    result = await self.run_once()
                    logger.info(
                        "Credential sweep: %d tokens, %d sessions deleted",
                        result.tokens_deleted,
                        result.sessions_deleted,
                    )
                except Exception:  # noqa: BLE001
                    logger.exception("Error in credential sweep")
                await asyncio.sleep(self._interval_seconds)
        except asyncio.CancelledError:
            logger.debug("Credential sweep loop cancelled")
            raise
