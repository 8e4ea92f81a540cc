"""Reclamation sweeper: background cleanup of expired content."""

import asyncio
import logging

from fleeting.services.lifecycle import LifecycleEngine

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 300
STOP_GRACE_SECONDS = 5


class Sweeper:
    """Drives expired records into the Deleted state on a fixed period.

    ``sweep()`` may also be called directly (e.g. from the manual trigger
    endpoint) while the scheduled loop is running; both end up in the
    engine's idempotent soft delete, so a record is reclaimed once.
    """

    def __init__(
        self,
        engine: LifecycleEngine,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        stop_grace: float = STOP_GRACE_SECONDS,
    ):
        self.engine = engine
        self.interval = interval
        self.stop_grace = stop_grace
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    async def sweep(self) -> int:
        """Run one pass. Returns the number of records this pass deleted."""
        now = self.engine.clock()
        expired = await self.engine.store.find_expired_undeleted(now)

        reclaimed = 0
        for record in expired:
            if await self.engine.soft_delete(record.short_id, reason="expired"):
                reclaimed += 1
            await self.engine.release_blob(record)

        # Files whose record hit its view limit are kept for download until expiry
        for record in await self.engine.store.find_unreleased_blobs(now):
            await self.engine.release_blob(record)

        logger.info("Sweep completed: %d of %d expired items reclaimed", reclaimed, len(expired))
        return reclaimed

    async def run(self) -> None:
        """Sweep every ``interval`` seconds until stopped."""
        logger.info("Sweeper scheduled (runs every %s seconds)", self.interval)
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._stopping.is_set():
                break
            try:
                await self.sweep()
            except Exception:
                logger.exception("Scheduled sweep failed")

    def start(self) -> None:
        if self._task is None:
            self._stopping.clear()
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Stop the scheduled loop.

        An in-flight sweep gets ``stop_grace`` seconds to finish before it is
        cancelled; a cut-short sweep is simply picked up again by the next one.
        """
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=self.stop_grace)
        except asyncio.TimeoutError:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Sweeper stopped")
