import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

import anyio
import anyio.to_thread

from django_mcp_broker.store import Store
from django_mcp_broker.types import Clock

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodically evicts expired entries from the broker stores.

    The sweep is a plain method so it can be driven directly with a fake clock;
    ``run()`` schedules it every ``interval`` seconds for the lifetime of the
    ASGI application.
    """

    def __init__(self, stores: Sequence[Store], interval: float, clock: Clock = time.time):
        self.stores = list(stores)
        self.interval = interval
        self.clock = clock

    def sweep(self, now: float | None = None) -> int:
        if now is None:
            now = self.clock()
        removed = sum(store.sweep(now) for store in self.stores)
        if removed:
            logger.info("Swept %d expired entries", removed)
        return removed

    async def _run_forever(self) -> None:
        while True:
            await anyio.sleep(self.interval)
            try:
                # Off the event loop so request handling never waits on a sweep
                await anyio.to_thread.run_sync(self.sweep)
            except Exception:
                logger.exception("Expiry sweep failed")

    @asynccontextmanager
    async def run(self) -> AsyncIterator["ExpirySweeper"]:
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._run_forever)
            logger.info("Expiry sweeper started (interval=%ss)", self.interval)
            try:
                yield self
            finally:
                tg.cancel_scope.cancel()
                logger.info("Expiry sweeper stopped")
