from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """Detached jobs tied to the app lifespan, at most ``concurrency`` at once."""

    def __init__(self, name: str, concurrency: int) -> None:
        self.name = name
        self.concurrency = max(1, concurrency)
        self._sem: asyncio.Semaphore | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self.total_spawned = 0
        self.total_errors = 0

    def _semaphore(self) -> asyncio.Semaphore:
        if self._sem is None:
            self._sem = asyncio.Semaphore(self.concurrency)
        return self._sem

    def spawn(self, job: Callable[[], Awaitable[object]]) -> asyncio.Task[None]:
        sem = self._semaphore()

        async def _run() -> None:
            async with sem:
                try:
                    await job()
                except asyncio.CancelledError:
                    raise
                except Exception:  # noqa: BLE001
                    self.total_errors += 1
                    logger.exception("%s job failed", self.name)

        task = asyncio.create_task(_run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.total_spawned += 1
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, grace_seconds: float) -> None:
        """Wait up to ``grace_seconds`` for running jobs, then cancel the rest."""

        if not self._tasks:
            return
        if grace_seconds > 0:
            await asyncio.wait(list(self._tasks), timeout=grace_seconds)
        leftover = [task for task in self._tasks if not task.done()]
        if leftover:
            logger.warning("%s: abandoning %d in-flight jobs", self.name, len(leftover))
        for task in leftover:
            task.cancel()
        for task in leftover:
            with suppress(asyncio.CancelledError, Exception):
                await task
