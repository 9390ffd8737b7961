from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run a coroutine function every ``interval`` seconds until stopped.

    ``stop()`` never interrupts a cycle that is already running; it only
    prevents the next one from starting.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], Awaitable[None]]) -> None:
        self.name = name
        self.interval = interval
        self._func = func
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running or self._stop_event.is_set():
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                return
            except asyncio.TimeoutError:
                pass
            try:
                await self._func()
            except Exception:
                logger.exception("%s cycle failed", self.name)

    def stop(self) -> None:
        self._stop_event.set()

    async def wait_stopped(self) -> None:
        if self._task is not None:
            await self._task
