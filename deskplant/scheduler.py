"""
Periodic drivers on the asyncio event loop.

All state mutation happens on the loop thread. stop() cancels the task
immediately, so no callback runs after it returns.
"""

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Call a function every `interval` seconds until stopped."""

    def __init__(self, interval: float, name: str = "periodic"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.name = name
        self._task: asyncio.Task | None = None
        self._callback: Callable[[], None] | None = None
        self.run_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: Callable[[], None]) -> None:
        """
        Begin calling callback. Must be called from the event loop thread.

        Raises:
            RuntimeError: If no event loop is running
        """
        self.stop()
        self._callback = callback
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=self.name)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._callback = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            callback = self._callback
            if callback is None:
                return
            self.run_count += 1
            try:
                callback()
            except Exception:
                # One bad tick should not kill the driver
                logger.exception("Error in %s callback", self.name)
