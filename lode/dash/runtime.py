"""
Event loop runtime for the Dash server.

Every controller of a ``LodeApp`` runs on one asyncio loop owned by a
background thread. Dash callbacks execute on Flask worker threads and hand
their work to that loop with ``call``, so controller handlers always run to
completion one at a time.
"""

import asyncio
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from lode.configs.logging_init import logger

T = TypeVar("T")


class LoopRuntime:
    def __init__(self, name: str = "lode-loop", timeout: float = 30.0):
        self.loop = asyncio.new_event_loop()
        self.timeout = timeout
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        if not self.running:
            self._thread.start()
            logger.debug(f"Event loop thread '{self._thread.name}' started")

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` on the loop thread and return its result."""

        async def _invoke() -> T:
            return fn(*args, **kwargs)

        future = asyncio.run_coroutine_threadsafe(_invoke(), self.loop)
        return future.result(self.timeout)

    def stop(self) -> None:
        if not self.running:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(self.timeout)
        self.loop.close()
        logger.debug("Event loop thread stopped")
