import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class BackgroundRefresher:
    """
    Supervised runner for stale-while-revalidate refreshes.

    Each refresh is an asyncio task owned by this object. A key is refreshed at most
    once at a time; failures are logged and counted instead of vanishing with an
    untracked task.
    """

    def __init__(self, name: str = "refresh"):
        self.name = name
        self._tasks: Dict[str, asyncio.Task] = {}
        self.success_count = 0
        self.failure_count = 0
        self.last_error: Optional[str] = None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, key: str, refresh: Callable[[], Awaitable[object]]) -> Optional[asyncio.Task]:
        """Schedule refresh() unless one for the same key is still running."""
        running = self._tasks.get(key)
        if running is not None and not running.done():
            return None

        task = asyncio.get_running_loop().create_task(refresh(), name=f"{self.name}:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t, key=key: self._on_done(key, t))
        return task

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if task.cancelled():
            logger.info(f"[REFRESH] {self.name} refresh for {key} cancelled")
            return
        error = task.exception()
        if error is not None:
            self.failure_count += 1
            self.last_error = f"{key}: {error}"
            logger.warning(f"[REFRESH] {self.name} refresh for {key} failed: {error}", exc_info=error)
            return
        self.success_count += 1

    async def drain(self) -> None:
        """Wait for all in-flight refreshes (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        await self.drain()
