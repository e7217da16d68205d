"""
Timer Group: cancellable timers owned by one stage machine.

Each countdown, tick loop, grace delay and confirm-action runs as an
asyncio task registered here. Nothing is launched detached, so disposing
the machine always cancels its pending work.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Coroutine, Dict, Optional

logger = logging.getLogger(__name__)


class TimerGroup:
    """Named asyncio tasks that can be cancelled together."""

    def __init__(self, owner: str = "machine"):
        self.owner = owner
        self._tasks: Dict[str, asyncio.Task] = {}

    def start(self, name: str, coro: Coroutine) -> asyncio.Task:
        """
        Start a named timer, replacing any previous timer of that name.

        Must be called with a running event loop.
        """
        self.cancel(name)
        task = asyncio.get_running_loop().create_task(coro, name=f"{self.owner}:{name}")
        self._tasks[name] = task
        task.add_done_callback(lambda t, n=name: self._forget(n, t))
        return task

    def cancel(self, name: str) -> bool:
        """Cancel one timer. Returns True if a pending timer was cancelled."""
        task = self._tasks.pop(name, None)
        return self._cancel_task(task)

    def cancel_all(self) -> int:
        """Cancel every pending timer. Returns how many were cancelled."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        return sum(1 for task in tasks if self._cancel_task(task))

    def is_running(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def __len__(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def _cancel_task(self, task: Optional[asyncio.Task]) -> bool:
        if task is None or task.done():
            return False
        # A timer finishing its own stage transition is left to return
        if task is asyncio.current_task():
            return False
        task.cancel()
        logger.debug(f"[{self.owner}] Cancelled timer {task.get_name()}")
        return True

    def _forget(self, name: str, task: asyncio.Task) -> None:
        if self._tasks.get(name) is task:
            del self._tasks[name]
