"""Named, cancellable timers on the running asyncio loop.

Every delayed action of a voice session (debounce, restarts, speech
fallbacks, auto-close) goes through one TaskScheduler, so stopping a
session is a single ``cancel_all()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Coroutine
from typing import Any, Callable

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Schedules callbacks by name; scheduling a name again replaces it.

    Callbacks may be plain functions or coroutine functions. Coroutines
    become tracked tasks that ``cancel_all()`` also cancels. Exceptions are
    logged and never propagate to the loop.

    Must be used from inside a running event loop.
    """

    def __init__(self):
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, name: str, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        """Run ``callback(*args)`` after ``delay`` seconds, replacing any timer with this name."""
        self.cancel(name)
        loop = asyncio.get_running_loop()
        self._timers[name] = loop.call_later(max(delay, 0.0), self._fire, name, callback, args)

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a coroutine now as a tracked task."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def cancel(self, name: str) -> bool:
        handle = self._timers.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        """Cancel every timer and every tracked task except the caller's own."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in list(self._tasks):
            if task is not current:
                task.cancel()

    def is_pending(self, name: str) -> bool:
        return name in self._timers

    @property
    def pending(self) -> list[str]:
        return sorted(self._timers)

    @property
    def active_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def _fire(self, name: str, callback: Callable[..., Any], args: tuple) -> None:
        self._timers.pop(name, None)
        try:
            result = callback(*args)
        except Exception:
            logger.exception(f"Scheduled callback '{name}' failed")
            return
        if inspect.iscoroutine(result):
            self.spawn(name, result)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Task '{task.get_name()}' failed", exc_info=exc)
