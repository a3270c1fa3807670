"""
Debounce utility for coalescing rapid calls (search typing, sort toggles).

A Debouncer wraps a callable and delays it until ``delay`` seconds have
passed without another call. Only the arguments of the last call are used.
Coroutine functions are scheduled as tasks on the running event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

# Default delay used for search/sort handlers
DEFAULT_DEBOUNCE_DELAY = 0.3  # seconds


class Debouncer:
    """
    Time-coalescing wrapper with explicit cancel and flush.

    Usage:
        debounced = Debouncer(store.apply_search, delay=0.3)
        debounced("an")
        debounced("ana")   # replaces the previous call
        await debounced.flush()  # run now instead of waiting

    Must be called from inside a running event loop.
    """

    def __init__(self, func: Callable[..., Any], delay: float = DEFAULT_DEBOUNCE_DELAY):
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.func = func
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}
        self._task: asyncio.Task[Any] | None = None

    @property
    def pending(self) -> bool:
        """True while a call is waiting for its delay to elapse."""
        return self._handle is not None

    @property
    def last_task(self) -> asyncio.Task[Any] | None:
        """Task created by the most recent coroutine invocation, if any."""
        return self._task

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()
        self._args = args
        self._kwargs = kwargs
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> bool:
        """
        Drop the waiting call, if any.

        Returns:
            True if a call was cancelled
        """
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self) -> None:
        self._handle = None
        result = self.func(*self._args, **self._kwargs)
        if inspect.isawaitable(result):
            self._task = asyncio.ensure_future(result)
            self._task.add_done_callback(self._log_task_failure)

    @staticmethod
    def _log_task_failure(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Debounced call failed: {exc}")

    async def flush(self) -> Any:
        """
        Run the waiting call immediately and return its result.

        Returns None when nothing is waiting.
        """
        if self._handle is None:
            return None
        self._handle.cancel()
        self._handle = None
        result = self.func(*self._args, **self._kwargs)
        if inspect.isawaitable(result):
            return await result
        return result
