"""Cancellable timers and tasks owned by one component.

Every timer a sampler, animator or view arms goes through a
:class:`TaskRegistry`.  The registry keys handles per owner/entity, so
re-arming a key replaces the previous timer, and :meth:`TaskRegistry.cancel_all`
drains everything on teardown.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Protocol

_logger = logging.getLogger(__name__)

StepCallback = Callable[[], Awaitable[None] | None]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Single-shot timer source (``loop.call_later`` shaped)."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class LoopScheduler:
    """Scheduler backed by the running asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)


class TaskRegistry:
    """Owner-scoped registry of pending timers and running tasks."""

    def __init__(self, scheduler: Scheduler | None = None, *, name: str = "registry") -> None:
        self._scheduler = scheduler or LoopScheduler()
        self._name = name
        self._timers: dict[str, TimerHandle] = {}
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._closed = False

    @property
    def pending(self) -> int:
        """Armed timers plus tasks still running."""
        return len(self._timers) + sum(1 for task in self._tasks.values() if not task.done())

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def timer_count(self) -> int:
        return len(self._timers)

    def is_scheduled(self, key: str) -> bool:
        return key in self._timers

    def schedule(self, key: str, delay: float, callback: StepCallback) -> None:
        """Arm (or re-arm) the timer for *key*.

        *callback* may be a plain function or return an awaitable; awaitables
        are run as a task tracked under the same key.
        """
        if self._closed:
            _logger.debug("%s: schedule(%s) after close ignored", self._name, key)
            return
        self._cancel_timer(key)
        handle: TimerHandle | None = None

        def _fire() -> None:
            if self._timers.get(key) is not handle:
                return
            del self._timers[key]
            result = callback()
            if inspect.isawaitable(result):
                self.spawn(key, result)

        handle = self._scheduler.call_later(delay, _fire)
        self._timers[key] = handle

    def spawn(self, key: str, awaitable: Awaitable[Any]) -> asyncio.Task[Any] | None:
        """Run *awaitable* as a task tracked under *key*.

        A task still running under the same key is cancelled first.
        """
        if self._closed:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return None
        self._cancel_task(key)
        coro: Coroutine[Any, Any, Any] = awaitable if inspect.iscoroutine(awaitable) else _await(awaitable)
        task = asyncio.ensure_future(coro)
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._on_task_done(k, t))
        return task

    def _on_task_done(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("%s: task %s failed", self._name, key, exc_info=exc)

    def _cancel_timer(self, key: str) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _cancel_task(self, key: str) -> None:
        task = self._tasks.pop(key, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def cancel(self, key: str) -> None:
        """Disarm the timer for *key* and cancel its running task, if any."""
        self._cancel_timer(key)
        self._cancel_task(key)

    def cancel_all(self) -> None:
        """Cancel every timer and task; the registry stays usable."""
        timers = list(self._timers.values())
        self._timers.clear()
        for handle in timers:
            handle.cancel()
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            if not task.done():
                task.cancel()
        if timers or tasks:
            _logger.debug("%s: cancelled %d timers and %d tasks", self._name, len(timers), len(tasks))

    def close(self) -> None:
        """Cancel everything and refuse further scheduling."""
        self.cancel_all()
        self._closed = True


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable
