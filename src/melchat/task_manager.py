"""Lifecycle tracking for the in-flight send and async event-handler tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track named and anonymous background asyncio tasks."""

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._anonymous: set[asyncio.Task[Any]] = set()

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        """Register a task, optionally under a unique name.

        Named tasks replace any prior task with the same name without
        cancelling it; use ``cancel_nowait`` first when the old one must stop.
        Anonymous tasks forget themselves once done.
        """
        if name is not None:
            self._named[name] = task
            task.add_done_callback(lambda done, key=name: self._forget_named(key, done))
        else:
            self._anonymous.add(task)
            task.add_done_callback(self._anonymous.discard)
        task.add_done_callback(self._log_exception)

    def _forget_named(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    def _log_exception(self, task: asyncio.Task[Any]) -> None:
        """Log unhandled task exceptions so they are not silently lost."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.exception",
                extra={
                    "event": "task.exception",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def _running(self) -> list[asyncio.Task[Any]]:
        tracked = [*self._named.values(), *self._anonymous]
        return [task for task in tracked if not task.done()]

    def cancel_nowait(self, name: str) -> asyncio.Task[Any] | None:
        """Stop tracking ``name`` and request its cancellation; returns the task."""
        task = self._named.pop(name, None)
        if task is not None and not task.done():
            task.cancel()
        return task

    async def cancel_all(self) -> None:
        """Cancel every tracked task and wait for all of them."""
        running = self._running()
        self._named.clear()
        self._anonymous.clear()
        for task in running:
            task.cancel()
        if running:
            await asyncio.wait(running)

    async def await_all(self) -> None:
        """Wait without cancelling until no tracked task is running.

        Tasks registered while waiting (e.g. a replacement send) are awaited too.
        """
        while running := self._running():
            await asyncio.wait(running)
