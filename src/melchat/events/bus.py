"""Event bus for decoupled UI/orchestrator communication.

Usage:
    bus = EventBus()

    def on_status(event):
        print(event.data["payload"].message_id, event.data["payload"].status)

    bus.subscribe(MESSAGE_STATUS_CHANGED, on_status)
    bus.emit(MESSAGE_STATUS_CHANGED, {"payload": ...})
    bus.unsubscribe(MESSAGE_STATUS_CHANGED, on_status)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import inspect
import logging
from typing import Any

from ..task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

MESSAGE_APPENDED = "message.appended"
MESSAGE_STATUS_CHANGED = "message.status_changed"
STATE_CHANGED = "state.changed"


@dataclass
class Event:
    """Event data container."""

    name: str
    data: dict[str, Any]
    source: str | None = None


class EventBus:
    """Simple event bus for publish/subscribe pattern.

    Handlers may be plain callables or coroutine functions. Coroutine handlers
    run as tasks tracked by ``tasks``. A failing handler is logged and never
    interrupts delivery to the remaining subscribers.
    """

    def __init__(self, task_manager: TaskManager | None = None) -> None:
        self._subscribers: dict[str, list[Callable]] = {}
        self.tasks = task_manager or TaskManager()

    def subscribe(self, event_name: str, handler: Callable) -> None:
        """Subscribe to an event.

        Args:
            event_name: Event to listen for (e.g., "message.appended")
            handler: Function called with the ``Event`` when it is published
        """
        self._subscribers.setdefault(event_name, []).append(handler)
        LOGGER.debug("Subscribed to event: %s", event_name)

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        """Unsubscribe from an event.

        Args:
            event_name: Event to stop listening to
            handler: Handler function to remove
        """
        if event_name in self._subscribers:
            try:
                self._subscribers[event_name].remove(handler)
                LOGGER.debug("Unsubscribed from event: %s", event_name)
            except ValueError:
                pass

    def subscriber_count(self, event_name: str) -> int:
        return len(self._subscribers.get(event_name, []))

    def _handler_failed(self, event_name: str, exc: Exception) -> None:
        LOGGER.error(
            "event.handler.failed",
            extra={
                "event": "event.handler.failed",
                "event_name": event_name,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )

    async def _run_async_handler(self, handler: Callable, event: Event) -> None:
        try:
            await handler(event)
        except Exception as exc:  # noqa: BLE001 - subscribers must not break publishers.
            self._handler_failed(event.name, exc)

    def emit(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        """Deliver an event synchronously from the owning (main) context.

        Async handlers are scheduled on the running loop and registered with
        ``tasks``; without a running loop they are skipped with a warning.
        """
        event = Event(name=event_name, data=data, source=source)
        for handler in list(self._subscribers.get(event_name, [])):
            if inspect.iscoroutinefunction(handler):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    LOGGER.warning(
                        "event.handler.skipped",
                        extra={
                            "event": "event.handler.skipped",
                            "event_name": event_name,
                        },
                    )
                    continue
                self.tasks.add(loop.create_task(self._run_async_handler(handler, event)))
                continue
            try:
                handler(event)
            except Exception as exc:  # noqa: BLE001 - subscribers must not break publishers.
                self._handler_failed(event_name, exc)

    async def drain(self) -> None:
        """Wait until every scheduled async handler has finished."""
        await self.tasks.await_all()

    def clear(self, event_name: str | None = None) -> None:
        """Clear subscribers for one event, or all of them."""
        if event_name:
            self._subscribers.pop(event_name, None)
        else:
            self._subscribers.clear()
