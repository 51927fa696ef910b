"""Explicit subscribe/unsubscribe notifications for UI observers."""

from .bus import (
    MESSAGE_APPENDED,
    MESSAGE_STATUS_CHANGED,
    STATE_CHANGED,
    Event,
    EventBus,
)
from .domain import MessageAppendedEvent, MessageStatusChangedEvent, StateChangedEvent

__all__ = [
    "EventBus",
    "Event",
    "MESSAGE_APPENDED",
    "MESSAGE_STATUS_CHANGED",
    "STATE_CHANGED",
    "MessageAppendedEvent",
    "MessageStatusChangedEvent",
    "StateChangedEvent",
]
