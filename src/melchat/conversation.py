"""Ordered, append-only store of the messages exchanged in the session."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
import logging
from uuid import UUID

from .events import (
    MESSAGE_APPENDED,
    MESSAGE_STATUS_CHANGED,
    EventBus,
    MessageAppendedEvent,
    MessageStatusChangedEvent,
)
from .exceptions import InvalidStatusTransitionError
from .models import Message, SendStatus

LOGGER = logging.getLogger(__name__)


class ConversationStore:
    """Hold the session's messages in insertion order.

    Messages are never removed or edited once appended; only the status of a
    pending message can move to ``sent`` or ``failed``.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._messages: list[Message] = []
        self._index: dict[UUID, int] = {}
        self._event_bus = event_bus

    @property
    def messages(self) -> tuple[Message, ...]:
        """Return a snapshot of all messages in order."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def get(self, message_id: UUID) -> Message | None:
        position = self._index.get(message_id)
        return None if position is None else self._messages[position]

    def pending(self) -> list[Message]:
        """Return every message still in the ``sending`` state."""
        return [message for message in self._messages if message.is_pending]

    def append(self, message: Message) -> Message:
        if message.id in self._index:
            raise ValueError(f"Message {message.id} is already in the conversation.")
        self._index[message.id] = len(self._messages)
        self._messages.append(message)
        if self._event_bus is not None:
            self._event_bus.emit(
                MESSAGE_APPENDED,
                {
                    "payload": MessageAppendedEvent(
                        message=message,
                        index=len(self._messages) - 1,
                        timestamp=datetime.now(timezone.utc),
                    )
                },
                source="conversation",
            )
        return message

    def update_status(self, message_id: UUID, status: SendStatus) -> Message:
        """Move a pending message to a terminal status."""
        message = self.get(message_id)
        if message is None:
            raise KeyError(message_id)
        previous = message.status
        if not previous.can_transition_to(status):
            raise InvalidStatusTransitionError(
                f"Cannot move message {message_id} from {previous.state.value} "
                f"to {status.state.value}."
            )
        message.status = status
        LOGGER.debug(
            "conversation.status.changed",
            extra={
                "event": "conversation.status.changed",
                "message_id": str(message_id),
                "status": status.state.value,
            },
        )
        if self._event_bus is not None:
            self._event_bus.emit(
                MESSAGE_STATUS_CHANGED,
                {
                    "payload": MessageStatusChangedEvent(
                        message_id=message_id,
                        previous=previous,
                        status=status,
                        timestamp=datetime.now(timezone.utc),
                    )
                },
                source="conversation",
            )
        return message
