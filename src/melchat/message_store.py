"""Bounded, text-only rolling history sent to the chat provider as context."""

from __future__ import annotations

import json

from .providers.wire import WireMessage


class MessageStore:
    """Keep past user/assistant turns for reuse as provider context.

    Only text survives into history: image blocks are stripped when a turn is
    recorded, so the current turn is the only one that can carry images.
    """

    def __init__(self, max_history_messages: int = 200) -> None:
        self.max_history_messages = max(1, max_history_messages)
        self._messages: list[WireMessage] = []

    @property
    def messages(self) -> list[WireMessage]:
        """Return a shallow copy of all stored history entries."""
        return list(self._messages)

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def clear(self) -> None:
        self._messages = []

    def append(self, message: WireMessage) -> None:
        """Append a history-sanitized copy of ``message`` and enforce bounds."""
        if message.role == "system":
            return
        self._messages.append(message.text_only())
        self._trim_by_history_limit()

    def append_exchange(self, user_message: WireMessage, reply: str) -> None:
        """Record one completed turn: the user message then the assistant reply."""
        self.append(user_message)
        self.append(WireMessage.of_text("assistant", reply))

    def window(self, turns: int) -> list[WireMessage]:
        """Return the last ``turns`` stored entries, oldest first.

        Entries are individual user/assistant messages, not user+assistant pairs.
        """
        if turns <= 0:
            return []
        return [message.model_copy(deep=True) for message in self._messages[-turns:]]

    def export_json(self) -> str:
        """Export current history using stable list and field ordering."""
        stable_messages = [
            {"role": message.role, "text": message.plain_text}
            for message in self._messages
        ]
        return json.dumps(
            stable_messages, ensure_ascii=False, separators=(",", ":"), sort_keys=False
        )

    def _trim_by_history_limit(self) -> None:
        """Enforce max_history_messages by slicing, not repeated deletion."""
        if len(self._messages) <= self.max_history_messages:
            return
        self._messages = self._messages[-self.max_history_messages :]
