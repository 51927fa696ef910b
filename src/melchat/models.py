"""Message and send-status types shared by the store, orchestrator and UI."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

MAX_IMAGES_PER_MESSAGE = 3
# Only ``status`` may change after construction, and only through the store.
READ_ONLY_MESSAGE_FIELDS = frozenset(
    {"text", "images", "is_from_user", "is_search_query", "id", "timestamp"}
)


class SendState(str, Enum):
    """Lifecycle of a single message send."""

    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class SendStatus:
    """Per-message send status; ``reason`` is only meaningful for failures."""

    state: SendState
    reason: str | None = None

    @classmethod
    def sending(cls) -> SendStatus:
        return cls(SendState.SENDING)

    @classmethod
    def sent(cls) -> SendStatus:
        return cls(SendState.SENT)

    @classmethod
    def failed(cls, reason: str | None = None) -> SendStatus:
        return cls(SendState.FAILED, reason)

    @property
    def is_terminal(self) -> bool:
        return self.state is not SendState.SENDING

    def can_transition_to(self, new_status: SendStatus) -> bool:
        """Only ``sending`` may move, and only to a terminal status."""
        return not self.is_terminal and new_status.is_terminal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class Message:
    """One exchanged turn: text, images, or both, under a single timestamp."""

    text: str | None = None
    images: tuple[bytes, ...] | None = None
    is_from_user: bool = True
    status: SendStatus = field(default_factory=SendStatus.sent)
    is_search_query: bool = False
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.text is not None and self.text == "":
            object.__setattr__(self, "text", None)
        if self.images is not None:
            object.__setattr__(self, "images", tuple(self.images) or None)

    def __setattr__(self, name: str, value: object) -> None:
        if name in READ_ONLY_MESSAGE_FIELDS and name in self.__dict__:
            raise AttributeError(f"Message.{name} is read-only")
        object.__setattr__(self, name, value)

    @classmethod
    def user(
        cls,
        text: str | None,
        images: Sequence[bytes] | None = None,
        *,
        is_search_query: bool = False,
    ) -> Message:
        """Build an outgoing user message in the ``sending`` state."""
        normalized_images = tuple(images or ())[:MAX_IMAGES_PER_MESSAGE]
        if not text and not normalized_images:
            raise ValueError("A user message needs text or at least one image.")
        return cls(
            text=text,
            images=normalized_images,
            is_from_user=True,
            status=SendStatus.sending(),
            is_search_query=is_search_query,
        )

    @classmethod
    def assistant(cls, text: str) -> Message:
        """Build a text-only AI reply."""
        return cls(text=text, images=None, is_from_user=False, status=SendStatus.sent())

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    @property
    def is_pending(self) -> bool:
        return self.status.state is SendState.SENDING

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
