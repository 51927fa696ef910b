from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from ..models import Message, SendStatus


@dataclass
class MessageAppendedEvent:
    message: Message
    index: int
    timestamp: datetime


@dataclass
class MessageStatusChangedEvent:
    message_id: UUID
    previous: SendStatus
    status: SendStatus
    timestamp: datetime


@dataclass
class StateChangedEvent:
    previous: str
    state: str
    detail: str | None
    timestamp: datetime
