"""Observable orchestrator state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import logging

from .events import STATE_CHANGED, EventBus, StateChangedEvent

LOGGER = logging.getLogger(__name__)


class AIState(str, Enum):
    """What the assistant is doing right now, as shown by the UI."""

    IDLE = "idle"
    THINKING = "thinking"
    RESPONDING = "responding"
    ERROR = "error"


class StateManager:
    """Hold the current ``AIState`` and notify subscribers of changes.

    Transitions run on the main context only, so no locking is needed.
    """

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._state = AIState.IDLE
        self._detail: str | None = None
        self._event_bus = event_bus

    @property
    def state(self) -> AIState:
        return self._state

    @property
    def detail(self) -> str | None:
        """Error text attached to the ``error`` state, else ``None``."""
        return self._detail

    def transition_to(self, new_state: AIState, detail: str | None = None) -> AIState:
        previous = self._state
        self._state = new_state
        self._detail = detail if new_state is AIState.ERROR else None
        if previous is new_state:
            return new_state
        LOGGER.debug(
            "state.transition",
            extra={
                "event": "state.transition",
                "from_state": previous.value,
                "to_state": new_state.value,
            },
        )
        if self._event_bus is not None:
            self._event_bus.emit(
                STATE_CHANGED,
                {
                    "payload": StateChangedEvent(
                        previous=previous.value,
                        state=new_state.value,
                        detail=self._detail,
                        timestamp=datetime.now(timezone.utc),
                    )
                },
                source="state",
            )
        return new_state

    def reset(self) -> None:
        self.transition_to(AIState.IDLE)
