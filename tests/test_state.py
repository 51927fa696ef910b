"""Tests for observable orchestrator state transitions."""

from __future__ import annotations

import unittest

from melchat.events import STATE_CHANGED, Event, EventBus
from melchat.state import AIState, StateManager


class StateManagerTests(unittest.TestCase):
    """Validate transitions, error detail and change notifications."""

    def test_starts_idle(self) -> None:
        manager = StateManager()
        self.assertIs(manager.state, AIState.IDLE)
        self.assertIsNone(manager.detail)

    def test_error_state_carries_detail(self) -> None:
        manager = StateManager()
        manager.transition_to(AIState.ERROR, "Invalid API key.")
        self.assertEqual(manager.detail, "Invalid API key.")
        manager.reset()
        self.assertIs(manager.state, AIState.IDLE)
        self.assertIsNone(manager.detail)

    def test_detail_is_ignored_outside_error(self) -> None:
        manager = StateManager()
        manager.transition_to(AIState.THINKING, "ignored")
        self.assertIsNone(manager.detail)

    def test_changes_are_published_once(self) -> None:
        bus = EventBus()
        seen: list[Event] = []
        bus.subscribe(STATE_CHANGED, seen.append)
        manager = StateManager(bus)

        manager.transition_to(AIState.THINKING)
        manager.transition_to(AIState.THINKING)
        manager.transition_to(AIState.ERROR, "Request timed out. Try again.")

        payloads = [event.data["payload"] for event in seen]
        self.assertEqual([(p.previous, p.state) for p in payloads], [("idle", "thinking"), ("thinking", "error")])
        self.assertEqual(payloads[-1].detail, "Request timed out. Try again.")


if __name__ == "__main__":
    unittest.main()
