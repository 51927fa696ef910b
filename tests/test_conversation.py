"""Tests for messages, send statuses and the conversation store."""

from __future__ import annotations

import unittest
from uuid import uuid4

from melchat.events import (
    MESSAGE_APPENDED,
    MESSAGE_STATUS_CHANGED,
    Event,
    EventBus,
)
from melchat.conversation import ConversationStore
from melchat.exceptions import InvalidStatusTransitionError
from melchat.models import Message, SendState, SendStatus


class MessageTests(unittest.TestCase):
    def test_user_message_starts_sending(self) -> None:
        message = Message.user("hello")
        self.assertTrue(message.is_from_user)
        self.assertEqual(message.status, SendStatus.sending())
        self.assertTrue(message.is_pending)
        self.assertIsNone(message.images)

    def test_user_message_requires_text_or_image(self) -> None:
        with self.assertRaises(ValueError):
            Message.user("", [])
        with self.assertRaises(ValueError):
            Message.user(None, None)

    def test_image_only_message_has_no_text(self) -> None:
        message = Message.user("", [b"img"])
        self.assertIsNone(message.text)
        self.assertTrue(message.has_images)

    def test_user_message_keeps_at_most_three_images(self) -> None:
        message = Message.user("pics", [b"1", b"2", b"3", b"4"])
        self.assertEqual(message.images, (b"1", b"2", b"3"))

    def test_assistant_message_is_sent_text(self) -> None:
        message = Message.assistant("hi there")
        self.assertFalse(message.is_from_user)
        self.assertEqual(message.status.state, SendState.SENT)
        self.assertIsNone(message.images)

    def test_identity_is_by_id(self) -> None:
        first = Message.user("same")
        second = Message.user("same")
        self.assertNotEqual(first, second)
        self.assertEqual(len({first, first, second}), 2)

    def test_identity_fields_are_read_only(self) -> None:
        message = Message.user("hello", [b"img"])
        for name, value in (
            ("id", Message.user("other").id),
            ("timestamp", message.timestamp),
            ("is_from_user", False),
            ("text", "edited"),
            ("images", None),
            ("is_search_query", True),
        ):
            with self.subTest(field=name):
                with self.assertRaises(AttributeError):
                    setattr(message, name, value)
        self.assertEqual(message.text, "hello")
        self.assertTrue(message.is_from_user)

    def test_status_changes_through_the_store(self) -> None:
        store = ConversationStore()
        message = store.append(Message.user("hi"))
        store.update_status(message.id, SendStatus.sent())
        self.assertEqual(message.status, SendStatus.sent())

    def test_terminal_statuses_never_move(self) -> None:
        self.assertTrue(SendStatus.sending().can_transition_to(SendStatus.sent()))
        self.assertTrue(SendStatus.sending().can_transition_to(SendStatus.failed("x")))
        self.assertFalse(SendStatus.sending().can_transition_to(SendStatus.sending()))
        self.assertFalse(SendStatus.sent().can_transition_to(SendStatus.failed("x")))
        self.assertFalse(SendStatus.failed("x").can_transition_to(SendStatus.sent()))


class ConversationStoreTests(unittest.TestCase):
    """Validate ordering, status monotonicity and change notifications."""

    def test_append_preserves_order(self) -> None:
        store = ConversationStore()
        first = store.append(Message.user("one"))
        second = store.append(Message.assistant("two"))
        self.assertEqual(store.messages, (first, second))
        self.assertEqual(len(store), 2)
        self.assertIs(store.get(second.id), second)
        self.assertIsNone(store.get(uuid4()))

    def test_duplicate_append_is_rejected(self) -> None:
        store = ConversationStore()
        message = store.append(Message.user("one"))
        with self.assertRaises(ValueError):
            store.append(message)

    def test_update_status_moves_pending_message_once(self) -> None:
        store = ConversationStore()
        message = store.append(Message.user("hi"))
        store.update_status(message.id, SendStatus.failed("Cancelled"))
        self.assertEqual(message.status.reason, "Cancelled")
        self.assertEqual(store.pending(), [])
        with self.assertRaises(InvalidStatusTransitionError):
            store.update_status(message.id, SendStatus.sent())

    def test_update_status_unknown_id_raises(self) -> None:
        store = ConversationStore()
        with self.assertRaises(KeyError):
            store.update_status(uuid4(), SendStatus.sent())

    def test_events_are_emitted_for_append_and_status(self) -> None:
        bus = EventBus()
        seen: list[Event] = []
        bus.subscribe(MESSAGE_APPENDED, seen.append)
        bus.subscribe(MESSAGE_STATUS_CHANGED, seen.append)
        store = ConversationStore(bus)

        message = store.append(Message.user("hi"))
        store.update_status(message.id, SendStatus.sent())

        self.assertEqual([event.name for event in seen], [MESSAGE_APPENDED, MESSAGE_STATUS_CHANGED])
        appended = seen[0].data["payload"]
        self.assertIs(appended.message, message)
        self.assertEqual(appended.index, 0)
        changed = seen[1].data["payload"]
        self.assertEqual(changed.message_id, message.id)
        self.assertEqual(changed.previous, SendStatus.sending())
        self.assertEqual(changed.status, SendStatus.sent())


if __name__ == "__main__":
    unittest.main()
