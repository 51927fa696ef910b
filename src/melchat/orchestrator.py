"""Conversation orchestration: one in-flight send, chat vs. search, per-message status.

All public methods run on the event loop that owns the conversation (the
"main" context). Image work runs on worker threads via ``asyncio.to_thread``
and network calls are awaited; their results are applied back on the loop
only while the send is still the current one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
import logging
from typing import Any, Protocol, TypeVar
from uuid import UUID

from .cancellation import CancellationToken
from .config import AIConfig, Config, build_config
from .conversation import ConversationStore
from .events import EventBus
from .exceptions import SendCancelledError
from .humanize import (
    CANCELLED,
    SEARCH_KEY_MISSING,
    humanize_chat_error,
    humanize_search_error,
    no_summary_found,
)
from .image_cache import ImageCache
from .message_store import MessageStore
from .models import MAX_IMAGES_PER_MESSAGE, Message, SendState, SendStatus
from .providers.exa import ExaClient, SearchAnswer
from .providers.openrouter import OpenRouterClient
from .providers.wire import WireMessage, build_user_message
from .state import AIState, StateManager
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SEND_TASK = "send"
SEARCH_RESULT_LIMIT = 5

# Condensed persona; pass ``system_prompt`` to supply the full character brief.
DEFAULT_SYSTEM_PROMPT = """\
You are Alyn, a warm, witty and concise conversational companion. Keep replies \
short, usually under three sentences, and leave room for the user to talk. \
Match the user's tone, be honest rather than flattering, and say so when you \
don't know something. When the user shares a photo, describe what matters in \
it briefly before responding. Do not use emojis, annotations or stage \
directions, and do not break character."""

NAME_INTRO_PATTERNS: tuple[str, ...] = (
    "je suis ",
    "i'm ",
    "my name is ",
    "je m'appelle ",
    "call me ",
)


class ChatProvider(Protocol):
    @property
    def is_configured(self) -> bool: ...

    async def generate(
        self,
        system_prompt: str,
        user_text: str,
        user_images: Sequence[bytes] = (),
        history: Sequence[WireMessage] = (),
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> str: ...


class SearchProvider(Protocol):
    @property
    def is_configured(self) -> bool: ...

    async def answer(self, query: str, limit: int = 5) -> SearchAnswer: ...


def extract_user_name(text: str) -> str | None:
    """Return the token following the first introduction phrase, if any."""
    lowered = text.lower()
    for pattern in NAME_INTRO_PATTERNS:
        position = lowered.find(pattern)
        if position < 0:
            continue
        rest = text[position + len(pattern) :].split()
        candidate = rest[0].strip(".,!?;:") if rest else ""
        if len(candidate) > 1:
            return candidate.capitalize()
    return None


@dataclass
class _InFlightSend:
    message_id: UUID
    token: CancellationToken


class ConversationOrchestrator:
    """Coordinate the conversation store, image cache and provider clients."""

    def __init__(
        self,
        chat_client: ChatProvider,
        search_client: SearchProvider,
        image_cache: ImageCache,
        *,
        config: AIConfig | None = None,
        event_bus: EventBus | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_history_messages: int = 200,
        search_limit: int = SEARCH_RESULT_LIMIT,
    ) -> None:
        self.chat_client = chat_client
        self.search_client = search_client
        self.image_cache = image_cache
        self.config = config or AIConfig()
        self.system_prompt = system_prompt
        self.search_limit = search_limit
        self.tasks = TaskManager()
        self.events = event_bus or EventBus(self.tasks)
        self.conversation = ConversationStore(self.events)
        self.history = MessageStore(max_history_messages=max_history_messages)
        self.state_manager = StateManager(self.events)
        self.user_name: str | None = None
        self._in_flight: _InFlightSend | None = None
        self._attachments: list[bytes] = []

    @classmethod
    def from_config(
        cls,
        config: Config | dict[str, Any],
        *,
        event_bus: EventBus | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> ConversationOrchestrator:
        """Composition root: build the cache and both clients from config."""
        typed = config if isinstance(config, Config) else build_config(config)
        return cls(
            OpenRouterClient.from_config(typed.openrouter.model_dump()),
            ExaClient.from_config(typed.exa.model_dump()),
            ImageCache(typed.image_cache),
            config=typed.ai,
            event_bus=event_bus,
            system_prompt=system_prompt,
            search_limit=typed.exa.answer_limit,
        )

    # -- Observable surface -------------------------------------------------

    @property
    def current_state(self) -> AIState:
        return self.state_manager.state

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.conversation.messages

    @property
    def is_available(self) -> bool:
        return self.chat_client.is_configured

    @property
    def is_sending(self) -> bool:
        return self._in_flight is not None

    @property
    def pending_attachments(self) -> tuple[bytes, ...]:
        return tuple(self._attachments)

    def subscribe(self, event_name: str, handler: Callable) -> None:
        self.events.subscribe(event_name, handler)

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        self.events.unsubscribe(event_name, handler)

    # -- Attachments ------------------------------------------------------

    async def attach_image(self, data: bytes) -> bool:
        """Downscale and queue an image for the next send; False when full."""
        if len(self._attachments) >= MAX_IMAGES_PER_MESSAGE:
            return False
        downscaled = await asyncio.to_thread(self.image_cache.codec.early_downscale, data)
        if len(self._attachments) >= MAX_IMAGES_PER_MESSAGE:
            return False
        self._attachments.append(downscaled)
        LOGGER.debug(
            "orchestrator.attachment.added",
            extra={
                "event": "orchestrator.attachment.added",
                "original_bytes": len(data),
                "queued_bytes": len(downscaled),
            },
        )
        return True

    def clear_attachments(self) -> None:
        self._attachments.clear()

    # -- Sending ----------------------------------------------------------

    def submit_message(
        self,
        text: str | None,
        images: Sequence[bytes] | None = None,
        is_search: bool = False,
    ) -> Message | None:
        """Append the user message and start sending it in the background.

        ``images=None`` sends whatever is queued via ``attach_image``. Returns
        the appended message, or ``None`` when there was nothing to send.
        Must be called from the owning event loop.
        """
        cfg = self.config
        cleaned = (text or "").strip()
        outgoing = list(self._attachments) if images is None else list(images)
        if not cleaned and not outgoing:
            return None
        if len(outgoing) > MAX_IMAGES_PER_MESSAGE:
            LOGGER.warning(
                "orchestrator.images.truncated",
                extra={
                    "event": "orchestrator.images.truncated",
                    "received": len(outgoing),
                    "kept": MAX_IMAGES_PER_MESSAGE,
                },
            )
            outgoing = outgoing[:MAX_IMAGES_PER_MESSAGE]
        cleaned = cleaned[: cfg.max_user_chars]
        if is_search and not cleaned:
            is_search = False

        self._cancel_in_flight()
        message = Message.user(cleaned or None, outgoing, is_search_query=is_search)
        self.conversation.append(message)
        self._attachments.clear()
        LOGGER.info(
            "orchestrator.send.start",
            extra={
                "event": "orchestrator.send.start",
                "message_id": str(message.id),
                "mode": "search" if is_search else "chat",
                "chars": len(cleaned),
                "images": len(outgoing),
            },
        )

        if is_search and not self.search_client.is_configured:
            self._fail(message.id, SEARCH_KEY_MISSING)
            self.state_manager.transition_to(AIState.ERROR, SEARCH_KEY_MISSING)
            return message

        token = CancellationToken()
        self._in_flight = _InFlightSend(message.id, token)
        self.state_manager.transition_to(AIState.THINKING)
        if is_search:
            coro = self._run_search(message.id, cleaned, token)
        else:
            coro = self._run_chat(message.id, cleaned, outgoing, cfg, token)
        task = asyncio.create_task(coro, name=f"send-{message.id}")
        self.tasks.add(task, name=SEND_TASK)
        return message

    def retry_message(self, message_id: UUID) -> Message | None:
        """Resubmit a failed user message as a new send."""
        original = self.conversation.get(message_id)
        if (
            original is None
            or not original.is_from_user
            or original.status.state is not SendState.FAILED
        ):
            return None
        return self.submit_message(
            original.text or "",
            list(original.images or ()),
            original.is_search_query,
        )

    def cancel_current_send(self) -> bool:
        """Abort the in-flight send, if any, and return to ``idle``."""
        cancelled = self._cancel_in_flight()
        self.state_manager.transition_to(AIState.IDLE)
        return cancelled

    def reset_state(self) -> None:
        self.state_manager.reset()

    async def drain(self) -> None:
        """Wait until the in-flight send and any async event handlers have finished."""
        await self.tasks.await_all()
        if self.events.tasks is not self.tasks:
            await self.events.drain()

    async def aclose(self) -> None:
        self._cancel_in_flight()
        await self.tasks.cancel_all()
        for client in (self.chat_client, self.search_client):
            closer = getattr(client, "aclose", None)
            if closer is not None:
                await closer()

    # -- Pipeline ---------------------------------------------------------

    def _cancel_in_flight(self) -> bool:
        in_flight = self._in_flight
        if in_flight is None:
            return False
        self._in_flight = None
        in_flight.token.cancel(CANCELLED)
        self.tasks.cancel_nowait(SEND_TASK)
        self._fail(in_flight.message_id, CANCELLED)
        LOGGER.info(
            "orchestrator.send.cancelled",
            extra={
                "event": "orchestrator.send.cancelled",
                "message_id": str(in_flight.message_id),
            },
        )
        return True

    def _is_current(self, message_id: UUID, token: CancellationToken) -> bool:
        return (
            self._in_flight is not None
            and self._in_flight.message_id == message_id
            and not token.cancelled
        )

    def _fail(self, message_id: UUID, reason: str) -> None:
        message = self.conversation.get(message_id)
        if message is not None and message.is_pending:
            self.conversation.update_status(message_id, SendStatus.failed(reason))

    def _complete(self, message_id: UUID, reply: str) -> None:
        self.conversation.update_status(message_id, SendStatus.sent())
        self.conversation.append(Message.assistant(reply))
        self._in_flight = None
        self.state_manager.transition_to(AIState.IDLE)

    def _finish_failed(self, message_id: UUID, reason: str, exc: BaseException) -> None:
        LOGGER.warning(
            "orchestrator.send.failed",
            extra={
                "event": "orchestrator.send.failed",
                "message_id": str(message_id),
                "error_type": type(exc).__name__,
                "reason": reason,
            },
        )
        self._fail(message_id, reason)
        self._in_flight = None
        self.state_manager.transition_to(AIState.ERROR, reason)

    def _drop_stale(self, message_id: UUID) -> None:
        LOGGER.info(
            "orchestrator.send.stale_result",
            extra={"event": "orchestrator.send.stale_result", "message_id": str(message_id)},
        )

    async def _until_cancelled(self, awaitable: Awaitable[T], token: CancellationToken) -> T:
        """Await ``awaitable`` unless ``token`` fires first."""
        token.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()
        if token.cancelled:
            work.cancel()
            token.raise_if_cancelled()
        return work.result()

    def _compress_all(self, images: Sequence[bytes], cfg: AIConfig) -> list[bytes]:
        return [self.image_cache.compressed_data(data, cfg) for data in images]

    async def _run_chat(
        self,
        message_id: UUID,
        text: str,
        images: Sequence[bytes],
        cfg: AIConfig,
        token: CancellationToken,
    ) -> None:
        try:
            compressed = await self._until_cancelled(
                asyncio.to_thread(self._compress_all, images, cfg), token
            )
            user_message = build_user_message(text or None, compressed)
            if self.user_name is None and text:
                self.user_name = extract_user_name(text)
            history = self.history.window(cfg.history_turns)
            token.raise_if_cancelled()
            self.state_manager.transition_to(AIState.RESPONDING)
            reply = await self._until_cancelled(
                self.chat_client.generate(
                    self.system_prompt,
                    text,
                    compressed,
                    history,
                    cfg.max_output_tokens,
                    cfg.temperature,
                ),
                token,
            )
        except SendCancelledError:
            self._drop_stale(message_id)
            return
        except asyncio.CancelledError:
            if self._is_current(message_id, token):
                self._finish_failed(message_id, CANCELLED, SendCancelledError(CANCELLED))
            raise
        except Exception as exc:  # noqa: BLE001 - every provider failure ends up on the message.
            if self._is_current(message_id, token):
                self._finish_failed(message_id, humanize_chat_error(exc), exc)
            else:
                self._drop_stale(message_id)
            return

        if not self._is_current(message_id, token):
            self._drop_stale(message_id)
            return
        self._complete(message_id, reply)
        self.history.append_exchange(user_message, reply)
        LOGGER.info(
            "orchestrator.send.complete",
            extra={
                "event": "orchestrator.send.complete",
                "message_id": str(message_id),
                "reply_chars": len(reply),
            },
        )

    async def _run_search(
        self, message_id: UUID, query: str, token: CancellationToken
    ) -> None:
        try:
            self.state_manager.transition_to(AIState.RESPONDING)
            answer = await self._until_cancelled(
                self.search_client.answer(query, self.search_limit), token
            )
        except SendCancelledError:
            self._drop_stale(message_id)
            return
        except asyncio.CancelledError:
            if self._is_current(message_id, token):
                self._finish_failed(message_id, CANCELLED, SendCancelledError(CANCELLED))
            raise
        except Exception as exc:  # noqa: BLE001 - every provider failure ends up on the message.
            if self._is_current(message_id, token):
                self._finish_failed(message_id, humanize_search_error(exc), exc)
            else:
                self._drop_stale(message_id)
            return

        if not self._is_current(message_id, token):
            self._drop_stale(message_id)
            return
        summary = answer.answer.strip()
        # Citations are fetched but not rendered.
        LOGGER.info(
            "orchestrator.search.complete",
            extra={
                "event": "orchestrator.search.complete",
                "message_id": str(message_id),
                "citations": len(answer.citations),
                "empty_answer": not summary,
            },
        )
        self._complete(message_id, summary or no_summary_found(query))
