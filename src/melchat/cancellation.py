"""Explicit cancellation token threaded through the send pipeline."""

from __future__ import annotations

import asyncio

from .exceptions import SendCancelledError


class CancellationToken:
    """One-shot flag checked at every await point of a send.

    The owning task may also be cancelled via ``asyncio``; the token makes the
    cancellation observable to code that only holds the token, and lets a
    completion that still arrives after cancellation be recognised as stale.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SendCancelledError(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()
