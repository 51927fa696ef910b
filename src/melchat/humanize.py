"""Turn provider/pipeline exceptions into short user-facing status text."""

from __future__ import annotations

import asyncio

from .exceptions import (
    ProviderHTTPError,
    ProviderNotConfiguredError,
    ProviderOfflineError,
    ProviderProtocolError,
    ProviderResponseError,
    ProviderTimeoutError,
    SendCancelledError,
)

CANCELLED = "Cancelled"
TIMED_OUT = "Request timed out. Try again."
OFFLINE = "You're offline. Check your connection."
CHAT_KEY_MISSING = "API key missing."
SEARCH_KEY_MISSING = "Search API key missing."
GENERIC_CHAT_FAILURE = "Oops. I couldn't answer. Try again."
GENERIC_SEARCH_FAILURE = "Search error."

HTTP_STATUS_MESSAGES: dict[int, str] = {
    401: "Invalid API key.",
    402: "Credits required.",
    403: "Access denied.",
    404: "Model not found.",
    409: "Service conflict.",
    429: "Too many requests. Try again.",
}
SERVER_ERROR_MESSAGE = "Service outage. Try again."


def no_summary_found(query: str) -> str:
    return f'No summary found for "{query}".'


def _is_cancellation(exc: BaseException) -> bool:
    return isinstance(exc, (SendCancelledError, asyncio.CancelledError))


def humanize_chat_error(exc: BaseException) -> str:
    """Fixed mapping for chat-flow failures, else the provider's own detail."""
    if _is_cancellation(exc):
        return CANCELLED
    if isinstance(exc, ProviderTimeoutError):
        return TIMED_OUT
    if isinstance(exc, ProviderOfflineError):
        return OFFLINE
    if isinstance(exc, ProviderNotConfiguredError):
        return CHAT_KEY_MISSING
    if isinstance(exc, ProviderHTTPError):
        if exc.status_code in HTTP_STATUS_MESSAGES:
            return HTTP_STATUS_MESSAGES[exc.status_code]
        if 500 <= exc.status_code <= 599:
            return SERVER_ERROR_MESSAGE
    if isinstance(exc, (ProviderHTTPError, ProviderResponseError)):
        detail = str(exc).strip()
        return detail or GENERIC_CHAT_FAILURE
    return GENERIC_CHAT_FAILURE


def humanize_search_error(exc: BaseException) -> str:
    """Search failures surface the provider's own detail when there is one."""
    if _is_cancellation(exc):
        return CANCELLED
    if isinstance(exc, ProviderNotConfiguredError):
        return SEARCH_KEY_MISSING
    if isinstance(exc, ProviderTimeoutError):
        return TIMED_OUT
    if isinstance(exc, ProviderOfflineError):
        return OFFLINE
    if isinstance(exc, ProviderProtocolError):
        detail = str(exc).strip()
        return detail or GENERIC_SEARCH_FAILURE
    return GENERIC_SEARCH_FAILURE
