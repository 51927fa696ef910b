"""Tests for the domain exception hierarchy and user-facing error text."""

from __future__ import annotations

import asyncio
import unittest

from melchat.exceptions import (
    ConfigValidationError,
    EmptyCompletionError,
    ImageDecodeError,
    InvalidStatusTransitionError,
    MelChatError,
    ProviderError,
    ProviderHTTPError,
    ProviderNotConfiguredError,
    ProviderOfflineError,
    ProviderProtocolError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
    SendCancelledError,
)
from melchat.humanize import humanize_chat_error, humanize_search_error, no_summary_found


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for cls in (
            ConfigValidationError,
            ImageDecodeError,
            InvalidStatusTransitionError,
            SendCancelledError,
            ProviderError,
        ):
            self.assertTrue(issubclass(cls, MelChatError))
        self.assertTrue(issubclass(ProviderNotConfiguredError, ProviderError))
        self.assertTrue(issubclass(ProviderTimeoutError, ProviderTransportError))
        self.assertTrue(issubclass(ProviderOfflineError, ProviderTransportError))
        for cls in (ProviderHTTPError, ProviderResponseError, EmptyCompletionError):
            self.assertTrue(issubclass(cls, ProviderProtocolError))

    def test_provider_error_records_provider(self) -> None:
        exc = ProviderHTTPError(404, "Not found", provider="openrouter")
        self.assertEqual(exc.provider, "openrouter")
        self.assertEqual(exc.status_code, 404)
        self.assertEqual(exc.detail, "Not found")


class HumanizeChatErrorTests(unittest.TestCase):
    def test_status_codes_map_to_fixed_text(self) -> None:
        expected = {
            401: "Invalid API key.",
            402: "Credits required.",
            403: "Access denied.",
            404: "Model not found.",
            409: "Service conflict.",
            429: "Too many requests. Try again.",
            500: "Service outage. Try again.",
            503: "Service outage. Try again.",
        }
        for status, text in expected.items():
            with self.subTest(status=status):
                self.assertEqual(humanize_chat_error(ProviderHTTPError(status, "raw")), text)

    def test_transport_and_configuration_failures(self) -> None:
        self.assertEqual(
            humanize_chat_error(ProviderTimeoutError("t")), "Request timed out. Try again."
        )
        self.assertEqual(
            humanize_chat_error(ProviderOfflineError("o")), "You're offline. Check your connection."
        )
        self.assertEqual(humanize_chat_error(ProviderNotConfiguredError("k")), "API key missing.")

    def test_cancellation_and_fallback(self) -> None:
        self.assertEqual(humanize_chat_error(SendCancelledError("x")), "Cancelled")
        self.assertEqual(humanize_chat_error(asyncio.CancelledError()), "Cancelled")
        self.assertEqual(
            humanize_chat_error(EmptyCompletionError("Empty completion.")),
            "Oops. I couldn't answer. Try again.",
        )
        self.assertEqual(humanize_chat_error(RuntimeError("boom")), "Oops. I couldn't answer. Try again.")

    def test_unmapped_provider_failures_keep_their_detail(self) -> None:
        self.assertEqual(humanize_chat_error(ProviderHTTPError(418, "teapot")), "teapot")
        self.assertEqual(
            humanize_chat_error(ProviderHTTPError(400, "Invalid model id")), "Invalid model id"
        )
        self.assertEqual(
            humanize_chat_error(ProviderResponseError("Context length exceeded")),
            "Context length exceeded",
        )
        self.assertEqual(
            humanize_chat_error(ProviderHTTPError(400, "  ")),
            "Oops. I couldn't answer. Try again.",
        )


class HumanizeSearchErrorTests(unittest.TestCase):
    def test_provider_detail_is_shown(self) -> None:
        self.assertEqual(humanize_search_error(ProviderHTTPError(400, "bad query")), "bad query")
        self.assertEqual(humanize_search_error(ProviderResponseError("Malformed")), "Malformed")

    def test_fixed_texts(self) -> None:
        self.assertEqual(
            humanize_search_error(ProviderNotConfiguredError("k")), "Search API key missing."
        )
        self.assertEqual(humanize_search_error(ProviderHTTPError(502, "  ")), "Search error.")
        self.assertEqual(humanize_search_error(ValueError("x")), "Search error.")
        self.assertEqual(humanize_search_error(SendCancelledError("x")), "Cancelled")

    def test_no_summary_text_includes_query(self) -> None:
        self.assertEqual(no_summary_found("mars"), 'No summary found for "mars".')


if __name__ == "__main__":
    unittest.main()
