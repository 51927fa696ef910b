"""Tests for the Exa search/answer client and its tolerant parsing."""

from __future__ import annotations

import json
import unittest

import httpx

from melchat.exceptions import (
    ProviderHTTPError,
    ProviderNotConfiguredError,
    ProviderOfflineError,
    ProviderResponseError,
)
from melchat.humanize import humanize_search_error
from melchat.providers.exa import ExaClient, SearchResult, parse_answer


class RecordingTransport:
    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def make_client(handler, api_key: str = "exa-test") -> ExaClient:
    return ExaClient(api_key, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class ParseAnswerTests(unittest.TestCase):
    """Field-name variants are tried in a fixed order."""

    def test_answer_field_variants(self) -> None:
        self.assertEqual(parse_answer({"answer": "a"}).answer, "a")
        self.assertEqual(parse_answer({"response": "b"}).answer, "b")
        self.assertEqual(parse_answer({"final_answer": "c"}).answer, "c")
        self.assertEqual(parse_answer({"output": "d"}).answer, "d")
        self.assertEqual(parse_answer({"answer": None, "output": "e"}).answer, "e")
        self.assertEqual(parse_answer({}).answer, "")

    def test_citation_list_variants_skip_empty_lists(self) -> None:
        document = {
            "answer": "x",
            "citations": [],
            "sources": [{"title": "S", "url": "https://s.example", "snippet": "snip"}],
        }
        parsed = parse_answer(document)
        self.assertEqual(
            parsed.citations, [SearchResult(title="S", url="https://s.example", snippet="snip")]
        )

    def test_citations_without_title_or_url_are_dropped(self) -> None:
        document = {
            "answer": "x",
            "results": [
                {"title": "ok", "url": "https://ok.example", "highlight": "h"},
                {"title": "no url"},
                {"url": "https://no-title.example"},
                "not a mapping",
            ],
        }
        parsed = parse_answer(document)
        self.assertEqual(len(parsed.citations), 1)
        self.assertEqual(parsed.citations[0].snippet, "h")

    def test_snippet_prefers_text_field(self) -> None:
        parsed = parse_answer(
            {"citations": [{"title": "t", "url": "u", "text": "full", "snippet": "short"}]}
        )
        self.assertEqual(parsed.citations[0].snippet, "full")


class ExaClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_answer_request_shape(self) -> None:
        transport = RecordingTransport(
            [httpx.Response(200, json={"answer": "Paris.", "citations": []})]
        )
        client = make_client(transport)

        answer = await client.answer("capital of France", limit=5)

        request = transport.requests[0]
        self.assertEqual(str(request.url), "https://api.exa.ai/answer")
        self.assertEqual(request.headers["x-api-key"], "exa-test")
        self.assertEqual(
            json.loads(request.content),
            {"query": "capital of France", "numResults": 5, "text": False},
        )
        self.assertEqual(answer.answer, "Paris.")

    async def test_search_returns_valid_results_only(self) -> None:
        transport = RecordingTransport(
            [
                httpx.Response(
                    200,
                    json={
                        "results": [
                            {"title": "A", "url": "https://a.example", "text": "body"},
                            {"title": "B"},
                        ]
                    },
                )
            ]
        )
        client = make_client(transport)

        results = await client.search("query", limit=3)

        self.assertEqual(str(transport.requests[0].url), "https://api.exa.ai/search")
        self.assertEqual(json.loads(transport.requests[0].content)["numResults"], 3)
        self.assertEqual(results, [SearchResult("A", "https://a.example", "body")])

    async def test_missing_key_makes_no_request(self) -> None:
        transport = RecordingTransport([])
        client = make_client(transport, api_key="")
        self.assertFalse(client.is_configured)
        with self.assertRaises(ProviderNotConfiguredError) as ctx:
            await client.answer("anything")
        with self.assertRaises(ProviderNotConfiguredError):
            await client.search("anything")
        self.assertEqual(transport.requests, [])
        self.assertEqual(humanize_search_error(ctx.exception), "Search API key missing.")

    async def test_non_2xx_surfaces_raw_body(self) -> None:
        transport = RecordingTransport([httpx.Response(400, text="invalid query parameter")])
        client = make_client(transport)
        with self.assertRaises(ProviderHTTPError) as ctx:
            await client.answer("q")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(str(ctx.exception), "invalid query parameter")
        self.assertEqual(humanize_search_error(ctx.exception), "invalid query parameter")

    async def test_non_2xx_with_empty_body_uses_generic_text(self) -> None:
        client = make_client(RecordingTransport([httpx.Response(500, text="")]))
        with self.assertRaises(ProviderHTTPError) as ctx:
            await client.answer("q")
        self.assertEqual(humanize_search_error(ctx.exception), "Search error.")

    async def test_non_object_body_is_a_response_error(self) -> None:
        client = make_client(RecordingTransport([httpx.Response(200, json=["unexpected"])]))
        with self.assertRaises(ProviderResponseError):
            await client.answer("q")

    async def test_connection_failure_is_classified_offline(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with self.assertRaises(ProviderOfflineError):
            await make_client(handler).answer("q")


if __name__ == "__main__":
    unittest.main()
