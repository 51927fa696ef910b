"""Exa search/answer client with tolerant response parsing."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import json
import logging
from typing import Any

import httpx

from ..exceptions import (
    ProviderHTTPError,
    ProviderNotConfiguredError,
    ProviderOfflineError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
)

LOGGER = logging.getLogger(__name__)

PROVIDER = "exa"
DEFAULT_BASE_URL = "https://api.exa.ai"
DEFAULT_TIMEOUT_SECONDS = 30.0

# Deployments disagree on field names; candidates are tried in order.
ANSWER_TEXT_FIELDS: tuple[str, ...] = ("answer", "response", "final_answer", "output")
CITATION_LIST_FIELDS: tuple[str, ...] = ("citations", "sources", "results")
CITATION_SNIPPET_FIELDS: tuple[str, ...] = ("text", "snippet", "highlight")


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    snippet: str | None = None


@dataclass(frozen=True)
class SearchAnswer:
    answer: str
    citations: list[SearchResult] = field(default_factory=list)


def first_present(document: Mapping[str, Any], candidates: Sequence[str]) -> Any:
    """Return the first candidate field whose value is not ``None``."""
    for name in candidates:
        value = document.get(name)
        if value is not None:
            return value
    return None


def first_non_empty_list(document: Mapping[str, Any], candidates: Sequence[str]) -> list[Any]:
    for name in candidates:
        value = document.get(name)
        if isinstance(value, list) and value:
            return value
    return []


def parse_citation(
    item: Any, snippet_fields: Sequence[str] = CITATION_SNIPPET_FIELDS
) -> SearchResult | None:
    """A citation needs both title and url; anything else is dropped."""
    if not isinstance(item, Mapping):
        return None
    title = item.get("title")
    url = item.get("url")
    if not isinstance(title, str) or not isinstance(url, str):
        return None
    snippet = first_present(item, snippet_fields)
    return SearchResult(
        title=title,
        url=url,
        snippet=snippet if isinstance(snippet, str) else None,
    )


def parse_answer(document: Mapping[str, Any]) -> SearchAnswer:
    text = first_present(document, ANSWER_TEXT_FIELDS)
    citations = [
        citation
        for citation in (
            parse_citation(item)
            for item in first_non_empty_list(document, CITATION_LIST_FIELDS)
        )
        if citation is not None
    ]
    return SearchAnswer(answer=text if isinstance(text, str) else "", citations=citations)


class ExaClient:
    """Stateless Exa integration for ``/search`` and ``/answer``."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: dict, http_client: httpx.AsyncClient | None = None) -> ExaClient:
        """Build from the validated ``[exa]`` config section."""
        return cls(
            api_key=str(config.get("api_key", "")),
            base_url=str(config.get("base_url", DEFAULT_BASE_URL)),
            timeout=float(config.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            http_client=http_client,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise ProviderNotConfiguredError("EXA_API_KEY missing.", provider=PROVIDER)

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json", "x-api-key": self.api_key}
        try:
            response = await self._http.post(
                url, headers=headers, content=json.dumps(body), timeout=self.timeout
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError("Exa request timed out.", provider=PROVIDER) from exc
        except (httpx.ConnectError, httpx.NetworkError) as exc:
            raise ProviderOfflineError("Unable to reach Exa.", provider=PROVIDER) from exc
        except httpx.HTTPError as exc:
            raise ProviderTransportError(
                f"Exa transport failure: {exc}", provider=PROVIDER
            ) from exc

        if not 200 <= response.status_code < 300:
            LOGGER.warning(
                "exa.request.error",
                extra={
                    "event": "exa.request.error",
                    "path": path,
                    "status": response.status_code,
                },
            )
            raise ProviderHTTPError(response.status_code, response.text, provider=PROVIDER)
        try:
            document = response.json()
        except ValueError as exc:
            raise ProviderResponseError(
                f"Malformed Exa response: {exc}", provider=PROVIDER
            ) from exc
        if not isinstance(document, dict):
            raise ProviderResponseError("Malformed Exa response.", provider=PROVIDER)
        return document

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        """Plain search; results missing a title or url are discarded."""
        self._require_configured()
        document = await self._post("/search", {"query": query, "numResults": max(1, limit)})
        items = document.get("results")
        results = [
            result
            for result in (
                parse_citation(item, ("text",))
                for item in (items if isinstance(items, list) else [])
            )
            if result is not None
        ]
        LOGGER.info(
            "exa.search.complete",
            extra={"event": "exa.search.complete", "results": len(results)},
        )
        return results

    async def answer(self, query: str, limit: int = 5) -> SearchAnswer:
        """Drafted answer plus citations; full page text is not requested."""
        self._require_configured()
        document = await self._post(
            "/answer", {"query": query, "numResults": max(1, limit), "text": False}
        )
        parsed = parse_answer(document)
        LOGGER.info(
            "exa.answer.complete",
            extra={
                "event": "exa.answer.complete",
                "answer_chars": len(parsed.answer),
                "citations": len(parsed.citations),
            },
        )
        return parsed

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
