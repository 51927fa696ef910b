"""OpenRouter chat-completions client: multimodal request in, trimmed text out."""

from __future__ import annotations

from collections.abc import Sequence
from http import HTTPStatus
import json
import logging

import httpx
from pydantic import ValidationError

from ..exceptions import (
    EmptyCompletionError,
    ProviderHTTPError,
    ProviderNotConfiguredError,
    ProviderOfflineError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from .wire import (
    IMAGE_ONLY_PROMPT,
    ChatRequest,
    ChatResponse,
    ContentBlock,
    WireMessage,
)

LOGGER = logging.getLogger(__name__)

PROVIDER = "openrouter"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "google/gemini-2.0-flash-001"
DEFAULT_TIMEOUT_SECONDS = 30.0


def _reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase.capitalize()
    except ValueError:
        return f"HTTP {status_code}"


def key_preview(api_key: str) -> str:
    """Log-safe rendering of a credential."""
    return "<empty>" if not api_key else f"{api_key[:6]}******"


class OpenRouterClient:
    """Stateless chat-completion integration.

    ``http_client`` may be injected (tests pass one backed by
    ``httpx.MockTransport``); otherwise one is created and owned here.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        base_url: str = DEFAULT_BASE_URL,
        referer: str = "https://alynengineering.com",
        app_title: str = "Mist",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key.strip().strip('"').strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.referer = referer
        self.app_title = app_title
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        LOGGER.info(
            "openrouter.client.configured",
            extra={
                "event": "openrouter.client.configured",
                "model": self.model,
                "api_key": key_preview(self.api_key),
            },
        )

    @classmethod
    def from_config(cls, config: dict, http_client: httpx.AsyncClient | None = None) -> OpenRouterClient:
        """Build from the validated ``[openrouter]`` config section."""
        return cls(
            api_key=str(config.get("api_key", "")),
            model=str(config.get("model", DEFAULT_MODEL)),
            base_url=str(config.get("base_url", DEFAULT_BASE_URL)),
            referer=str(config.get("referer", "https://alynengineering.com")),
            app_title=str(config.get("app_title", "Mist")),
            timeout=float(config.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
            http_client=http_client,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.referer,
            "X-Title": self.app_title,
            "Content-Type": "application/json",
        }

    def build_request(
        self,
        system_prompt: str,
        user_text: str,
        user_images: Sequence[bytes] = (),
        history: Sequence[WireMessage] = (),
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> ChatRequest:
        """System message, then history in order, then the current user turn."""
        messages: list[WireMessage] = [WireMessage.of_text("system", system_prompt)]
        messages.extend(history)
        content = [ContentBlock.of_text(user_text or IMAGE_ONLY_PROMPT)]
        content.extend(ContentBlock.of_image(data) for data in user_images)
        messages.append(WireMessage(role="user", content=content))
        return ChatRequest(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def generate(
        self,
        system_prompt: str,
        user_text: str,
        user_images: Sequence[bytes] = (),
        history: Sequence[WireMessage] = (),
        max_tokens: int = 256,
        temperature: float = 0.7,
    ) -> str:
        """Send one completion request and return the reply text."""
        if not self.is_configured:
            raise ProviderNotConfiguredError(
                "OpenRouter API key missing.", provider=PROVIDER
            )
        request = self.build_request(
            system_prompt, user_text, user_images, history, max_tokens, temperature
        )
        LOGGER.info(
            "openrouter.request.start",
            extra={
                "event": "openrouter.request.start",
                "model": self.model,
                "history_messages": len(history),
                "images": len(user_images),
            },
        )
        try:
            response = await self._http.post(
                self.endpoint,
                headers=self._headers(),
                content=json.dumps(request.to_payload()),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                "OpenRouter request timed out.", provider=PROVIDER
            ) from exc
        except (httpx.ConnectError, httpx.NetworkError) as exc:
            raise ProviderOfflineError(
                "Unable to reach OpenRouter.", provider=PROVIDER
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderTransportError(
                f"OpenRouter transport failure: {exc}", provider=PROVIDER
            ) from exc
        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> str:
        status = response.status_code
        if not 200 <= status < 300:
            detail = self._error_detail(response) or _reason_phrase(status)
            LOGGER.warning(
                "openrouter.request.error",
                extra={
                    "event": "openrouter.request.error",
                    "status": status,
                    "detail": detail,
                },
            )
            raise ProviderHTTPError(status, detail, provider=PROVIDER)

        try:
            decoded = ChatResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderResponseError(
                f"Malformed OpenRouter response: {exc}", provider=PROVIDER
            ) from exc

        if decoded.error is not None and decoded.error.message:
            LOGGER.warning(
                "openrouter.response.embedded_error",
                extra={
                    "event": "openrouter.response.embedded_error",
                    "detail": decoded.error.message,
                },
            )
            raise ProviderResponseError(decoded.error.message, provider=PROVIDER)

        text = decoded.first_content
        if not text or not text.strip():
            raise EmptyCompletionError("Empty completion.", provider=PROVIDER)
        return text.strip()

    @staticmethod
    def _error_detail(response: httpx.Response) -> str | None:
        try:
            decoded = ChatResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return None
        if decoded.error is not None and decoded.error.message:
            return decoded.error.message
        return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
