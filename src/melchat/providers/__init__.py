"""HTTP integrations for the chat-completion and search/answer providers."""

from .exa import ExaClient, SearchAnswer, SearchResult
from .openrouter import OpenRouterClient
from .wire import ChatRequest, ChatResponse, ContentBlock, WireMessage

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ContentBlock",
    "ExaClient",
    "OpenRouterClient",
    "SearchAnswer",
    "SearchResult",
    "WireMessage",
]
