"""Top-level package for the melchat client core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import Config, ensure_config_dir, load_config
    from .conversation import ConversationStore
    from .events import EventBus
    from .exceptions import (
        ConfigValidationError,
        MelChatError,
        ProviderError,
        ProviderHTTPError,
        SendCancelledError,
    )
    from .image_cache import ImageCache
    from .models import Message, SendStatus
    from .orchestrator import ConversationOrchestrator
    from .providers import ExaClient, OpenRouterClient
    from .state import AIState, StateManager

__all__ = [
    "AIState",
    "Config",
    "ConfigValidationError",
    "ConversationOrchestrator",
    "ConversationStore",
    "EventBus",
    "ExaClient",
    "ImageCache",
    "MelChatError",
    "Message",
    "OpenRouterClient",
    "ProviderError",
    "ProviderHTTPError",
    "SendCancelledError",
    "SendStatus",
    "StateManager",
    "ensure_config_dir",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols so importing the package stays cheap."""
    if name == "ConversationOrchestrator":
        from .orchestrator import ConversationOrchestrator

        return ConversationOrchestrator
    if name in {"Config", "ensure_config_dir", "load_config"}:
        from . import config

        return getattr(config, name)
    if name in {
        "ConfigValidationError",
        "MelChatError",
        "ProviderError",
        "ProviderHTTPError",
        "SendCancelledError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"Message", "SendStatus"}:
        from . import models

        return getattr(models, name)
    if name in {"AIState", "StateManager"}:
        from .state import AIState, StateManager

        return {"AIState": AIState, "StateManager": StateManager}[name]
    if name in {"ExaClient", "OpenRouterClient"}:
        from . import providers

        return getattr(providers, name)
    if name == "ConversationStore":
        from .conversation import ConversationStore

        return ConversationStore
    if name == "EventBus":
        from .events import EventBus

        return EventBus
    if name == "ImageCache":
        from .image_cache import ImageCache

        return ImageCache
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
