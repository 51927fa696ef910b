"""Domain exception hierarchy for the melchat client core."""

from __future__ import annotations


class MelChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class ConfigValidationError(MelChatError):
    """Raised when configuration cannot be validated safely."""


class ImageDecodeError(MelChatError):
    """Raised when bytes are not a supported raster image."""


class InvalidStatusTransitionError(MelChatError):
    """Raised when a message status would leave a terminal state."""


class SendCancelledError(MelChatError):
    """Raised inside the send pipeline once its cancellation token fires."""


class ProviderError(MelChatError):
    """Base class for failures reported by an external provider client."""

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderNotConfiguredError(ProviderError):
    """Raised before any request when the provider credential is missing."""


class ProviderTransportError(ProviderError):
    """Raised when the request never produced an HTTP response."""


class ProviderTimeoutError(ProviderTransportError):
    """Raised when the provider did not answer within the request timeout."""


class ProviderOfflineError(ProviderTransportError):
    """Raised when the provider host cannot be reached."""


class ProviderProtocolError(ProviderError):
    """Raised when a response arrived but could not be used."""


class ProviderHTTPError(ProviderProtocolError):
    """Raised for non-2xx responses."""

    def __init__(self, status_code: int, detail: str, *, provider: str = "") -> None:
        super().__init__(detail, provider=provider)
        self.status_code = status_code
        self.detail = detail


class ProviderResponseError(ProviderProtocolError):
    """Raised for malformed bodies or errors embedded in a 2xx response."""


class EmptyCompletionError(ProviderProtocolError):
    """Raised when a 2xx chat response carries no completion text."""
