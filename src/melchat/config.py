"""Configuration loading and validation for the melchat client core."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import tomllib
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .exceptions import ConfigValidationError

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "melchat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

# Environment variable -> (section, key). Consulted once per load_config().
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "OPENROUTER_API_KEY": ("openrouter", "api_key"),
    "OPENROUTER_MODEL": ("openrouter", "model"),
    "EXA_API_KEY": ("exa", "api_key"),
}


def _validate_http_url(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.hostname:
        raise ValueError("URL must use http or https and include a hostname.")
    return normalized


def _sanitize_api_key(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError("api_key must be a string.")
    return value.strip().strip('"').strip()


class AIConfig(BaseModel):
    """Per-send tunables: history window, truncation and image budget."""

    history_turns: int = Field(default=8, ge=0, le=1_000)
    max_user_chars: int = Field(default=4000, ge=1, le=1_000_000)
    max_output_tokens: int = Field(default=1500, ge=1, le=1_000_000)
    temperature: float = Field(default=0.6, ge=0.0, le=2.0)
    max_image_bytes: int = Field(default=700_000, ge=1_024, le=50_000_000)
    jpeg_quality: float = Field(default=0.82, gt=0.0, le=1.0)


class OpenRouterConfig(BaseModel):
    """Chat-completion provider settings."""

    api_key: str = ""
    model: str = "google/gemini-2.0-flash-001"
    base_url: str = "https://openrouter.ai/api/v1"
    referer: str = "https://alynengineering.com"
    app_title: str = "Mist"
    timeout_seconds: float = Field(default=30.0, gt=0, le=600)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_key(cls, value: Any) -> str:
        return _sanitize_api_key(value)

    @field_validator("base_url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str:
        return _validate_http_url(value)

    @field_validator("model", "referer", "app_title", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized


class ExaConfig(BaseModel):
    """Search/answer provider settings."""

    api_key: str = ""
    base_url: str = "https://api.exa.ai"
    answer_limit: int = Field(default=5, ge=1, le=100)
    timeout_seconds: float = Field(default=30.0, gt=0, le=600)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_key(cls, value: Any) -> str:
        return _sanitize_api_key(value)

    @field_validator("base_url", mode="before")
    @classmethod
    def _normalize_url(cls, value: Any) -> str:
        return _validate_http_url(value)


class ImageCacheConfig(BaseModel):
    """Count and cost ceilings for the three image cache pools."""

    decoded_count_limit: int = Field(default=256, ge=1, le=100_000)
    decoded_cost_limit: int = Field(default=32 * 1024 * 1024, ge=1)
    thumbnail_count_limit: int = Field(default=512, ge=1, le=100_000)
    thumbnail_cost_limit: int = Field(default=32 * 1024 * 1024, ge=1)
    compressed_count_limit: int = Field(default=256, ge=1, le=100_000)
    compressed_cost_limit: int = Field(default=64 * 1024 * 1024, ge=1)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/melchat/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("log_file_path must not be empty.")
        return normalized


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    ai: AIConfig = AIConfig()
    openrouter: OpenRouterConfig = OpenRouterConfig()
    exa: ExaConfig = ExaConfig()
    image_cache: ImageCacheConfig = ImageCacheConfig()
    logging: LoggingConfig = LoggingConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _env_overrides(environ: dict[str, str] | None = None) -> dict[str, dict[str, str]]:
    """Collect non-empty credential/model overrides from the environment."""
    source = os.environ if environ is None else environ
    overrides: dict[str, dict[str, str]] = {}
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = source.get(variable, "").strip()
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


def _safe_default_config() -> dict[str, dict[str, Any]]:
    """Return a deep copy of validated default config data."""
    return deepcopy(DEFAULT_CONFIG)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump()
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(
    config_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults and env overrides, and validate.

    The optional ``config_path`` and ``environ`` arguments are intended for tests.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (
            Exception
        ) as exc:  # noqa: BLE001 - we must not crash on invalid user config.
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = (
        _deep_merge(DEFAULT_CONFIG, raw_data)
        if isinstance(raw_data, dict)
        else _safe_default_config()
    )
    merged = _deep_merge(merged, _env_overrides(environ))
    return _validate_config(merged)


def build_config(data: dict[str, Any] | None = None) -> Config:
    """Return a typed ``Config`` from a (possibly partial) validated mapping."""
    return Config.model_validate(_deep_merge(DEFAULT_CONFIG, data or {}))
