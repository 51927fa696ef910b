"""Pure parsing helpers for slash commands typed into the input field."""

from __future__ import annotations

from dataclasses import dataclass

SEARCH_PREFIX = "/search "


@dataclass(frozen=True)
class ParsedInput:
    """Input text with any ``/search`` trigger removed."""

    text: str
    is_search: bool


def parse_search_command(text: str) -> ParsedInput:
    """Detect a leading ``/search `` trigger (any case) and strip it."""
    if text.lower().startswith(SEARCH_PREFIX):
        return ParsedInput(text=text[len(SEARCH_PREFIX) :].strip(), is_search=True)
    return ParsedInput(text=text, is_search=False)
