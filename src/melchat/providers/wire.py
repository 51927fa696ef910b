"""Pydantic wire types for the OpenRouter chat-completions API."""

from __future__ import annotations

import base64
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..imaging import sniff_mime

IMAGE_PLACEHOLDER = "[image]"
IMAGE_ONLY_PROMPT = "Please respond to the image."

Role = Literal["system", "user", "assistant"]


class ContentBlock(BaseModel):
    """One ``text`` or ``image_url`` content entry."""

    type: Literal["text", "image_url"]
    text: str | None = None
    image_url: str | None = None

    @classmethod
    def of_text(cls, text: str) -> ContentBlock:
        return cls(type="text", text=text)

    @classmethod
    def of_image(cls, data: bytes) -> ContentBlock:
        return cls(type="image_url", image_url=image_data_uri(data))


class WireMessage(BaseModel):
    """A role plus its ordered content blocks."""

    role: Role
    content: list[ContentBlock] = Field(default_factory=list)

    @classmethod
    def of_text(cls, role: Role, text: str) -> WireMessage:
        return cls(role=role, content=[ContentBlock.of_text(text)])

    def text_only(self) -> WireMessage:
        """Drop image blocks; an image-only turn keeps a placeholder marker."""
        texts = [
            block.text
            for block in self.content
            if block.type == "text" and block.text is not None
        ]
        if not texts:
            return WireMessage.of_text(self.role, IMAGE_PLACEHOLDER)
        return WireMessage(
            role=self.role, content=[ContentBlock.of_text(text) for text in texts]
        )

    @property
    def image_count(self) -> int:
        return sum(1 for block in self.content if block.type == "image_url")

    @property
    def plain_text(self) -> str:
        return "\n".join(
            block.text for block in self.content if block.type == "text" and block.text
        )


class ChatRequest(BaseModel):
    model: str
    messages: list[WireMessage]
    temperature: float | None = None
    max_tokens: int | None = None

    def to_payload(self) -> dict:
        return self.model_dump(exclude_none=True)


class ChoiceMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | None = None


class Choice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int | None = None
    message: ChoiceMessage | None = None
    finish_reason: str | None = None


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str | None = None
    code: int | str | None = None


class ChatResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    choices: list[Choice] | None = None
    error: ErrorBody | None = None

    @property
    def first_content(self) -> str | None:
        if not self.choices:
            return None
        message = self.choices[0].message
        return None if message is None else message.content


def image_data_uri(data: bytes) -> str:
    """Inline ``data`` as ``data:<mime>;base64,<payload>``."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{sniff_mime(data)};base64,{encoded}"


def build_user_message(text: str | None, images: list[bytes] | None = None) -> WireMessage:
    """Text block first (if any), then one image block per image."""
    content: list[ContentBlock] = []
    if text:
        content.append(ContentBlock.of_text(text))
    for data in images or []:
        content.append(ContentBlock.of_image(data))
    if not content:
        content.append(ContentBlock.of_text(IMAGE_PLACEHOLDER))
    return WireMessage(role="user", content=content)
