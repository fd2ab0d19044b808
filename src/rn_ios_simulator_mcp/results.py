"""Tool result envelope and the handler return types that feed it."""

from __future__ import annotations

import base64
import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any, Union


def text_block(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def image_block(data: bytes, mime_type: str) -> dict[str, Any]:
    return {
        "type": "image",
        "data": base64.b64encode(data).decode("ascii"),
        "mimeType": mime_type,
    }


@dataclass
class ToolResult:
    """The envelope every tool invocation resolves to."""

    content: list[dict[str, Any]]
    is_error: bool = False

    @classmethod
    def error(cls, message: str) -> ToolResult:
        return cls([text_block(message)], is_error=True)

    @property
    def text(self) -> str:
        """All text blocks joined by newlines."""
        return "\n".join(b["text"] for b in self.content if b.get("type") == "text")

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "isError": self.is_error}


@dataclass
class TextResult:
    """Plain text handler result."""

    text: str


@dataclass
class StructuredResult:
    """Structured data, rendered as ``message`` if given, else as JSON."""

    data: Any
    message: str | None = None


@dataclass
class RawEnvelope:
    """Pre-built content blocks, passed through untouched."""

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False


HandlerResult = Union[TextResult, StructuredResult, RawEnvelope, ToolResult]


def _to_json(value: Any) -> str:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = value.to_dict() if hasattr(value, "to_dict") else dataclasses.asdict(value)
    return json.dumps(value, indent=2, default=str)


def normalize_result(value: Any) -> ToolResult:
    """Turn whatever a handler returned into a ``ToolResult``.

    The typed results are handled first. Anything else goes through, in order:
    an existing ``content`` list, a plain string, a string ``message`` field,
    JSON for other objects, and ``str()`` as the last resort.
    """
    if isinstance(value, ToolResult):
        return value
    if isinstance(value, TextResult):
        return ToolResult([text_block(value.text)])
    if isinstance(value, StructuredResult):
        if value.message is not None:
            return ToolResult([text_block(value.message)])
        return ToolResult([text_block(_to_json(value.data))])
    if isinstance(value, RawEnvelope):
        return ToolResult(list(value.content), is_error=value.is_error)

    if isinstance(value, dict):
        content = value.get("content")
        if isinstance(content, list):
            return ToolResult(content, is_error=bool(value.get("isError", False)))
        if isinstance(value.get("message"), str):
            return ToolResult([text_block(value["message"])])
        return ToolResult([text_block(_to_json(value))])

    if isinstance(value, str):
        return ToolResult([text_block(value)])

    content = getattr(value, "content", None)
    if isinstance(content, list):
        return ToolResult(content, is_error=bool(getattr(value, "is_error", False)))
    message = getattr(value, "message", None)
    if isinstance(message, str):
        return ToolResult([text_block(message)])

    if value is not None and (
        isinstance(value, (list, tuple)) or dataclasses.is_dataclass(value)
    ):
        return ToolResult([text_block(_to_json(value))])

    return ToolResult([text_block(str(value))])
