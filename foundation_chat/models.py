"""Chat sessions and messages."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import SessionDecodeError

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 32
ELLIPSIS = "…"


class Sender(str, Enum):
    """Author of a message. ``AI`` is the assistant."""

    USER = "user"
    AI = "ai"


def truncated_title(text: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Cut ``text`` to ``max_length`` characters, adding an ellipsis when cut.

    Length is counted in code points, not grapheme clusters: an emoji built
    from several code points or a letter followed by combining marks counts
    as more than one character and may be split at the cut.
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + ELLIPSIS


def _parse_uuid(value: Any, *, label: str) -> uuid.UUID:
    if not isinstance(value, str):
        raise SessionDecodeError(f"{label} must be a UUID string; got {type(value).__name__}")
    try:
        return uuid.UUID(value)
    except ValueError:
        raise SessionDecodeError(f"{label} is not a valid UUID: {value!r}") from None


def _require(data: dict[str, Any], key: str, kind: type, *, label: str) -> Any:
    if key not in data:
        raise SessionDecodeError(f"{label} is missing '{key}'")
    value = data[key]
    if not isinstance(value, kind):
        raise SessionDecodeError(
            f"{label}.{key} must be {kind.__name__}; got {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class ChatMessage:
    """One turn of a conversation. Never mutated after creation."""

    sender: Sender
    text: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def to_dict(self) -> dict[str, str]:
        return {"id": str(self.id), "sender": self.sender.value, "text": self.text}

    @classmethod
    def from_dict(cls, data: Any) -> ChatMessage:
        """Strict decode; any shape mismatch raises :class:`SessionDecodeError`."""
        if not isinstance(data, dict):
            raise SessionDecodeError(f"message must be an object; got {type(data).__name__}")
        raw_sender = _require(data, "sender", str, label="message")
        try:
            sender = Sender(raw_sender)
        except ValueError:
            raise SessionDecodeError(f"unknown message sender: {raw_sender!r}") from None
        return cls(
            id=_parse_uuid(data.get("id"), label="message.id"),
            sender=sender,
            text=_require(data, "text", str, label="message"),
        )


@dataclass(init=False, eq=True)
class ChatSession:
    """A conversation: ordered messages plus a title.

    The title falls back to a truncation of the first message, then to
    ``"New Chat"``, so it is never empty after construction.
    """

    id: uuid.UUID
    title: str
    messages: list[ChatMessage]

    def __init__(
        self,
        title: str | None = None,
        messages: list[ChatMessage] | None = None,
        id: uuid.UUID | None = None,
        *,
        title_max_length: int = TITLE_MAX_LENGTH,
    ) -> None:
        self.id = id or uuid.uuid4()
        self.messages = list(messages or [])
        if title:
            self.title = title
        elif self.messages and self.messages[0].text:
            self.title = truncated_title(self.messages[0].text, title_max_length)
        else:
            self.title = DEFAULT_TITLE

    @property
    def display_title(self) -> str:
        """Title for listings; falls back to a short id tag for empty titles."""
        return self.title or f"Chat {str(self.id)[:4]}"

    def append(self, message: ChatMessage) -> None:
        self.messages.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Any) -> ChatSession:
        """Strict decode. The stored title is kept verbatim, never re-derived."""
        if not isinstance(data, dict):
            raise SessionDecodeError(f"session must be an object; got {type(data).__name__}")
        session_id = _parse_uuid(data.get("id"), label="session.id")
        title = _require(data, "title", str, label="session")
        raw_messages = _require(data, "messages", list, label="session")
        session = cls(id=session_id, messages=[ChatMessage.from_dict(m) for m in raw_messages])
        session.title = title
        return session

    def __repr__(self) -> str:
        return (
            f"ChatSession(id={str(self.id)!r}, title={self.title!r}, "
            f"messages={len(self.messages)})"
        )
