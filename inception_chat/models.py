from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 200
DERIVED_TITLE_LENGTH = 50

ChatRole = Literal["user", "assistant"]
VALID_ROLES: tuple[str, ...] = ("user", "assistant")


def utc_now() -> datetime:
    # SQLite stores naive values, so keep everything in naive UTC
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


def is_valid_role(role: object) -> bool:
    return isinstance(role, str) and role in VALID_ROLES


def normalize_title(title: object) -> str:
    """Clean an explicitly supplied conversation title."""

    if not isinstance(title, str) or not title.strip():
        return DEFAULT_TITLE
    return title.strip()[:TITLE_MAX_LENGTH]


def derive_title(content: str) -> str:
    """Build a conversation title from the message that opened it."""

    if len(content) > DERIVED_TITLE_LENGTH:
        return content[:DERIVED_TITLE_LENGTH] + "..."
    return content


@dataclass(frozen=True)
class ChatMessage:
    id: int
    conversation_id: int
    role: ChatRole
    content: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }

    def to_request_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ConversationSummary:
    """Row of the recent-chats list."""

    id: int
    title: str
    updated_at: datetime
    first_user_message: str | None = None

    @property
    def preview(self) -> str:
        # The sidebar prefers the opening prompt over a generic title
        if self.first_user_message:
            text = self.first_user_message
            return text[:40] + "..." if len(text) > 40 else text
        return self.title or DEFAULT_TITLE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "updated_at": self.updated_at.isoformat(),
            "first_user_message": self.first_user_message,
        }
