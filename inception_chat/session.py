from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SessionState(str, Enum):
    NO_CONVERSATION = "no_conversation"
    ACTIVE = "active"


@dataclass
class ChatSession:
    """
    Tracks which conversation new messages are appended to.

    One session belongs to one chat window. It starts empty on every launch
    and is never persisted, so old history is never resumed automatically.
    Every user message clears the pointer first, which means each prompt is
    stored as its own conversation and the assistant reply joins it.
    """

    current_conversation_id: int | None = None

    @property
    def state(self) -> SessionState:
        if self.current_conversation_id is None:
            return SessionState.NO_CONVERSATION
        return SessionState.ACTIVE

    def begin_user_turn(self) -> None:
        self.current_conversation_id = None

    def activate(self, conversation_id: int) -> None:
        self.current_conversation_id = conversation_id

    def new_chat(self) -> None:
        self.current_conversation_id = None
