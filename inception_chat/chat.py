from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from .config import AppConfig
from .history import ConversationStore
from .llm_client import ChatClientError, CompletionRequest, InceptionClient
from .models import ChatMessage, ConversationSummary
from .results import Result
from .session import ChatSession
from .settings import Settings, SettingsStore

logger = logging.getLogger(__name__)

MISSING_API_KEY_MESSAGE = (
    "Please set your Inception Labs API key in the settings before making requests."
)
EMPTY_PROMPT_MESSAGE = "Message is empty."


class CompletionClient(Protocol):
    def complete(self, api_key: str, request: CompletionRequest) -> str: ...


@dataclass(frozen=True)
class ChatReply:
    conversation_id: int | None = None
    user_message_id: int | None = None
    assistant_message_id: int | None = None
    content: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChatService:
    """Runs one prompt/reply exchange and keeps the history in sync."""

    def __init__(
        self,
        store: ConversationStore,
        settings_store: SettingsStore,
        client: CompletionClient,
        recent_limit: int = 20,
        development: bool = False,
    ) -> None:
        self._store = store
        self._settings_store = settings_store
        self._client = client
        self._recent_limit = recent_limit
        self._development = development

    @classmethod
    def from_config(cls, config: AppConfig) -> "ChatService":
        paths = config.paths
        return cls(
            store=ConversationStore.open(paths.database_path),
            settings_store=SettingsStore(paths.settings_path, paths.secret_path),
            client=InceptionClient(config.api_url, timeout=config.request_timeout),
            recent_limit=config.recent_limit,
            development=config.development,
        )

    @property
    def store(self) -> ConversationStore:
        return self._store

    def submit(self, session: ChatSession, text: str, reasoning: bool = False) -> ChatReply:
        prompt = text.strip() if isinstance(text, str) else ""
        if not prompt:
            return ChatReply(error=EMPTY_PROMPT_MESSAGE)

        saved_user = self._store.append_message(session, "user", prompt)
        if not saved_user:
            # The exchange still goes ahead, it just won't appear in history
            logger.warning("User message not saved: %s", saved_user.detail)
        conversation_id = session.current_conversation_id

        settings = self._settings_store.load()
        if not settings.has_api_key:
            return ChatReply(
                conversation_id=conversation_id,
                user_message_id=saved_user.value,
                error=MISSING_API_KEY_MESSAGE,
            )

        request = CompletionRequest(
            model=settings.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=settings.max_tokens,
            reasoning=reasoning,
        )
        try:
            content = self._client.complete(settings.api_key, request)
        except ChatClientError as exc:
            logger.warning("Completion request failed: %s", exc)
            return ChatReply(
                conversation_id=conversation_id,
                user_message_id=saved_user.value,
                error=str(exc),
            )

        saved_reply = self._store.append_message(session, "assistant", content)
        if not saved_reply:
            logger.warning("Assistant reply not saved: %s", saved_reply.detail)

        return ChatReply(
            conversation_id=session.current_conversation_id,
            user_message_id=saved_user.value,
            assistant_message_id=saved_reply.value,
            content=content,
        )

    def new_chat(self, session: ChatSession) -> None:
        session.new_chat()

    def recent_conversations(self) -> list[ConversationSummary]:
        return self._store.list_recent_conversations(self._recent_limit).unwrap_or([])

    def conversation_messages(self, conversation_id: object) -> list[ChatMessage]:
        return self._store.list_messages(conversation_id).unwrap_or([])

    def load_settings(self) -> Settings:
        return self._settings_store.load()

    def save_settings(self, settings: Mapping[str, Any]) -> Result[None]:
        return self._settings_store.save(settings)

    def debug_contents(self, session: ChatSession) -> dict[str, Any] | None:
        if not self._development:
            return None
        result = self._store.debug_contents(session)
        if not result:
            return {"error": result.detail}
        return result.value

    def close(self) -> None:
        self._store.close()
