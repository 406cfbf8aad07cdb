from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.exc import SQLAlchemyError

from .db import ConversationRecord, MessageRecord, create_session_factory, create_sqlite_engine
from .migrations import migrate
from .models import (
    ChatMessage,
    ConversationSummary,
    derive_title,
    is_valid_role,
    normalize_title,
    utc_now,
)
from .results import FailureReason, Result
from .session import ChatSession

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 20
DEBUG_MESSAGE_LIMIT = 50


def coerce_positive_int(value: object) -> int | None:
    """Accept positive ints and plain digit strings, reject everything else."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            parsed = int(text)
            return parsed if parsed > 0 else None
    return None


class ConversationStore:
    """
    Local chat history kept in SQLite.

    Every public method returns a :class:`Result` and never raises. Database
    problems are logged and reported as ``storage_error`` so the chat window
    keeps working without history. A store whose database could not be opened
    reports ``unavailable`` for everything.
    """

    def __init__(self, engine: Engine | None, init_error: str | None = None) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine) if engine is not None else None
        self._init_error = init_error
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Path | None) -> "ConversationStore":
        """Open (or create) the database at ``path`` and bring its schema up to date."""

        engine: Engine | None = None
        try:
            engine = create_sqlite_engine(path)
            version = migrate(engine)
        except (SQLAlchemyError, OSError) as exc:
            logger.exception("Failed to open history database at %s", path)
            if engine is not None:
                engine.dispose()
            return cls(None, init_error=str(exc))
        logger.debug("History database %s ready at schema version %s", path, version)
        return cls(engine)

    def availability_error(self) -> str | None:
        if self._session_factory is None:
            return self._init_error or "History database is not available."
        return None

    def close(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._init_error = "History database is closed."

    def create_conversation(self, session: ChatSession, title: str | None = None) -> Result[int]:
        with self._lock:
            factory = self._session_factory
            if factory is None:
                return self._unavailable()
            try:
                with factory.begin() as db:
                    now = utc_now()
                    conversation = ConversationRecord(
                        title=normalize_title(title), created_at=now, updated_at=now
                    )
                    db.add(conversation)
                    db.flush()
                    conversation_id = conversation.id
            except SQLAlchemyError as exc:
                logger.exception("Failed to create conversation")
                return Result.failure(FailureReason.STORAGE_ERROR, str(exc))

        session.activate(conversation_id)
        return Result.success(conversation_id)

    def append_message(self, session: ChatSession, role: str, content: str) -> Result[int]:
        if not is_valid_role(role):
            return Result.failure(FailureReason.INVALID_ROLE, f"Unsupported role: {role!r}")
        if not isinstance(content, str) or not content.strip():
            return Result.failure(FailureReason.EMPTY_CONTENT, "Message content is empty.")

        if role == "user":
            session.begin_user_turn()

        with self._lock:
            factory = self._session_factory
            if factory is None:
                return self._unavailable()
            created = False
            try:
                with factory.begin() as db:
                    conversation = None
                    if session.current_conversation_id is not None:
                        conversation = db.get(ConversationRecord, session.current_conversation_id)
                        if conversation is None:
                            logger.warning(
                                "Conversation %s no longer exists, starting a new one",
                                session.current_conversation_id,
                            )

                    now = utc_now()
                    if conversation is None:
                        created = True
                        conversation = ConversationRecord(
                            title=derive_title(content), created_at=now, updated_at=now
                        )
                        db.add(conversation)
                        db.flush()

                    message = MessageRecord(
                        conversation_id=conversation.id,
                        role=role,
                        content=content,
                        created_at=now,
                    )
                    db.add(message)
                    conversation.updated_at = now
                    db.flush()
                    conversation_id = conversation.id
                    message_id = message.id
            except SQLAlchemyError as exc:
                logger.exception("Failed to save %s message", role)
                if created:
                    # The new conversation was rolled back with the message
                    session.new_chat()
                return Result.failure(FailureReason.STORAGE_ERROR, str(exc))

        session.activate(conversation_id)
        return Result.success(message_id)

    def list_recent_conversations(
        self, limit: int = DEFAULT_RECENT_LIMIT
    ) -> Result[list[ConversationSummary]]:
        count = coerce_positive_int(limit)
        if count is None:
            return Result.failure(
                FailureReason.INVALID_ARGUMENT, f"Invalid limit: {limit!r}", value=[]
            )

        first_user_message = (
            select(MessageRecord.content)
            .where(
                MessageRecord.conversation_id == ConversationRecord.id,
                MessageRecord.role == "user",
            )
            .order_by(MessageRecord.created_at.asc(), MessageRecord.id.asc())
            .limit(1)
            .correlate(ConversationRecord)
            .scalar_subquery()
        )
        statement = (
            select(
                ConversationRecord.id,
                ConversationRecord.title,
                ConversationRecord.updated_at,
                first_user_message.label("first_user_message"),
            )
            .order_by(ConversationRecord.updated_at.desc(), ConversationRecord.id.desc())
            .limit(count)
        )

        with self._lock:
            factory = self._session_factory
            if factory is None:
                return self._unavailable(value=[])
            try:
                with factory() as db:
                    rows = db.execute(statement).all()
            except SQLAlchemyError as exc:
                logger.exception("Failed to list recent conversations")
                return Result.failure(FailureReason.STORAGE_ERROR, str(exc), value=[])

        return Result.success(
            [
                ConversationSummary(
                    id=row.id,
                    title=row.title,
                    updated_at=row.updated_at,
                    first_user_message=row.first_user_message,
                )
                for row in rows
            ]
        )

    def list_messages(self, conversation_id: object) -> Result[list[ChatMessage]]:
        parsed_id = coerce_positive_int(conversation_id)
        if parsed_id is None:
            return Result.failure(
                FailureReason.INVALID_ID,
                f"Invalid conversation id: {conversation_id!r}",
                value=[],
            )

        statement = (
            select(MessageRecord)
            .where(MessageRecord.conversation_id == parsed_id)
            .order_by(MessageRecord.created_at.asc(), MessageRecord.id.asc())
        )
        with self._lock:
            factory = self._session_factory
            if factory is None:
                return self._unavailable(value=[])
            try:
                with factory() as db:
                    messages = [record.to_message() for record in db.scalars(statement)]
            except SQLAlchemyError as exc:
                logger.exception("Failed to load messages for conversation %s", parsed_id)
                return Result.failure(FailureReason.STORAGE_ERROR, str(exc), value=[])
        return Result.success(messages)

    def get_conversation(self, conversation_id: object) -> Result[ConversationSummary | None]:
        parsed_id = coerce_positive_int(conversation_id)
        if parsed_id is None:
            return Result.failure(
                FailureReason.INVALID_ID, f"Invalid conversation id: {conversation_id!r}"
            )

        with self._lock:
            factory = self._session_factory
            if factory is None:
                return self._unavailable()
            try:
                with factory() as db:
                    record = db.get(ConversationRecord, parsed_id)
                    summary = record.to_summary() if record is not None else None
            except SQLAlchemyError as exc:
                logger.exception("Failed to load conversation %s", parsed_id)
                return Result.failure(FailureReason.STORAGE_ERROR, str(exc))
        return Result.success(summary)

    def debug_contents(
        self, session: ChatSession, message_limit: int = DEBUG_MESSAGE_LIMIT
    ) -> Result[dict[str, Any]]:
        """Dump the raw tables for troubleshooting in development builds."""


        with self._lock:
            factory = self._session_factory
            if factory is None:
                return self._unavailable()
            try:
                with factory() as db:
                    conversations = db.scalars(
                        select(ConversationRecord).order_by(
                            ConversationRecord.updated_at.desc(), ConversationRecord.id.desc()
                        )
                    ).all()
                    messages = db.scalars(
                        select(MessageRecord)
                        .order_by(MessageRecord.created_at.desc(), MessageRecord.id.desc())
                        .limit(message_limit)
                    ).all()
                    payload = {
                        "conversations": [
                            {
                                "id": record.id,
                                "title": record.title,
                                "created_at": record.created_at.isoformat(),
                                "updated_at": record.updated_at.isoformat(),
                            }
                            for record in conversations
                        ],
                        "messages": [record.to_message().to_dict() for record in messages],
                        "current_conversation_id": session.current_conversation_id,
                    }
            except SQLAlchemyError as exc:
                logger.exception("Failed to read debug contents")
                return Result.failure(FailureReason.STORAGE_ERROR, str(exc))
        return Result.success(payload)

    def _unavailable(self, value: Any = None) -> Result:
        return Result.failure(
            FailureReason.UNAVAILABLE, self.availability_error() or "", value=value
        )
