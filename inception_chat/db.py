from __future__ import annotations

from datetime import datetime
from pathlib import Path

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Engine,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import ChatMessage, ConversationSummary, utc_now


class Base(DeclarativeBase):
    pass


class ConversationRecord(Base):
    __tablename__ = "conversations"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    messages: Mapped[list["MessageRecord"]] = relationship(back_populates="conversation")

    def to_summary(self, first_user_message: str | None = None) -> ConversationSummary:
        return ConversationSummary(
            id=self.id,
            title=self.title,
            updated_at=self.updated_at,
            first_user_message=first_user_message,
        )


class MessageRecord(Base):
    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    conversation: Mapped[ConversationRecord] = relationship(back_populates="messages")

    def to_message(self) -> ChatMessage:
        return ChatMessage(
            id=self.id,
            conversation_id=self.conversation_id,
            role=self.role,  # type: ignore[arg-type]
            content=self.content,
            created_at=self.created_at,
        )


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
    finally:
        cursor.close()


def create_sqlite_engine(path: Path | None) -> Engine:
    """
    Build an engine backed by a single SQLite connection.

    ``path=None`` gives an in-memory database. One shared connection means
    writes are naturally serialized; callers still guard it with a lock since
    the connection is shared across threads.
    """

    if path is None:
        url = "sqlite://"
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{path}"
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
