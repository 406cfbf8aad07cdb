import sqlite3

from sqlalchemy import inspect

from inception_chat.db import create_sqlite_engine
from inception_chat.history import ConversationStore
from inception_chat.migrations import SCHEMA_VERSION, current_version, migrate
from inception_chat.session import ChatSession

LEGACY_SCHEMA = """
CREATE TABLE conversations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id INTEGER,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (conversation_id) REFERENCES conversations (id)
);
"""


def _user_version(path):
    with sqlite3.connect(path) as connection:
        return connection.execute("PRAGMA user_version").fetchone()[0]


def test_fresh_database_is_migrated_to_latest(tmp_path):
    engine = create_sqlite_engine(tmp_path / "fresh.db")
    try:
        assert migrate(engine) == SCHEMA_VERSION
        inspector = inspect(engine)
        assert {"conversations", "messages"} <= set(inspector.get_table_names())
        index_names = {index["name"] for index in inspector.get_indexes("messages")}
        assert "ix_messages_conversation_created" in index_names
    finally:
        engine.dispose()


def test_migrate_is_idempotent(tmp_path):
    engine = create_sqlite_engine(tmp_path / "twice.db")
    try:
        migrate(engine)
        assert migrate(engine) == SCHEMA_VERSION
        with engine.connect() as connection:
            assert current_version(connection) == SCHEMA_VERSION
    finally:
        engine.dispose()


def test_unversioned_legacy_database_is_upgraded(tmp_path):
    path = tmp_path / "legacy.db"
    with sqlite3.connect(path) as connection:
        connection.executescript(LEGACY_SCHEMA)
        connection.execute("INSERT INTO conversations (title) VALUES ('Old chat')")
        connection.execute(
            "INSERT INTO messages (conversation_id, role, content) VALUES (1, 'user', 'old prompt')"
        )

    store = ConversationStore.open(path)
    try:
        assert _user_version(path) == SCHEMA_VERSION
        assert [m.content for m in store.list_messages(1).value] == ["old prompt"]
        (summary,) = store.list_recent_conversations().value
        assert summary.title == "Old chat"
        assert summary.first_user_message == "old prompt"

        session = ChatSession()
        store.append_message(session, "user", "new prompt")
        assert session.current_conversation_id == 2
    finally:
        store.close()


def test_newer_schema_is_left_alone(tmp_path):
    path = tmp_path / "future.db"
    with sqlite3.connect(path) as connection:
        connection.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 5}")

    engine = create_sqlite_engine(path)
    try:
        assert migrate(engine) == SCHEMA_VERSION + 5
        assert "conversations" not in inspect(engine).get_table_names()
    finally:
        engine.dispose()
