"""Versioned schema migrations for the chat history database.

The applied version is kept in SQLite's ``PRAGMA user_version``. Databases
created before versioning existed report version 0 and simply run every step;
the steps are written so they also succeed when the tables are already there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import Connection, Engine

from .db import Base, ConversationRecord, MessageRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    apply: Callable[[Connection], None]


def _create_core_tables(connection: Connection) -> None:
    Base.metadata.create_all(
        connection,
        tables=[ConversationRecord.__table__, MessageRecord.__table__],
        checkfirst=True,
    )


def _index_messages_by_conversation(connection: Connection) -> None:
    connection.exec_driver_sql(
        "CREATE INDEX IF NOT EXISTS ix_messages_conversation_created "
        "ON messages (conversation_id, created_at)"
    )


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "create conversations and messages", _create_core_tables),
    Migration(2, "index messages by conversation", _index_messages_by_conversation),
)

SCHEMA_VERSION = MIGRATIONS[-1].version


def current_version(connection: Connection) -> int:
    return int(connection.exec_driver_sql("PRAGMA user_version").scalar() or 0)


def migrate(engine: Engine) -> int:
    """Apply pending migrations and return the resulting schema version."""

    with engine.begin() as connection:
        version = current_version(connection)
        if version > SCHEMA_VERSION:
            logger.warning(
                "Database schema version %s is newer than supported version %s",
                version,
                SCHEMA_VERSION,
            )
            return version
        for migration in MIGRATIONS:
            if migration.version <= version:
                continue
            logger.info("Applying migration %s: %s", migration.version, migration.description)
            migration.apply(connection)
            # PRAGMA does not accept bound parameters
            connection.exec_driver_sql(f"PRAGMA user_version = {int(migration.version)}")
            version = migration.version
    return version
