"""SQLite database connection manager with schema migration."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from botdesk.log import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS bot_configs (
    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
    name                 TEXT    NOT NULL,
    language             TEXT    NOT NULL DEFAULT 'en',
    tone                 TEXT    NOT NULL DEFAULT 'professional',
    confidence_threshold INTEGER NOT NULL DEFAULT 75,
    max_response_time    INTEGER NOT NULL DEFAULT 3,
    fallback_message     TEXT    NOT NULL,
    auto_training        INTEGER NOT NULL DEFAULT 1,
    created_at           TEXT    NOT NULL,
    updated_at           TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS platforms (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    name             TEXT    NOT NULL,
    status           TEXT    NOT NULL DEFAULT 'inactive'
                             CHECK(status IN ('active','inactive','error')),
    api_key          TEXT,
    webhook_url      TEXT,
    config_json      TEXT    NOT NULL DEFAULT '{}',
    messages_count   INTEGER NOT NULL DEFAULT 0,
    last_message_at  TEXT,
    created_at       TEXT    NOT NULL,
    updated_at       TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_platforms_name ON platforms(name);

CREATE TABLE IF NOT EXISTS conversations (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    platform_id      INTEGER NOT NULL,
    user_id          TEXT    NOT NULL,
    user_name        TEXT,
    status           TEXT    NOT NULL DEFAULT 'active'
                             CHECK(status IN ('active','resolved','escalated')),
    messages_count   INTEGER NOT NULL DEFAULT 0,
    last_message_at  TEXT,
    created_at       TEXT    NOT NULL,
    updated_at       TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_conversations_user
    ON conversations(platform_id, user_id);

CREATE TABLE IF NOT EXISTS messages (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id  INTEGER NOT NULL,
    content          TEXT    NOT NULL,
    sender           TEXT    NOT NULL CHECK(sender IN ('user','bot')),
    confidence       INTEGER,
    response_time    INTEGER,
    template_id      INTEGER,
    sent_at          TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON messages(conversation_id, sent_at);

CREATE INDEX IF NOT EXISTS idx_messages_sent ON messages(sent_at);

CREATE TABLE IF NOT EXISTS templates (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    name             TEXT    NOT NULL,
    category         TEXT    NOT NULL,
    content          TEXT    NOT NULL,
    variables_json   TEXT    NOT NULL DEFAULT '[]',
    is_active        INTEGER NOT NULL DEFAULT 1,
    usage_count      INTEGER NOT NULL DEFAULT 0,
    created_at       TEXT    NOT NULL,
    updated_at       TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS ml_models (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    name               TEXT    NOT NULL,
    version            TEXT    NOT NULL,
    accuracy           INTEGER NOT NULL DEFAULT 0,
    training_data_json TEXT    NOT NULL DEFAULT '[]',
    status             TEXT    NOT NULL DEFAULT 'training'
                               CHECK(status IN ('training','ready','error')),
    last_trained_at    TEXT,
    created_at         TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS logs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    level            TEXT    NOT NULL CHECK(level IN ('info','warn','error')),
    message          TEXT    NOT NULL,
    details_json     TEXT,
    source           TEXT    NOT NULL,
    created_at       TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_logs_created ON logs(created_at);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
