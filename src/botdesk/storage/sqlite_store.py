"""Record store backed by SQLite through aiosqlite."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from botdesk.core.errors import NotFoundError, ValidationError
from botdesk.log import get_logger
from botdesk.storage.base import RecordStore
from botdesk.storage.database import Database
from botdesk.storage.models import (
    BotConfig,
    Conversation,
    LogEntry,
    Message,
    MlModel,
    Platform,
    Template,
    utc_now,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Table:
    """How one record dataclass maps onto its table."""

    name: str
    kind: str
    record: type
    json_columns: dict[str, str] = field(default_factory=dict)  # field -> column
    bool_fields: frozenset[str] = frozenset()
    datetime_fields: frozenset[str] = frozenset()

    @property
    def fields(self) -> list[str]:
        return [f.name for f in dataclasses.fields(self.record)]

    def column(self, name: str) -> str:
        return self.json_columns.get(name, name)


_BOT_CONFIGS = _Table(
    "bot_configs", "bot_config", BotConfig,
    bool_fields=frozenset({"auto_training"}),
    datetime_fields=frozenset({"created_at", "updated_at"}),
)
_PLATFORMS = _Table(
    "platforms", "platform", Platform,
    json_columns={"config": "config_json"},
    datetime_fields=frozenset({"last_message_at", "created_at", "updated_at"}),
)
_CONVERSATIONS = _Table(
    "conversations", "conversation", Conversation,
    datetime_fields=frozenset({"last_message_at", "created_at", "updated_at"}),
)
_MESSAGES = _Table(
    "messages", "message", Message,
    datetime_fields=frozenset({"sent_at"}),
)
_TEMPLATES = _Table(
    "templates", "template", Template,
    json_columns={"variables": "variables_json"},
    bool_fields=frozenset({"is_active"}),
    datetime_fields=frozenset({"created_at", "updated_at"}),
)
_ML_MODELS = _Table(
    "ml_models", "ml_model", MlModel,
    json_columns={"training_data": "training_data_json"},
    datetime_fields=frozenset({"last_trained_at", "created_at"}),
)
_LOGS = _Table(
    "logs", "log", LogEntry,
    json_columns={"details": "details_json"},
    datetime_fields=frozenset({"created_at"}),
)


def _encode_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _encode(table: _Table, name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in table.json_columns:
        return json.dumps(value, ensure_ascii=False)
    if name in table.bool_fields:
        return int(bool(value))
    if name in table.datetime_fields:
        return _encode_datetime(value)
    return value


def _decode_row(table: _Table, row: Any) -> Any:
    values: dict[str, Any] = {}
    for name in table.fields:
        raw = row[table.column(name)]
        if raw is None:
            values[name] = None
        elif name in table.json_columns:
            values[name] = json.loads(raw)
        elif name in table.bool_fields:
            values[name] = bool(raw)
        elif name in table.datetime_fields:
            values[name] = datetime.fromisoformat(raw)
        else:
            values[name] = raw
    return table.record(**values)


class SqliteStore(RecordStore):
    """CRUD over the botdesk schema; one connection, commit per write."""

    def __init__(self, db: Database):
        self._db = db

    async def initialize(self) -> None:
        await self._db.initialize()

    async def close(self) -> None:
        await self._db.close()

    # Generic helpers

    async def _insert(self, table: _Table, values: dict[str, Any]) -> Any:
        unknown = set(values) - set(table.fields)
        if unknown:
            raise ValidationError(f"Unknown {table.kind} fields: {', '.join(sorted(unknown))}")
        now = utc_now()
        for stamp in ("created_at", "updated_at", "sent_at"):
            if stamp in table.fields and values.get(stamp) is None:
                values[stamp] = now
        # Fill dataclass defaults so NOT NULL columns always get a value
        draft = table.record(id=0, **values)
        row = {
            name: getattr(draft, name) for name in table.fields if name != "id"
        }
        columns = [table.column(name) for name in row]
        placeholders = ", ".join("?" for _ in columns)
        cursor = await self._db.conn.execute(
            f"INSERT INTO {table.name} ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(_encode(table, name, value) for name, value in row.items()),
        )
        await self._db.conn.commit()
        return dataclasses.replace(draft, id=cursor.lastrowid)

    async def _update(self, table: _Table, entity_id: int, changes: dict[str, Any]) -> Any:
        allowed = set(table.fields) - {"id", "created_at"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown {table.kind} fields: {', '.join(sorted(unknown))}")
        if "updated_at" in table.fields:
            changes = {**changes, "updated_at": utc_now()}
        if changes:
            assignments = ", ".join(f"{table.column(name)} = ?" for name in changes)
            cursor = await self._db.conn.execute(
                f"UPDATE {table.name} SET {assignments} WHERE id = ?",
                (*(_encode(table, name, value) for name, value in changes.items()), entity_id),
            )
            await self._db.conn.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(table.kind, entity_id)
        record = await self._get(table, entity_id)
        if record is None:
            raise NotFoundError(table.kind, entity_id)
        return record

    async def _get(self, table: _Table, entity_id: int) -> Any:
        cursor = await self._db.conn.execute(
            f"SELECT * FROM {table.name} WHERE id = ?", (entity_id,)
        )
        row = await cursor.fetchone()
        return _decode_row(table, row) if row else None

    async def _select(self, table: _Table, where: str = "", params: tuple = (), order: str = "id ASC", limit: int | None = None) -> list[Any]:
        sql = f"SELECT * FROM {table.name}"
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY {order}"
        if limit is not None:
            sql += " LIMIT ?"
            params = (*params, limit)
        cursor = await self._db.conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [_decode_row(table, row) for row in rows]

    # Bot configuration

    async def get_bot_config(self) -> Optional[BotConfig]:
        configs = await self._select(_BOT_CONFIGS, limit=1)
        return configs[0] if configs else None

    async def create_bot_config(self, **fields: Any) -> BotConfig:
        return await self._insert(_BOT_CONFIGS, fields)

    async def update_bot_config(self, **changes: Any) -> BotConfig:
        current = await self.get_bot_config()
        if current is None:
            raise NotFoundError("bot_config", 1)
        return await self._update(_BOT_CONFIGS, current.id, changes)

    # Platforms

    async def list_platforms(self) -> list[Platform]:
        return await self._select(_PLATFORMS)

    async def get_platform(self, platform_id: int) -> Optional[Platform]:
        return await self._get(_PLATFORMS, platform_id)

    async def get_platform_by_name(self, name: str) -> Optional[Platform]:
        platforms = await self._select(_PLATFORMS, "name = ?", (name,), limit=1)
        return platforms[0] if platforms else None

    async def create_platform(self, name: str, **fields: Any) -> Platform:
        return await self._insert(_PLATFORMS, {"name": name, **fields})

    async def update_platform(self, platform_id: int, **changes: Any) -> Platform:
        return await self._update(_PLATFORMS, platform_id, changes)

    # Conversations

    async def list_conversations(self, platform_id: Optional[int] = None) -> list[Conversation]:
        if platform_id is None:
            return await self._select(_CONVERSATIONS)
        return await self._select(_CONVERSATIONS, "platform_id = ?", (platform_id,))

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return await self._get(_CONVERSATIONS, conversation_id)

    async def create_conversation(self, platform_id: int, user_id: str, **fields: Any) -> Conversation:
        return await self._insert(
            _CONVERSATIONS, {"platform_id": platform_id, "user_id": user_id, **fields}
        )

    async def update_conversation(self, conversation_id: int, **changes: Any) -> Conversation:
        return await self._update(_CONVERSATIONS, conversation_id, changes)

    # Messages

    async def create_message(self, conversation_id: int, content: str, sender: str, **fields: Any) -> Message:
        return await self._insert(
            _MESSAGES,
            {"conversation_id": conversation_id, "content": content, "sender": sender, **fields},
        )

    async def list_messages(self, conversation_id: int) -> list[Message]:
        return await self._select(
            _MESSAGES, "conversation_id = ?", (conversation_id,), order="sent_at ASC, id ASC"
        )

    async def recent_messages(self, limit: int = 50) -> list[Message]:
        return await self._select(_MESSAGES, order="sent_at DESC, id DESC", limit=limit)

    async def messages_since(self, since: datetime) -> list[Message]:
        return await self._select(
            _MESSAGES, "sent_at >= ?", (_encode_datetime(since),), order="sent_at ASC, id ASC"
        )

    # Templates

    async def list_templates(self) -> list[Template]:
        return await self._select(_TEMPLATES)

    async def get_template(self, template_id: int) -> Optional[Template]:
        return await self._get(_TEMPLATES, template_id)

    async def create_template(self, name: str, category: str, content: str, **fields: Any) -> Template:
        return await self._insert(
            _TEMPLATES, {"name": name, "category": category, "content": content, **fields}
        )

    async def update_template(self, template_id: int, **changes: Any) -> Template:
        return await self._update(_TEMPLATES, template_id, changes)

    async def delete_template(self, template_id: int) -> None:
        cursor = await self._db.conn.execute("DELETE FROM templates WHERE id = ?", (template_id,))
        await self._db.conn.commit()
        if cursor.rowcount == 0:
            raise NotFoundError("template", template_id)
        logger.info("template_deleted", template_id=template_id)

    # ML models

    async def list_ml_models(self) -> list[MlModel]:
        return await self._select(_ML_MODELS)

    async def get_current_ml_model(self) -> Optional[MlModel]:
        models = await self._select(
            _ML_MODELS, "status = ?", ("ready",), order="created_at DESC, id DESC", limit=1
        )
        return models[0] if models else None

    async def create_ml_model(self, name: str, version: str, **fields: Any) -> MlModel:
        return await self._insert(_ML_MODELS, {"name": name, "version": version, **fields})

    async def update_ml_model(self, model_id: int, **changes: Any) -> MlModel:
        return await self._update(_ML_MODELS, model_id, changes)

    # Logs

    async def create_log(self, level: str, message: str, source: str, details: Optional[dict] = None) -> LogEntry:
        return await self._insert(
            _LOGS, {"level": level, "message": message, "source": source, "details": details}
        )

    async def recent_logs(self, limit: int = 100) -> list[LogEntry]:
        return await self._select(_LOGS, order="created_at DESC, id DESC", limit=limit)
