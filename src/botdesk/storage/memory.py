"""In-process record store keyed by per-kind integer ids."""

from __future__ import annotations

import copy
import dataclasses
import itertools
from datetime import datetime
from typing import Any, Optional, TypeVar

from botdesk.core.errors import NotFoundError, ValidationError
from botdesk.storage.base import RecordStore
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

T = TypeVar("T")


def _merge(record: T, kind: str, changes: dict[str, Any]) -> T:
    allowed = {f.name for f in dataclasses.fields(record)} - {"id", "created_at"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Unknown {kind} fields: {', '.join(sorted(unknown))}")
    if "updated_at" in allowed:
        changes = {**changes, "updated_at": utc_now()}
    return dataclasses.replace(record, **changes)


class InMemoryStore(RecordStore):
    """Arena of dicts; every entity kind has its own id sequence.

    Records are copied on the way in and out so callers never hold a live
    reference into the arena.
    """

    def __init__(self) -> None:
        self._bot_configs: dict[int, BotConfig] = {}
        self._platforms: dict[int, Platform] = {}
        self._conversations: dict[int, Conversation] = {}
        self._messages: dict[int, Message] = {}
        self._templates: dict[int, Template] = {}
        self._ml_models: dict[int, MlModel] = {}
        self._logs: dict[int, LogEntry] = {}
        self._ids: dict[str, itertools.count] = {}

    def _next_id(self, kind: str) -> int:
        counter = self._ids.setdefault(kind, itertools.count(1))
        return next(counter)

    def _insert(self, table: dict[int, T], record: T) -> T:
        table[record.id] = copy.deepcopy(record)  # type: ignore[attr-defined]
        return copy.deepcopy(record)

    def _update(self, table: dict[int, T], kind: str, entity_id: int, changes: dict[str, Any]) -> T:
        current = table.get(entity_id)
        if current is None:
            raise NotFoundError(kind, entity_id)
        updated = _merge(current, kind, changes)
        table[entity_id] = updated
        return copy.deepcopy(updated)

    @staticmethod
    def _values(table: dict[int, T]) -> list[T]:
        return [copy.deepcopy(v) for _, v in sorted(table.items())]

    # Bot configuration

    async def get_bot_config(self) -> Optional[BotConfig]:
        configs = self._values(self._bot_configs)
        return configs[0] if configs else None

    async def create_bot_config(self, **fields: Any) -> BotConfig:
        config = BotConfig(id=self._next_id("bot_config"), **fields)
        return self._insert(self._bot_configs, config)

    async def update_bot_config(self, **changes: Any) -> BotConfig:
        current = await self.get_bot_config()
        if current is None:
            raise NotFoundError("bot_config", 1)
        return self._update(self._bot_configs, "bot_config", current.id, changes)

    # Platforms

    async def list_platforms(self) -> list[Platform]:
        return self._values(self._platforms)

    async def get_platform(self, platform_id: int) -> Optional[Platform]:
        platform = self._platforms.get(platform_id)
        return copy.deepcopy(platform) if platform else None

    async def get_platform_by_name(self, name: str) -> Optional[Platform]:
        for platform in self._values(self._platforms):
            if platform.name == name:
                return platform
        return None

    async def create_platform(self, name: str, **fields: Any) -> Platform:
        platform = Platform(id=self._next_id("platform"), name=name, **fields)
        return self._insert(self._platforms, platform)

    async def update_platform(self, platform_id: int, **changes: Any) -> Platform:
        return self._update(self._platforms, "platform", platform_id, changes)

    # Conversations

    async def list_conversations(self, platform_id: Optional[int] = None) -> list[Conversation]:
        conversations = self._values(self._conversations)
        if platform_id is not None:
            conversations = [c for c in conversations if c.platform_id == platform_id]
        return conversations

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return copy.deepcopy(conversation) if conversation else None

    async def create_conversation(self, platform_id: int, user_id: str, **fields: Any) -> Conversation:
        conversation = Conversation(
            id=self._next_id("conversation"), platform_id=platform_id, user_id=user_id, **fields
        )
        return self._insert(self._conversations, conversation)

    async def update_conversation(self, conversation_id: int, **changes: Any) -> Conversation:
        return self._update(self._conversations, "conversation", conversation_id, changes)

    # Messages

    async def create_message(self, conversation_id: int, content: str, sender: str, **fields: Any) -> Message:
        message = Message(
            id=self._next_id("message"),
            conversation_id=conversation_id,
            content=content,
            sender=sender,
            **fields,
        )
        return self._insert(self._messages, message)

    async def list_messages(self, conversation_id: int) -> list[Message]:
        messages = [m for m in self._values(self._messages) if m.conversation_id == conversation_id]
        return sorted(messages, key=lambda m: (m.sent_at, m.id))

    async def recent_messages(self, limit: int = 50) -> list[Message]:
        messages = sorted(self._values(self._messages), key=lambda m: (m.sent_at, m.id), reverse=True)
        return messages[:limit]

    async def messages_since(self, since: datetime) -> list[Message]:
        messages = [m for m in self._values(self._messages) if m.sent_at >= since]
        return sorted(messages, key=lambda m: (m.sent_at, m.id))

    # Templates

    async def list_templates(self) -> list[Template]:
        return self._values(self._templates)

    async def get_template(self, template_id: int) -> Optional[Template]:
        template = self._templates.get(template_id)
        return copy.deepcopy(template) if template else None

    async def create_template(self, name: str, category: str, content: str, **fields: Any) -> Template:
        template = Template(
            id=self._next_id("template"), name=name, category=category, content=content, **fields
        )
        return self._insert(self._templates, template)

    async def update_template(self, template_id: int, **changes: Any) -> Template:
        return self._update(self._templates, "template", template_id, changes)

    async def delete_template(self, template_id: int) -> None:
        if self._templates.pop(template_id, None) is None:
            raise NotFoundError("template", template_id)

    # ML models

    async def list_ml_models(self) -> list[MlModel]:
        return self._values(self._ml_models)

    async def create_ml_model(self, name: str, version: str, **fields: Any) -> MlModel:
        model = MlModel(id=self._next_id("ml_model"), name=name, version=version, **fields)
        return self._insert(self._ml_models, model)

    async def update_ml_model(self, model_id: int, **changes: Any) -> MlModel:
        return self._update(self._ml_models, "ml_model", model_id, changes)

    # Logs

    async def create_log(self, level: str, message: str, source: str, details: Optional[dict] = None) -> LogEntry:
        entry = LogEntry(
            id=self._next_id("log"), level=level, message=message, source=source, details=details
        )
        return self._insert(self._logs, entry)

    async def recent_logs(self, limit: int = 100) -> list[LogEntry]:
        logs = sorted(self._values(self._logs), key=lambda e: (e.created_at, e.id), reverse=True)
        return logs[:limit]
