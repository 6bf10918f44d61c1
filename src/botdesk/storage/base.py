"""Abstract record store interface consumed by the pipeline, services and HTTP layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from botdesk.core.errors import NotFoundError
from botdesk.storage.models import (
    BotConfig,
    Conversation,
    LogEntry,
    Message,
    MlModel,
    Platform,
    Template,
)


class RecordStore(ABC):
    """Keyed storage for platforms, conversations, messages, templates, models and logs.

    Update methods take keyword changes and merge them over the stored row,
    refreshing ``updated_at`` where the entity has one. Unknown ids raise
    :class:`NotFoundError`.
    """

    async def initialize(self) -> None:
        """Prepare the backend (open connections, run migrations)."""

    async def close(self) -> None:
        """Release backend resources."""

    # Bot configuration

    @abstractmethod
    async def get_bot_config(self) -> Optional[BotConfig]:
        ...

    @abstractmethod
    async def create_bot_config(self, **fields: Any) -> BotConfig:
        ...

    @abstractmethod
    async def update_bot_config(self, **changes: Any) -> BotConfig:
        ...

    # Platforms

    @abstractmethod
    async def list_platforms(self) -> list[Platform]:
        ...

    @abstractmethod
    async def get_platform(self, platform_id: int) -> Optional[Platform]:
        ...

    @abstractmethod
    async def get_platform_by_name(self, name: str) -> Optional[Platform]:
        ...

    @abstractmethod
    async def create_platform(self, name: str, **fields: Any) -> Platform:
        ...

    @abstractmethod
    async def update_platform(self, platform_id: int, **changes: Any) -> Platform:
        ...

    # Conversations

    @abstractmethod
    async def list_conversations(self, platform_id: Optional[int] = None) -> list[Conversation]:
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        ...

    @abstractmethod
    async def create_conversation(self, platform_id: int, user_id: str, **fields: Any) -> Conversation:
        ...

    @abstractmethod
    async def update_conversation(self, conversation_id: int, **changes: Any) -> Conversation:
        ...

    # Messages

    @abstractmethod
    async def create_message(self, conversation_id: int, content: str, sender: str, **fields: Any) -> Message:
        ...

    @abstractmethod
    async def list_messages(self, conversation_id: int) -> list[Message]:
        """Messages of one conversation in send order."""

    @abstractmethod
    async def recent_messages(self, limit: int = 50) -> list[Message]:
        """Newest first."""

    @abstractmethod
    async def messages_since(self, since: datetime) -> list[Message]:
        """Messages sent at or after *since*, oldest first."""

    # Templates

    @abstractmethod
    async def list_templates(self) -> list[Template]:
        ...

    @abstractmethod
    async def get_template(self, template_id: int) -> Optional[Template]:
        ...

    @abstractmethod
    async def create_template(self, name: str, category: str, content: str, **fields: Any) -> Template:
        ...

    @abstractmethod
    async def update_template(self, template_id: int, **changes: Any) -> Template:
        ...

    @abstractmethod
    async def delete_template(self, template_id: int) -> None:
        ...

    # ML models

    @abstractmethod
    async def list_ml_models(self) -> list[MlModel]:
        ...

    @abstractmethod
    async def create_ml_model(self, name: str, version: str, **fields: Any) -> MlModel:
        ...

    @abstractmethod
    async def update_ml_model(self, model_id: int, **changes: Any) -> MlModel:
        ...

    async def get_current_ml_model(self) -> Optional[MlModel]:
        """Most recently created model in ``ready`` status."""
        ready = [m for m in await self.list_ml_models() if m.status == "ready"]
        if not ready:
            return None
        return max(ready, key=lambda m: (m.created_at, m.id))

    # Logs

    @abstractmethod
    async def create_log(self, level: str, message: str, source: str, details: Optional[dict] = None) -> LogEntry:
        ...

    @abstractmethod
    async def recent_logs(self, limit: int = 100) -> list[LogEntry]:
        ...

    # Helpers

    async def get_platform_or_raise(self, platform_id: int) -> Platform:
        platform = await self.get_platform(platform_id)
        if platform is None:
            raise NotFoundError("platform", platform_id)
        return platform

    async def get_conversation_or_raise(self, conversation_id: int) -> Conversation:
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("conversation", conversation_id)
        return conversation

    async def get_template_or_raise(self, template_id: int) -> Template:
        template = await self.get_template(template_id)
        if template is None:
            raise NotFoundError("template", template_id)
        return template
