"""Find-or-create for platforms and conversations, plus their rolling counters."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from botdesk.core.types import ChannelKind, ConversationStatus, PlatformStatus
from botdesk.log import get_logger
from botdesk.storage.base import RecordStore
from botdesk.storage.models import Conversation, Platform, utc_now

logger = get_logger(__name__)

UNKNOWN_USER = "Unknown User"


class ConversationResolver:
    """Maps an inbound (channel, external user) pair onto stored records.

    Lookups are read-then-create without locking: two concurrent first
    messages from one user may each create a conversation. Counter updates
    read the stored value and write it back incremented.
    """

    def __init__(self, store: RecordStore):
        self._store = store

    async def resolve_platform(self, kind: ChannelKind, credential: Optional[str] = None) -> Platform:
        platform = await self._store.get_platform_by_name(kind.value)
        if platform is not None:
            return platform

        platform = await self._store.create_platform(
            name=kind.value, status=PlatformStatus.ACTIVE.value, api_key=credential
        )
        logger.info("platform_created", platform_id=platform.id, channel=kind.value)
        return platform

    async def resolve(self, platform_id: int, user_id: str, user_name: Optional[str] = None) -> Conversation:
        for conversation in await self._store.list_conversations(platform_id=platform_id):
            if conversation.user_id == user_id:
                return conversation

        conversation = await self._store.create_conversation(
            platform_id=platform_id,
            user_id=user_id,
            user_name=user_name or UNKNOWN_USER,
            status=ConversationStatus.ACTIVE.value,
        )
        logger.info("conversation_created", conversation_id=conversation.id, platform_id=platform_id)
        return conversation

    async def record_turn(self, conversation_id: int, at: Optional[datetime] = None) -> Conversation:
        """One user message plus one bot reply."""
        current = await self._store.get_conversation_or_raise(conversation_id)
        return await self._store.update_conversation(
            conversation_id,
            messages_count=current.messages_count + 2,
            last_message_at=at or utc_now(),
        )

    async def record_platform_message(self, platform_id: int, at: Optional[datetime] = None) -> Platform:
        current = await self._store.get_platform_or_raise(platform_id)
        return await self._store.update_platform(
            platform_id,
            messages_count=current.messages_count + 1,
            last_message_at=at or utc_now(),
        )
