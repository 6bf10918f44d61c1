from botdesk.core.resolver import UNKNOWN_USER, ConversationResolver
from botdesk.core.types import ChannelKind


async def test_platform_created_once_per_channel(memory_store):
    resolver = ConversationResolver(memory_store)
    first = await resolver.resolve_platform(ChannelKind.TELEGRAM, "bot-token")
    second = await resolver.resolve_platform(ChannelKind.TELEGRAM, "other")

    assert first.id == second.id
    assert first.status == "active"
    assert first.api_key == "bot-token"


async def test_repeat_user_resolves_to_same_conversation(memory_store):
    resolver = ConversationResolver(memory_store)
    platform = await resolver.resolve_platform(ChannelKind.WHATSAPP)

    first = await resolver.resolve(platform.id, "15550001", "Alice")
    second = await resolver.resolve(platform.id, "15550001", "Alice Renamed")

    assert first.id == second.id
    assert second.user_name == "Alice"
    assert first.status == "active"
    assert first.messages_count == 0


async def test_same_user_id_on_other_platform_is_separate(memory_store):
    resolver = ConversationResolver(memory_store)
    wa = await resolver.resolve_platform(ChannelKind.WHATSAPP)
    fb = await resolver.resolve_platform(ChannelKind.MESSENGER)

    assert (await resolver.resolve(wa.id, "42")).id != (await resolver.resolve(fb.id, "42")).id


async def test_missing_display_name_gets_placeholder(memory_store):
    resolver = ConversationResolver(memory_store)
    platform = await resolver.resolve_platform(ChannelKind.WHATSAPP)
    assert (await resolver.resolve(platform.id, "7", None)).user_name == UNKNOWN_USER


async def test_record_turn_adds_two_and_stamps(memory_store):
    resolver = ConversationResolver(memory_store)
    platform = await resolver.resolve_platform(ChannelKind.WHATSAPP)
    conversation = await resolver.resolve(platform.id, "7")

    updated = await resolver.record_turn(conversation.id)
    updated = await resolver.record_turn(conversation.id)

    assert updated.messages_count == 4
    assert updated.last_message_at is not None
