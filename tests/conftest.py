from __future__ import annotations

from typing import Any, Mapping, Optional

import pytest

from botdesk.config import AppConfig, BotDefaultsConfig, PipelineConfig, TrainingConfig
from botdesk.core.activity import ActivityLog
from botdesk.core.channel_registry import ChannelRegistry
from botdesk.core.pipeline import MessagePipeline
from botdesk.core.resolver import ConversationResolver
from botdesk.core.types import ChannelKind, LiveEvent
from botdesk.messenger.models import DeliveryResult, InboundMessage
from botdesk.nlp.classifier import IntentClassifier
from botdesk.nlp.selector import ResponseSelector
from botdesk.storage.database import Database
from botdesk.storage.factory import seed_defaults
from botdesk.storage.memory import InMemoryStore
from botdesk.storage.sqlite_store import SqliteStore


class FakeAdapter:
    """Channel adapter that records sends instead of calling a platform."""

    def __init__(self, kind: ChannelKind = ChannelKind.WHATSAPP, result: Optional[DeliveryResult] = None):
        self.kind = kind
        self.result = result or DeliveryResult.ok(200)
        self.sent: list[tuple[str, str]] = []

    @property
    def credential(self) -> Optional[str]:
        return "fake-token"

    def verify(self, params: Mapping[str, str]) -> Optional[str]:
        return None

    def parse_inbound(self, payload: Any) -> list[InboundMessage]:
        return []

    async def send(self, recipient_id: str, text: str) -> DeliveryResult:
        self.sent.append((recipient_id, text))
        return self.result

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass


class FakeBot:
    """Stands in for ``telegram.Bot``."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.sent: list[tuple[str, str]] = []
        self.webhooks: list[str] = []

    async def send_message(self, chat_id, text):
        if self.error:
            raise self.error
        self.sent.append((chat_id, text))

    async def set_webhook(self, url):
        self.webhooks.append(url)
        return True

    async def initialize(self):
        pass

    async def shutdown(self):
        pass


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[tuple[LiveEvent, Any]] = []

    async def __call__(self, event: LiveEvent, data: Any) -> None:
        self.events.append((event, data))

    def of(self, event: LiveEvent) -> list[Any]:
        return [data for kind, data in self.events if kind == event]


def inbound(text: str, user_id: str = "15550001", name: str = "Alice",
            kind: ChannelKind = ChannelKind.WHATSAPP) -> InboundMessage:
    return InboundMessage(
        channel=kind, external_user_id=user_id, display_name=name, text=text, recipient_id=user_id
    )


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
async def seeded_store(memory_store: InMemoryStore) -> InMemoryStore:
    await seed_defaults(memory_store, BotDefaultsConfig())
    return memory_store


@pytest.fixture(params=["memory", "sqlite"])
async def any_store(request):
    if request.param == "memory":
        store = InMemoryStore()
    else:
        store = SqliteStore(Database(":memory:"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def pipeline_factory(seeded_store, publisher):
    def _build(adapter: FakeAdapter, config: Optional[PipelineConfig] = None,
               classifier: Optional[IntentClassifier] = None) -> MessagePipeline:
        registry = ChannelRegistry()
        registry.register(adapter)
        selector = ResponseSelector(classifier or IntentClassifier(), seeded_store)
        return MessagePipeline(
            seeded_store,
            registry,
            ConversationResolver(seeded_store),
            selector,
            ActivityLog(seeded_store, publish=publisher),
            config or PipelineConfig(),
            publish=publisher,
        )

    return _build


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        data_dir=str(tmp_path),
        training=TrainingConfig(holdout_ratio=0.5, max_holdout=50),
        channels={
            "whatsapp": {"verify_token": "wa-verify"},
            "messenger": {"verify_token": "fb-verify"},
        },
    )
