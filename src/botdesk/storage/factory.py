"""Store selection by configuration, plus first-start seeding."""

from __future__ import annotations

from botdesk.config import BotDefaultsConfig, StorageConfig
from botdesk.core.types import ModelStatus
from botdesk.log import get_logger
from botdesk.storage.base import RecordStore
from botdesk.storage.database import Database
from botdesk.storage.memory import InMemoryStore
from botdesk.storage.sqlite_store import SqliteStore

logger = get_logger(__name__)

DEFAULT_TEMPLATES = [
    {
        "name": "Welcome Message",
        "category": "Greetings",
        "content": "Hello! Welcome to our support desk. How can I assist you today?",
        "variables": [],
    },
    {
        "name": "Order Support",
        "category": "Customer Support",
        "content": "I'd be happy to help you with your order {orderNumber}. Could you share a few more details?",
        "variables": ["orderNumber"],
    },
    {
        "name": "Product Information",
        "category": "Sales",
        "content": "I can provide information about {productName}. What would you like to know?",
        "variables": ["productName"],
    },
]


def build_store(config: StorageConfig) -> RecordStore:
    """Construct the configured backend without opening it."""
    match config.backend:
        case "memory":
            return InMemoryStore()
        case "sqlite":
            return SqliteStore(Database(config.db_path))
        case _:
            raise ValueError(f"Unknown storage backend: {config.backend}")


async def seed_defaults(store: RecordStore, defaults: BotDefaultsConfig) -> None:
    """Create the bot configuration, starter templates and initial model if missing."""
    if await store.get_bot_config() is None:
        await store.create_bot_config(
            **defaults.model_dump(exclude={"seed_templates"}),
        )
        logger.info("bot_config_seeded", name=defaults.name)

    if defaults.seed_templates and not await store.list_templates():
        for template in DEFAULT_TEMPLATES:
            await store.create_template(**template)
        logger.info("templates_seeded", count=len(DEFAULT_TEMPLATES))

    if not await store.list_ml_models():
        await store.create_ml_model(
            name="Intent Rules", version="1.0.0", status=ModelStatus.READY.value, accuracy=0
        )
        logger.info("ml_model_seeded")
