"""Builds training pairs from stored conversations and scores them on a held-out slice."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from botdesk.config import TrainingConfig
from botdesk.core.activity import ActivityLog, Publisher
from botdesk.core.types import LiveEvent, ModelStatus, Sender
from botdesk.log import get_logger
from botdesk.nlp.classifier import IntentClassifier
from botdesk.storage.base import RecordStore
from botdesk.storage.models import MlModel, utc_now

logger = get_logger(__name__)

SOURCE = "ml_trainer"
MIN_CORRECT_CONFIDENCE = 70

# Keyword in a bot reply -> intent of the user message that triggered it.
RESPONSE_INTENT_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("thank you for your message", "general_inquiry"),
    ("hello", "greeting"),
    ("welcome to", "greeting"),
    ("goodbye", "farewell"),
    ("have a great day", "farewell"),
    ("you're welcome", "gratitude"),
    ("pricing", "pricing_inquiry"),
    ("price", "pricing_inquiry"),
    ("delivery", "delivery_inquiry"),
    ("shipping", "delivery_inquiry"),
    ("help", "help_request"),
    ("assist", "help_request"),
)


@dataclass(frozen=True)
class TrainingResult:
    accuracy: int  # percentage
    samples: int
    holdout: int


def infer_intent(response: str) -> Optional[str]:
    lowered = response.lower()
    for keyword, intent in RESPONSE_INTENT_KEYWORDS:
        if keyword in lowered:
            return intent
    return None


def holdout_accuracy(pairs: list[dict[str, str]], ratio: float, max_holdout: int) -> tuple[int, int]:
    """Train on all but the leading slice and score the leading slice.

    Returns ``(accuracy_percent, holdout_size)``; accuracy is 0 when the
    slice is empty.
    """
    holdout_size = min(max_holdout, math.floor(len(pairs) * ratio))
    if holdout_size == 0:
        return 0, 0

    held_out, rest = pairs[:holdout_size], pairs[holdout_size:]
    candidate = IntentClassifier()
    candidate.train(rest)

    correct = 0
    for sample in held_out:
        result = candidate.classify(sample["text"])
        if result.intent == sample["intent"] and result.confidence >= MIN_CORRECT_CONFIDENCE:
            correct += 1
    return round(correct / holdout_size * 100), holdout_size


class ModelTrainer:
    """Retrains the live classifier and maintains the current model record."""

    def __init__(
        self,
        store: RecordStore,
        classifier: IntentClassifier,
        activity: ActivityLog,
        config: TrainingConfig,
        publish: Optional[Publisher] = None,
    ):
        self._store = store
        self._classifier = classifier
        self._activity = activity
        self._config = config
        self._publish = publish

    def attach(self, publish: Publisher) -> None:
        self._publish = publish

    async def collect_pairs(self) -> list[dict[str, str]]:
        pairs: list[dict[str, str]] = []
        for conversation in await self._store.list_conversations():
            messages = await self._store.list_messages(conversation.id)
            for current, following in zip(messages, messages[1:]):
                if current.sender != Sender.USER or following.sender != Sender.BOT:
                    continue
                intent = infer_intent(following.content)
                if intent:
                    pairs.append({"text": current.content, "intent": intent})
        return pairs

    async def train_from_conversations(self) -> TrainingResult:
        model = await self._store.get_current_ml_model()
        if model is not None:
            model = await self._store.update_ml_model(model.id, status=ModelStatus.TRAINING.value)
            if self._publish is not None:
                await self._publish(LiveEvent.ML_UPDATE, model)
        try:
            pairs = await self.collect_pairs()
            accuracy, holdout = holdout_accuracy(
                pairs, self._config.holdout_ratio, self._config.max_holdout
            )
            self._classifier.train(pairs)
            model = await self._save_model(model, accuracy, pairs)
        except Exception as e:
            if model is not None:
                await self._store.update_ml_model(model.id, status=ModelStatus.ERROR.value)
            await self._activity.error("ML model training failed", SOURCE, {"error": str(e)})
            raise

        result = TrainingResult(accuracy=accuracy, samples=len(pairs), holdout=holdout)
        await self._activity.info(
            "ML model training completed",
            SOURCE,
            {"accuracy": accuracy, "samples": len(pairs), "holdout": holdout},
        )
        if self._publish is not None:
            await self._publish(LiveEvent.ML_UPDATE, model)
        return result

    async def train_if_enabled(self) -> Optional[TrainingResult]:
        """Scheduler entry point; honours the bot's auto-training flag."""
        bot_config = await self._store.get_bot_config()
        if bot_config is None or not bot_config.auto_training:
            logger.debug("auto_training_skipped")
            return None
        return await self.train_from_conversations()

    async def _save_model(
        self, model: Optional[MlModel], accuracy: int, pairs: list[dict[str, str]]
    ) -> MlModel:
        changes = {
            "accuracy": accuracy,
            "training_data": pairs,
            "status": ModelStatus.READY.value,
            "last_trained_at": utc_now(),
        }
        if model is not None:
            return await self._store.update_ml_model(model.id, **changes)
        return await self._store.create_ml_model(name="Intent Rules", version="1.0.0", **changes)
