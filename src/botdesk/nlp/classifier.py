"""Rule-based intent classifier with keyword sentiment and entity extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from botdesk.core.types import Sentiment
from botdesk.log import get_logger

logger = get_logger(__name__)

RULE_CONFIDENCE = 75
LEARNED_CONFIDENCE = 90
DEFAULT_INTENT = "general_inquiry"
MAX_KEYWORDS = 5

# Evaluated in order; the first rule with a fully matching trigger set wins.
INTENT_RULES: tuple[tuple[str, tuple[tuple[str, ...], ...]], ...] = (
    ("greeting", (("hello",), ("hi",), ("hey",))),
    ("help_request", (("help",), ("support",))),
    ("gratitude", (("thank",), ("thanks",))),
    ("farewell", (("bye",), ("goodbye",))),
    ("pricing_inquiry", (("price",), ("cost",), ("payment",))),
    ("delivery_inquiry", (("delivery",), ("shipping",))),
)

POSITIVE_WORDS = frozenset({
    "good", "great", "excellent", "amazing", "wonderful", "love", "like", "happy", "pleased",
})
NEGATIVE_WORDS = frozenset({
    "bad", "terrible", "awful", "hate", "dislike", "angry", "frustrated", "disappointed",
})
STOP_WORDS = frozenset({
    "the", "is", "at", "which", "on", "a", "an", "and", "or", "but", "in", "with", "to", "for",
    "of", "as", "by", "that", "this", "it", "from", "they", "we", "say", "her", "she", "he",
    "will", "my", "one", "all", "would", "there", "their",
})

_ENTITY_PATTERNS: dict[str, re.Pattern[str]] = {
    "email": re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
    "phone": re.compile(r"\+?\d[\d\s\-()]{8,}\d"),
    "orderNumber": re.compile(r"(?:#|\border\s+(?:number\s+|no\.?\s*)?#?)([A-Za-z0-9]*\d[A-Za-z0-9]*)", re.IGNORECASE),
    "name": re.compile(r"\b(?i:my name is|i am|i'm)\s+([A-Z][a-zA-Z'-]+)"),
}


@dataclass(frozen=True)
class Classification:
    intent: str
    confidence: int  # 0-100
    sentiment: Sentiment
    keywords: list[str] = field(default_factory=list)
    entities: dict[str, str] = field(default_factory=dict)


def normalize(text: str) -> str:
    return text.lower().strip()


def _tokens(text: str) -> list[str]:
    return [token for token in text.split() if token]


def match_intent(text: str) -> str:
    """Apply the ordered rule table to already-normalized text."""
    for intent, trigger_sets in INTENT_RULES:
        if any(all(trigger in text for trigger in triggers) for triggers in trigger_sets):
            return intent
    return DEFAULT_INTENT


def analyze_sentiment(tokens: list[str]) -> Sentiment:
    positive = sum(1 for token in tokens if token in POSITIVE_WORDS)
    negative = sum(1 for token in tokens if token in NEGATIVE_WORDS)
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def extract_keywords(tokens: list[str]) -> list[str]:
    keywords = [token for token in tokens if token not in STOP_WORDS and len(token) > 2]
    return keywords[:MAX_KEYWORDS]


def extract_entities(text: str) -> dict[str, str]:
    """First match of each known entity kind, taken from the original-case text."""
    entities: dict[str, str] = {}
    for name, pattern in _ENTITY_PATTERNS.items():
        found = pattern.search(text)
        if found:
            value = found.group(1) if pattern.groups else found.group(0)
            entities[name] = value.strip()
    return entities


class IntentClassifier:
    """Deterministic classifier over a fixed rule table and a learned-phrase table.

    ``train`` only records exact phrases; repeating it with the same examples
    leaves classification unchanged.
    """

    def __init__(self) -> None:
        self._learned: dict[str, str] = {}

    @property
    def learned_phrases(self) -> int:
        return len(self._learned)

    def classify(self, text: str) -> Classification:
        clean = normalize(text)
        tokens = _tokens(clean)

        learned = self._learned.get(" ".join(tokens))
        if learned is not None:
            intent, confidence = learned, LEARNED_CONFIDENCE
        else:
            intent, confidence = match_intent(clean), RULE_CONFIDENCE

        return Classification(
            intent=intent,
            confidence=confidence,
            sentiment=analyze_sentiment(tokens),
            keywords=extract_keywords(tokens),
            entities=extract_entities(text.strip()),
        )

    def train(self, examples: list[dict[str, str]]) -> int:
        """Record ``{text, intent}`` examples; returns the learned-phrase count."""
        for example in examples:
            text = " ".join(_tokens(normalize(example.get("text", ""))))
            intent = example.get("intent", "").strip()
            if text and intent:
                self._learned[text] = intent
        logger.info("classifier_trained", examples=len(examples), learned=len(self._learned))
        return len(self._learned)
