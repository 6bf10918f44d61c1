import pytest

from botdesk.core.types import Sentiment
from botdesk.nlp.classifier import (
    DEFAULT_INTENT,
    LEARNED_CONFIDENCE,
    RULE_CONFIDENCE,
    IntentClassifier,
    extract_entities,
    extract_keywords,
    match_intent,
)


@pytest.mark.parametrize(
    "text, intent",
    [
        ("Hello there", "greeting"),
        ("I need help with my account", "help_request"),
        ("thanks a lot", "gratitude"),
        ("ok bye", "farewell"),
        ("What is the price", "pricing_inquiry"),
        ("delivery status please", "delivery_inquiry"),
        ("xyzzy plugh", DEFAULT_INTENT),
    ],
)
def test_rule_table(text, intent):
    result = IntentClassifier().classify(text)
    assert result.intent == intent
    assert result.confidence == RULE_CONFIDENCE


def test_first_matching_rule_wins():
    # greeting precedes help_request in the table
    assert match_intent("hey, can you help me") == "greeting"


def test_classification_is_case_and_padding_insensitive():
    classifier = IntentClassifier()
    assert classifier.classify("  HELLO  ").intent == "greeting"


def test_classify_is_deterministic():
    classifier = IntentClassifier()
    first = classifier.classify("My order #A123 never arrived, terrible")
    second = classifier.classify("My order #A123 never arrived, terrible")
    assert first == second


@pytest.mark.parametrize(
    "text, sentiment",
    [
        ("this is great and amazing", Sentiment.POSITIVE),
        ("terrible awful service", Sentiment.NEGATIVE),
        ("good but bad", Sentiment.NEUTRAL),
        ("nothing to see", Sentiment.NEUTRAL),
    ],
)
def test_sentiment(text, sentiment):
    assert IntentClassifier().classify(text).sentiment == sentiment


def test_keywords_skip_stop_words_and_short_tokens():
    tokens = "the quick brown fox jumps over lazy dogs today".split()
    assert extract_keywords(tokens) == ["quick", "brown", "fox", "jumps", "over"]


def test_entities_first_match_each():
    entities = extract_entities("My name is Sam and my order #A123 ships to sam@example.com")
    assert entities["name"] == "Sam"
    assert entities["orderNumber"] == "A123"
    assert entities["email"] == "sam@example.com"
    assert "phone" not in entities


def test_entities_order_keyword_form():
    assert extract_entities("where is order number 98765")["orderNumber"] == "98765"


def test_learned_phrase_takes_precedence():
    classifier = IntentClassifier()
    classifier.train([{"text": "Where is my parcel", "intent": "delivery_inquiry"}])

    result = classifier.classify("where is  my PARCEL")
    assert result.intent == "delivery_inquiry"
    assert result.confidence == LEARNED_CONFIDENCE
    # unrelated text still goes through the rules
    assert classifier.classify("xyzzy").intent == DEFAULT_INTENT


def test_training_twice_is_idempotent():
    examples = [
        {"text": "where is my parcel", "intent": "delivery_inquiry"},
        {"text": "good morning", "intent": "greeting"},
        {"text": "", "intent": "greeting"},
    ]
    classifier = IntentClassifier()
    assert classifier.train(examples) == 2
    before = [classifier.classify(e["text"]) for e in examples]

    assert classifier.train(examples) == 2
    after = [classifier.classify(e["text"]) for e in examples]
    assert before == after
