import pytest

from botdesk.config import TrainingConfig
from botdesk.core.activity import ActivityLog
from botdesk.core.types import LiveEvent
from botdesk.nlp.classifier import LEARNED_CONFIDENCE, IntentClassifier
from botdesk.nlp.trainer import ModelTrainer, holdout_accuracy, infer_intent


async def add_turn(store, platform_id, user_id, text, reply):
    conversation = await store.create_conversation(platform_id=platform_id, user_id=user_id)
    await store.create_message(conversation_id=conversation.id, content=text, sender="user")
    await store.create_message(conversation_id=conversation.id, content=reply, sender="bot", confidence=75)


@pytest.fixture
def trainer_factory(seeded_store, publisher):
    def _build(classifier=None, config=None):
        return ModelTrainer(
            seeded_store,
            classifier or IntentClassifier(),
            ActivityLog(seeded_store),
            config or TrainingConfig(holdout_ratio=0.5, max_holdout=50),
            publish=publisher,
        )

    return _build


@pytest.mark.parametrize(
    "reply, intent",
    [
        ("Hello! How can I help you today?", "greeting"),
        ("Thank you for your message. How can I assist you today?", "general_inquiry"),
        ("You're welcome! Is there anything else I can help you with?", "gratitude"),
        ("I can provide delivery information.", "delivery_inquiry"),
        ("Goodbye! Have a great day!", "farewell"),
        ("Sorry, I didn't understand that.", None),
    ],
)
def test_infer_intent_from_reply(reply, intent):
    assert infer_intent(reply) == intent


def test_empty_holdout_scores_zero():
    assert holdout_accuracy([{"text": "a", "intent": "greeting"}], ratio=0.2, max_holdout=50) == (0, 0)


def test_holdout_is_capped():
    pairs = [{"text": f"phrase {i}", "intent": "greeting"} for i in range(20)]
    _, holdout = holdout_accuracy(pairs, ratio=0.5, max_holdout=3)
    assert holdout == 3


async def test_train_from_conversations(seeded_store, trainer_factory, publisher):
    platform = await seeded_store.create_platform(name="whatsapp")
    delivery_reply = "I can provide delivery information. Could you please share your order details?"
    await add_turn(seeded_store, platform.id, "1", "where is my parcel", delivery_reply)
    await add_turn(seeded_store, platform.id, "2", "good morning", "Hello! How can I help you today?")
    await add_turn(seeded_store, platform.id, "3", "where is my parcel", delivery_reply)
    await add_turn(seeded_store, platform.id, "4", "cheers mate", "You're welcome! Anything else?")

    classifier = IntentClassifier()
    result = await trainer_factory(classifier=classifier).train_from_conversations()

    assert (result.samples, result.holdout, result.accuracy) == (4, 2, 50)

    learned = classifier.classify("good morning")
    assert (learned.intent, learned.confidence) == ("greeting", LEARNED_CONFIDENCE)

    model = await seeded_store.get_current_ml_model()
    assert model.accuracy == 50
    assert model.status == "ready"
    assert model.last_trained_at is not None
    assert len(model.training_data) == 4
    updates = publisher.of(LiveEvent.ML_UPDATE)
    assert [m.status for m in updates] == ["training", "ready"]
    assert updates[-1].id == model.id
    assert (await seeded_store.recent_logs())[0].message == "ML model training completed"


async def test_training_without_conversations(seeded_store, trainer_factory):
    result = await trainer_factory().train_from_conversations()
    assert (result.samples, result.accuracy) == (0, 0)


async def test_training_failure_marks_model_error(seeded_store, trainer_factory):
    async def broken(*args, **kwargs):
        raise RuntimeError("disk gone")

    seeded_store.list_conversations = broken

    with pytest.raises(RuntimeError):
        await trainer_factory().train_from_conversations()

    assert (await seeded_store.list_ml_models())[0].status == "error"
    log = (await seeded_store.recent_logs())[0]
    assert log.level == "error"
    assert log.details["error"] == "disk gone"


async def test_auto_training_honours_flag(seeded_store, trainer_factory):
    await seeded_store.update_bot_config(auto_training=False)
    assert await trainer_factory().train_if_enabled() is None

    await seeded_store.update_bot_config(auto_training=True)
    assert await trainer_factory().train_if_enabled() is not None
