"""Response selection: threshold fallback, template matching, canned replies."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional

from botdesk.core.errors import ConfigurationMissingError
from botdesk.log import get_logger
from botdesk.nlp.classifier import Classification, IntentClassifier
from botdesk.storage.base import RecordStore
from botdesk.storage.models import BotConfig, Template

logger = get_logger(__name__)

CANNED_RESPONSES: dict[str, str] = {
    "greeting": "Hello! How can I help you today?",
    "help_request": "I'm here to help! What do you need assistance with?",
    "gratitude": "You're welcome! Is there anything else I can help you with?",
    "farewell": "Goodbye! Have a great day!",
    "pricing_inquiry": (
        "I can help you with pricing information. "
        "What specific product or service are you interested in?"
    ),
    "delivery_inquiry": "I can provide delivery information. Could you please share your order details?",
    "general_inquiry": "Thank you for your message. How can I assist you today?",
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class SelectedResponse:
    response: str
    confidence: int
    intent: str
    template_id: Optional[int] = None
    fallback: bool = False


def render_template(content: str, entities: Mapping[str, str]) -> str:
    """Fill ``{name}`` placeholders that have a value; leave the rest verbatim."""

    def _replace(match: re.Match) -> str:
        value = entities.get(match.group(1))
        return str(value) if value else match.group(0)

    return _PLACEHOLDER.sub(_replace, content)


def find_template(intent: str, templates: list[Template]) -> Optional[Template]:
    """First active template whose category or name contains the intent label."""
    label = intent.lower()
    for template in templates:
        if not template.is_active:
            continue
        if label in template.category.lower() or label in template.name.lower():
            return template
    return None


class ResponseSelector:
    """Decides the reply for a piece of inbound text."""

    def __init__(self, classifier: IntentClassifier, store: RecordStore):
        self._classifier = classifier
        self._store = store

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    async def select(
        self,
        text: str,
        platform_id: int | None = None,
        bot_config: BotConfig | None = None,
        templates: list[Template] | None = None,
    ) -> SelectedResponse:
        if bot_config is None:
            bot_config = await self._store.get_bot_config()
        if bot_config is None:
            raise ConfigurationMissingError("Bot configuration not found")

        result = self._classifier.classify(text)

        if result.confidence < bot_config.confidence_threshold:
            logger.info(
                "response_fallback",
                intent=result.intent,
                confidence=result.confidence,
                threshold=bot_config.confidence_threshold,
                platform_id=platform_id,
            )
            return SelectedResponse(
                response=bot_config.fallback_message,
                confidence=result.confidence,
                intent=result.intent,
                fallback=True,
            )

        if templates is None:
            templates = await self._store.list_templates()
        template = find_template(result.intent, templates)
        if template is not None:
            return await self._from_template(template, result)

        canned = CANNED_RESPONSES.get(result.intent)
        return SelectedResponse(
            response=canned if canned is not None else bot_config.fallback_message,
            confidence=result.confidence,
            intent=result.intent,
            fallback=canned is None,
        )

    async def _from_template(self, template: Template, result: Classification) -> SelectedResponse:
        response = render_template(template.content, result.entities)
        current = await self._store.get_template_or_raise(template.id)
        await self._store.update_template(template.id, usage_count=current.usage_count + 1)
        logger.debug("template_selected", template_id=template.id, intent=result.intent)
        return SelectedResponse(
            response=response,
            confidence=result.confidence,
            intent=result.intent,
            template_id=template.id,
        )


def template_variables(content: str) -> list[str]:
    """Placeholder names in order of first appearance."""
    return list(dict.fromkeys(_PLACEHOLDER.findall(content)))
