"""Graph API transport shared by the Meta channels (WhatsApp and Messenger)."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from botdesk.core.errors import DeliveryError
from botdesk.core.types import ChannelKind
from botdesk.messenger.models import DeliveryResult
from botdesk.log import get_logger

logger = get_logger(__name__)

_ERROR_BODY_LIMIT = 500


async def post_graph(
    client: httpx.AsyncClient,
    channel: ChannelKind,
    url: str,
    payload: dict[str, Any],
    headers: Optional[dict[str, str]] = None,
    params: Optional[dict[str, str]] = None,
) -> int:
    """POST to the Graph API; raises DeliveryError on transport failure or non-2xx."""
    try:
        response = await client.post(url, json=payload, headers=headers, params=params)
    except httpx.HTTPError as e:
        raise DeliveryError(channel.value, None, str(e) or type(e).__name__) from e

    if not 200 <= response.status_code < 300:
        raise DeliveryError(channel.value, response.status_code, response.text[:_ERROR_BODY_LIMIT])
    return response.status_code


async def deliver(
    client: httpx.AsyncClient,
    channel: ChannelKind,
    url: str,
    payload: dict[str, Any],
    headers: Optional[dict[str, str]] = None,
    params: Optional[dict[str, str]] = None,
) -> DeliveryResult:
    try:
        status = await post_graph(client, channel, url, payload, headers=headers, params=params)
    except DeliveryError as e:
        logger.warning(
            "delivery_failed", channel=channel.value, status_code=e.status_code, error=e.body_text
        )
        return DeliveryResult.failed(str(e), status_code=e.status_code)
    logger.debug("delivery_ok", channel=channel.value, status_code=status)
    return DeliveryResult.ok(status)
