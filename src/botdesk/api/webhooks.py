"""Inbound webhook routes, one pair per channel."""

from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from botdesk.api.deps import get_botdesk
from botdesk.app import BotDeskApp
from botdesk.core.errors import ValidationError
from botdesk.core.types import ChannelKind
from botdesk.log import get_logger

router = APIRouter(prefix="/webhook", tags=["webhooks"])
logger = get_logger(__name__)


def _verify(botdesk: BotDeskApp, kind: ChannelKind, request: Request) -> PlainTextResponse:
    challenge = botdesk.channels.get(kind).verify(request.query_params)
    if challenge is None:
        logger.warning("webhook_verification_failed", channel=kind.value)
        raise HTTPException(status_code=403, detail="Verification failed")
    logger.info("webhook_verified", channel=kind.value)
    return PlainTextResponse(challenge)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise ValidationError("Request body is not valid JSON") from e


async def _receive(botdesk: BotDeskApp, kind: ChannelKind, request: Request) -> PlainTextResponse:
    """Decode in the request, acknowledge, and let the pipeline run after the response."""
    received_at = time.perf_counter()
    payload = await _read_json(request)
    messages = botdesk.channels.get(kind).parse_inbound(payload)
    logger.debug("webhook_received", channel=kind.value, messages=len(messages))
    if messages:
        botdesk.dispatch(kind, messages, received_at)
    return PlainTextResponse("OK")


@router.get("/whatsapp")
async def verify_whatsapp(request: Request, botdesk: BotDeskApp = Depends(get_botdesk)):
    return _verify(botdesk, ChannelKind.WHATSAPP, request)


@router.post("/whatsapp")
async def receive_whatsapp(request: Request, botdesk: BotDeskApp = Depends(get_botdesk)):
    return await _receive(botdesk, ChannelKind.WHATSAPP, request)


@router.post("/telegram")
async def receive_telegram(request: Request, botdesk: BotDeskApp = Depends(get_botdesk)):
    return await _receive(botdesk, ChannelKind.TELEGRAM, request)


@router.get("/messenger")
async def verify_messenger(request: Request, botdesk: BotDeskApp = Depends(get_botdesk)):
    return _verify(botdesk, ChannelKind.MESSENGER, request)


@router.post("/messenger")
async def receive_messenger(request: Request, botdesk: BotDeskApp = Depends(get_botdesk)):
    return await _receive(botdesk, ChannelKind.MESSENGER, request)
