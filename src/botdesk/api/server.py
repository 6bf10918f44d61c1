"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from botdesk.api import dashboard, live, webhooks
from botdesk.app import BotDeskApp
from botdesk.core.errors import (
    ConfigurationMissingError,
    NotFoundError,
    PayloadDecodeError,
    ValidationError,
)
from botdesk.log import get_logger

logger = get_logger(__name__)


def _register_error_handlers(api: FastAPI) -> None:
    @api.exception_handler(PayloadDecodeError)
    async def payload_decode_error(_: Request, exc: PayloadDecodeError):
        logger.warning("webhook_payload_rejected", channel=exc.channel, error=str(exc))
        return JSONResponse(status_code=400, content={"message": str(exc), "channel": exc.channel})

    @api.exception_handler(ValidationError)
    async def validation_error(_: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"message": str(exc)})

    @api.exception_handler(RequestValidationError)
    async def request_validation_error(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    @api.exception_handler(NotFoundError)
    async def not_found_error(_: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"message": str(exc)})

    @api.exception_handler(ConfigurationMissingError)
    async def configuration_missing_error(_: Request, exc: ConfigurationMissingError):
        return JSONResponse(status_code=503, content={"message": str(exc)})


def create_app(botdesk: BotDeskApp) -> FastAPI:
    """Build the HTTP surface around an application instance; its lifecycle follows the server's."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await botdesk.start()
        try:
            yield
        finally:
            await botdesk.stop()

    api = FastAPI(title="BotDesk", lifespan=lifespan)
    api.state.botdesk = botdesk

    api.add_middleware(
        CORSMiddleware,
        allow_origins=botdesk.config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(api)

    api.include_router(webhooks.router)
    api.include_router(dashboard.router)
    api.include_router(live.router)

    @api.get("/health")
    async def health():
        services = await botdesk.health()
        return {"status": "ok" if all(services.values()) else "degraded", "services": services}

    return api
