"""FastAPI application exposing the EventSub webhook endpoint."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request, Response

from robochick.audit.logger import AuditLogger
from robochick.clients.parameter_store import ParameterStoreClient
from robochick.clients.streamelements import StreamElementsClient
from robochick.config import AppConfig
from robochick.eventsub.dispatcher import EventDispatcher, MessageBankSource
from robochick.eventsub.models import WebhookEnvelope
from robochick.eventsub.replay_protection import ReplayProtection
from robochick.messages.sources import FileMessageBankSource

EVENTSUB_PATH = "/webhook/eventsub"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = AppConfig.from_env()
    return create_app(build_dispatcher(config))


def build_dispatcher(config: AppConfig) -> EventDispatcher:
    """Wire the production collaborators for ``config``."""
    audit_logger = AuditLogger.from_env(config.audit_log_path) if config.audit_log_path else None
    replay = (
        ReplayProtection(config.replay_db_path, window_seconds=config.max_message_age_seconds)
        if config.replay_db_path
        else None
    )
    bank_source: MessageBankSource
    if config.message_bank_dir:
        bank_source = FileMessageBankSource(config.message_bank_dir)
    else:
        bank_source = ParameterStoreClient(config.parameter_store_host, config.aws_session_token)
    return EventDispatcher(
        config=config,
        bank_source=bank_source,
        chat_poster=StreamElementsClient(
            config.se_api_host, config.se_jwt, config.se_channel_id,
        ),
        replay_protection=replay,
        audit_logger=audit_logger,
    )


def create_app(dispatcher: EventDispatcher) -> FastAPI:
    """Create the webhook app around an already wired dispatcher."""
    app = FastAPI(docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(EVENTSUB_PATH)
    async def eventsub_webhook(request: Request) -> Response:
        body = await request.body()
        envelope = WebhookEnvelope.from_request(request.headers, body)
        result = await dispatcher.handle(envelope)
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.media_type,
        )

    return app
