from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from arthive_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from arthive_chat.api.v1.routers import directory, health, messages, ws
from arthive_chat.application.exceptions import (
    BackendUnavailableError,
    ConversationStartError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from arthive_chat.config import settings
from arthive_chat.infrastructure.bus.redis_feed import RedisInsertPublisher, RedisNotificationFeed
from arthive_chat.infrastructure.db.repositories.directory import SqlAlchemyDirectory
from arthive_chat.infrastructure.db.session import AsyncSessionLocal
from arthive_chat.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    publisher = RedisInsertPublisher(app.state.redis, settings.FEED_CHANNEL_PREFIX)
    app.state.feed = RedisNotificationFeed(app.state.redis, settings.FEED_CHANNEL_PREFIX)
    app.state.directory = SqlAlchemyDirectory(
        AsyncSessionLocal,
        publisher,
        messages_table=settings.MESSAGES_TABLE,
        room_table=settings.ROOM_MESSAGES_TABLE,
    )

    yield

    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    configure_logging(debug=settings.DEBUG)

    app = FastAPI(
        title="ArtHive Messaging",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(directory.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(ConversationStartError)
    async def _start_failed(_req: Request, exc: ConversationStartError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(BackendUnavailableError)
    async def _unavailable(_req: Request, exc: BackendUnavailableError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.detail})
