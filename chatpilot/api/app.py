"""FastAPI application factory with lifespan for chatpilot."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI
from loguru import logger

from chatpilot import __version__
from chatpilot.agent.knowledge import HttpKnowledgeBase
from chatpilot.agent.loop import AgentLoop
from chatpilot.config import Config, load_config
from chatpilot.errors import PlatformError
from chatpilot.integrations.wassenger import WassengerClient
from chatpilot.providers import LiteLLMProvider, OpenAIVoiceProvider
from chatpilot.settings import ChatpilotSettings, get_settings


def build_engine(
    settings: ChatpilotSettings,
    config: Config | None = None,
    client: WassengerClient | None = None,
) -> AgentLoop:
    """Wire the messaging client, model providers and the agent loop."""
    config = config or load_config(settings.config_path)
    client = client or WassengerClient(settings=settings, cache_ttl=config.team.cache_ttl_seconds)
    provider = LiteLLMProvider(
        api_key=settings.openai_api_key or None,
        api_base=settings.openai_api_base or None,
        default_model=settings.model,
    )
    voice = OpenAIVoiceProvider(
        api_key=settings.openai_api_key or None,
        api_base=settings.openai_api_base or None,
        tts_voice=config.features.voice,
    )
    knowledge = HttpKnowledgeBase(settings.knowledge_url) if settings.knowledge_url else None
    return AgentLoop(
        config,
        client,
        provider,
        model=settings.model,
        voice=voice,
        knowledge=knowledge,
        temp_dir=settings.temp_dir,
        public_url=settings.webhook_url,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: build the engine and load the device. Shutdown: drain tasks, close clients."""
    settings: ChatpilotSettings = app.state.settings
    owned = app.state.engine is None
    if owned:
        app.state.engine = build_engine(settings)
    if app.state.device is None:
        try:
            app.state.device = await app.state.engine.client.load_device(settings.device)
        except (PlatformError, httpx.HTTPError) as e:
            logger.error(f"Failed to load device: {e}")
    app.state.tasks = set()
    yield
    tasks: set[asyncio.Task] = app.state.tasks
    if tasks:
        logger.info(f"Waiting for {len(tasks)} in-flight messages")
        await asyncio.gather(*tasks, return_exceptions=True)
    if owned:
        await app.state.engine.client.aclose()


def create_app(
    engine: AgentLoop | None = None,
    *,
    settings: ChatpilotSettings | None = None,
    device: dict[str, Any] | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.device = device

    # ── mount routers ──
    from chatpilot.api.routes import files, messages, webhook

    app.include_router(messages.router)
    app.include_router(webhook.router, tags=["webhook"])
    app.include_router(files.router, tags=["files"])

    return app
