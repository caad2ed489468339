"""FastAPI application wiring for the quote proxy."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .quotes.api import create_proxy_router, register_error_handlers
from .quotes.cache import TTLCache
from .quotes.factory import Settings, create_providers, load_settings
from .quotes.service import QuoteService
from .quotes.stream import create_stream_router
from .quotes.subscriptions import SubscriptionManager
from .quotes.transport import HttpTransport

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, transport: HttpTransport | None = None) -> FastAPI:
    """Build the app. Components are created here and torn down by the lifespan."""
    settings = settings or load_settings()
    transport = transport or HttpTransport.create(timeout=settings.http_timeout_seconds)

    cache = TTLCache(sweep_interval=settings.cache_sweep_seconds)
    primary, secondary = create_providers(settings, transport)
    service = QuoteService(cache, primary, secondary, ttl_seconds=settings.cache_ttl_seconds)
    manager = SubscriptionManager(primary, secondary)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await cache.start()
        logger.info("Quote proxy started (cache TTL %.0fs)", settings.cache_ttl_seconds)
        try:
            yield
        finally:
            await manager.shutdown()
            await cache.stop()
            cache.clear()
            await transport.aclose()
            logger.info("Quote proxy stopped")

    app = FastAPI(title="Quote Proxy", lifespan=lifespan)
    app.state.cache = cache
    app.state.quote_service = service
    app.state.subscriptions = manager

    register_error_handlers(app)
    app.include_router(create_proxy_router(service))
    app.include_router(create_stream_router(manager))
    return app


app = create_app()
