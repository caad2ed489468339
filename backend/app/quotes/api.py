"""REST endpoints for proxied quotes and history."""

from __future__ import annotations

import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import QuoteError
from .service import DEFAULT_HISTORY_DAYS, QuoteService

logger = logging.getLogger(__name__)


def create_proxy_router(service: QuoteService) -> APIRouter:
    """Create the proxy router bound to a QuoteService instance."""
    router = APIRouter(prefix="/api", tags=["proxy"])

    @router.get("/health")
    async def health() -> dict:
        return {"success": True, "data": {"status": "ok"}}

    @router.get("/proxy/{provider}/quote")
    async def quote(provider: str, symbol: str | None = None) -> dict:
        """Latest quote. Alpha Vantage requests fall back to Finnhub when rate limited."""
        result = await service.resolve_quote(symbol, provider)
        return result.to_dict()

    @router.get("/proxy/{provider}/history")
    async def history(provider: str, symbol: str | None = None, days: str | None = None) -> dict:
        """Price history over the trailing `days` (default 30)."""
        result = await service.resolve_history(symbol, provider, _parse_days(days))
        return result.to_dict()

    return router


def _parse_days(value: str | None) -> int:
    """Lenient integer parse: missing, non-numeric or zero -> default."""
    try:
        days = int(value) if value else 0
    except ValueError:
        days = 0
    return days or DEFAULT_HISTORY_DAYS


def register_error_handlers(app: FastAPI) -> None:
    """Render QuoteError subclasses as {"success": false, "error": {...}}."""

    @app.exception_handler(QuoteError)
    async def quote_error_handler(request: Request, exc: QuoteError) -> JSONResponse:
        if exc.status >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status, content=exc.to_dict())
