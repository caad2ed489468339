"""Request/response quote resolution with caching and provider fallback."""

from __future__ import annotations

import logging

from .cache import TTLCache
from .errors import InvalidRequestError, ProviderError
from .interface import QuoteProvider
from .models import NormalizedQuote, PricePoint, QuoteResult, ResultMeta

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 30


def normalize_symbol(symbol: str | None) -> str:
    """Strip and uppercase a symbol. Raises InvalidRequestError if empty."""
    symbol = (symbol or "").strip().upper()
    if not symbol:
        raise InvalidRequestError("Missing symbol query parameter")
    return symbol


class QuoteService:
    """Resolves quotes and history through the TTL cache and the providers.

    Quote lookups for the primary provider fall back to the secondary when
    the primary is rate limited. Each provider's results are cached under
    their own keys, so a fallback answer is served from the secondary's key
    on later requests. History has no cross-provider fallback.
    """

    def __init__(
        self,
        cache: TTLCache,
        primary: QuoteProvider,
        secondary: QuoteProvider,
        ttl_seconds: float = 300,
    ) -> None:
        self._cache = cache
        self._primary = primary
        self._secondary = secondary
        self._providers = {primary.name: primary, secondary.name: secondary}
        self._ttl = ttl_seconds

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    def get_provider(self, name: str) -> QuoteProvider:
        provider = self._providers.get((name or "").lower())
        if provider is None:
            raise InvalidRequestError(f"Unknown provider: {name}")
        return provider

    async def resolve_quote(self, symbol: str, provider: str) -> QuoteResult:
        symbol = normalize_symbol(symbol)
        source = self.get_provider(provider)

        cached = self._cache.get(_quote_key(source, symbol))
        if cached is not None:
            logger.debug("Cache hit: %s quote %s", source.name, symbol)
            return QuoteResult(data=cached, meta=ResultMeta(provider=source.name, cached=True))

        try:
            quote = await self._fetch_quote(source, symbol)
        except ProviderError as e:
            if source is not self._primary or not e.is_rate_limited:
                raise
            logger.warning(
                "%s rate limited for %s, falling back to %s", source.name, symbol, self._secondary.name
            )
            return await self._resolve_fallback_quote(symbol)

        return QuoteResult(data=quote, meta=ResultMeta(provider=source.name, cached=False))

    async def resolve_history(
        self, symbol: str, provider: str, days: int = DEFAULT_HISTORY_DAYS
    ) -> QuoteResult:
        symbol = normalize_symbol(symbol)
        source = self.get_provider(provider)
        if days <= 0:
            raise InvalidRequestError("days must be a positive integer")

        key = f"{source.name}:history:{symbol}:{days}"
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Cache hit: %s history %s (%d days)", source.name, symbol, days)
            return QuoteResult(data=cached, meta=ResultMeta(provider=source.name, cached=True))

        history: list[PricePoint] = await source.fetch_history(symbol, days)
        self._cache.set(key, history, self._ttl)
        return QuoteResult(data=history, meta=ResultMeta(provider=source.name, cached=False))

    # --- Internal ---

    async def _resolve_fallback_quote(self, symbol: str) -> QuoteResult:
        secondary = self._secondary
        cached = self._cache.get(_quote_key(secondary, symbol))
        if cached is not None:
            return QuoteResult(
                data=cached, meta=ResultMeta(provider=secondary.name, cached=True, fallback=True)
            )

        quote = await self._fetch_quote(secondary, symbol)
        return QuoteResult(data=quote, meta=ResultMeta(provider=secondary.name, cached=False, fallback=True))

    async def _fetch_quote(self, source: QuoteProvider, symbol: str) -> NormalizedQuote:
        quote = await source.fetch_quote(symbol)
        self._cache.set(_quote_key(source, symbol), quote, self._ttl)
        return quote


def _quote_key(source: QuoteProvider, symbol: str) -> str:
    return f"{source.name}:quote:{symbol}"
