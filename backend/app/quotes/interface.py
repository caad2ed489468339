"""Abstract interface for quote providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import NormalizedQuote, PricePoint


class QuoteProvider(ABC):
    """Contract for upstream quote providers.

    Implementations make one outbound call per request and normalize the
    upstream payload. They never cache; the QuoteService does that.

    Failures are raised as ProviderError with one of the ErrorKind
    classifications:
        MISCONFIGURED - no API key configured
        RATE_LIMITED  - upstream signalled throttling
        UPSTREAM      - any other error payload or non-2xx response
        NETWORK       - transport failure
    """

    #: Short provider name used in cache keys and response metadata.
    name: str

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        """Fetch the latest quote for an uppercase, non-empty symbol."""

    @abstractmethod
    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        """Fetch prices within the trailing `days` * 24h window, oldest first."""
