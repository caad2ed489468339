"""Fixtures for quote subsystem tests.

Providers are faked at the QuoteProvider boundary for service and
subscription tests; adapter tests fake HTTP with httpx.MockTransport.
"""

import asyncio
from collections.abc import Callable

import httpx
import pytest

from app.quotes.interface import QuoteProvider
from app.quotes.models import NormalizedQuote, PricePoint
from app.quotes.transport import HttpTransport


class FakeProvider(QuoteProvider):
    """Scripted provider. Each call consumes the next scripted result;
    the last one repeats. Exceptions in the script are raised."""

    def __init__(self, name: str, quotes=None, history=None, delay: float = 0.0) -> None:
        self.name = name
        self.quotes = list(quotes or [])
        self.history = list(history or [])
        self.delay = delay
        self.quote_calls: list[str] = []
        self.history_calls: list[tuple[str, int]] = []

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        self.quote_calls.append(symbol)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self._next(self.quotes)

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        self.history_calls.append((symbol, days))
        return self._next(self.history)

    @staticmethod
    def _next(script):
        result = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def make_provider() -> Callable[..., FakeProvider]:
    return FakeProvider


@pytest.fixture
def quote_factory() -> Callable[..., NormalizedQuote]:
    def _make(symbol: str = "AAPL", price: float = 150.25, change: float | None = 1.2, **kwargs) -> NormalizedQuote:
        kwargs.setdefault("change_percent", 0.8)
        kwargs.setdefault("timestamp", 1707580800000)
        return NormalizedQuote(symbol=symbol, price=price, change=change, **kwargs)

    return _make


@pytest.fixture
def mock_transport():
    """Build an HttpTransport whose requests are answered by `handler`.

    Usage: transport = mock_transport(lambda request: httpx.Response(200, json={...}))
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> HttpTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpTransport(client)

    return _make
