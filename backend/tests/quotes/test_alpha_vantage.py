"""Tests for AlphaVantageProvider (mocked HTTP)."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.quotes.alpha_vantage import (
    AlphaVantageProvider,
    ErrorPayload,
    GlobalQuotePayload,
    RateLimitNotice,
    parse_payload,
)
from app.quotes.errors import ErrorKind, ProviderError

GLOBAL_QUOTE = {
    "Global Quote": {
        "01. symbol": "AAPL",
        "02. open": "149.00",
        "03. high": "151.00",
        "04. low": "148.50",
        "05. price": "150.2500",
        "08. previous close": "149.0500",
        "09. change": "1.2000",
        "10. change percent": "0.8051%",
    }
}


def _bar_time(days_ago: float) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).strftime("%Y-%m-%d %H:%M:%S")


def _provider(mock_transport, body, status=200, api_key="test-key", seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(dict(request.url.params))
        return httpx.Response(status, json=body)

    return AlphaVantageProvider(api_key=api_key, transport=mock_transport(handler))


class TestParsePayload:
    def test_note_is_rate_limit(self):
        assert isinstance(parse_payload({"Note": "Thank you for using Alpha Vantage!"}), RateLimitNotice)

    def test_information_is_rate_limit(self):
        assert isinstance(parse_payload({"Information": "rate limit is 25 requests per day"}), RateLimitNotice)

    def test_error_message(self):
        assert isinstance(parse_payload({"Error Message": "Invalid API call"}), ErrorPayload)

    def test_global_quote(self):
        assert isinstance(parse_payload(GLOBAL_QUOTE), GlobalQuotePayload)

    def test_non_dict_is_error(self):
        assert isinstance(parse_payload(["nope"]), ErrorPayload)


@pytest.mark.asyncio
class TestAlphaVantageQuote:
    async def test_quote_normalized(self, mock_transport):
        provider = _provider(mock_transport, GLOBAL_QUOTE)
        quote = await provider.fetch_quote("AAPL")

        assert quote.symbol == "AAPL"
        assert quote.price == 150.25
        assert quote.change == 1.2
        assert quote.change_percent == 0.8051
        assert quote.previous_close == 149.05
        assert quote.timestamp > 10**12

    async def test_request_params(self, mock_transport):
        seen = []
        provider = _provider(mock_transport, GLOBAL_QUOTE, seen=seen)
        await provider.fetch_quote("AAPL")
        assert seen == [{"function": "GLOBAL_QUOTE", "symbol": "AAPL", "apikey": "test-key"}]

    async def test_empty_quote_reports_zero_price(self, mock_transport):
        """Unknown symbols return an empty Global Quote; price must be 0, never NaN."""
        provider = _provider(mock_transport, {"Global Quote": {}})
        quote = await provider.fetch_quote("ZZZZ")
        assert quote.symbol == "ZZZZ"
        assert quote.price == 0.0
        assert quote.change is None

    async def test_nan_price_reports_zero(self, mock_transport):
        provider = _provider(mock_transport, {"Global Quote": {"05. price": "NaN", "09. change": "abc"}})
        quote = await provider.fetch_quote("AAPL")
        assert quote.price == 0.0
        assert quote.change is None

    async def test_note_raises_rate_limited(self, mock_transport):
        provider = _provider(mock_transport, {"Note": "API call frequency is 5 calls per minute"})
        with pytest.raises(ProviderError) as exc:
            await provider.fetch_quote("AAPL")
        assert exc.value.kind is ErrorKind.RATE_LIMITED
        assert exc.value.status == 429
        assert exc.value.provider == "alpha"

    async def test_error_message_raises_upstream(self, mock_transport):
        provider = _provider(mock_transport, {"Error Message": "Invalid API call"})
        with pytest.raises(ProviderError) as exc:
            await provider.fetch_quote("AAPL")
        assert exc.value.kind is ErrorKind.UPSTREAM
        assert exc.value.status == 502

    async def test_missing_key_is_misconfigured(self, mock_transport):
        calls = []
        provider = _provider(mock_transport, GLOBAL_QUOTE, api_key="", seen=calls)
        with pytest.raises(ProviderError) as exc:
            await provider.fetch_quote("AAPL")
        assert exc.value.kind is ErrorKind.MISCONFIGURED
        assert exc.value.status == 500
        assert calls == []  # No upstream call made

    async def test_http_429_is_rate_limited(self, mock_transport):
        provider = _provider(mock_transport, {}, status=429)
        with pytest.raises(ProviderError) as exc:
            await provider.fetch_quote("AAPL")
        assert exc.value.kind is ErrorKind.RATE_LIMITED


@pytest.mark.asyncio
class TestAlphaVantageHistory:
    async def test_history_filtered_and_sorted(self, mock_transport):
        body = {
            "Meta Data": {"6. Time Zone": "US/Eastern"},
            "Time Series (60min)": {
                _bar_time(1): {"4. close": "151.00"},
                _bar_time(3): {"4. close": "149.00"},
                _bar_time(2): {"4. close": "150.00"},
                _bar_time(40): {"4. close": "120.00"},
            },
        }
        provider = _provider(mock_transport, body)
        history = await provider.fetch_history("AAPL", 7)

        assert [p.price for p in history] == [149.00, 150.00, 151.00]
        timestamps = [p.timestamp for p in history]
        assert timestamps == sorted(timestamps)

    async def test_history_request_params(self, mock_transport):
        seen = []
        provider = _provider(mock_transport, {"Time Series (60min)": {}}, seen=seen)
        assert await provider.fetch_history("AAPL", 5) == []
        assert seen[0]["function"] == "TIME_SERIES_INTRADAY"
        assert seen[0]["interval"] == "60min"

    async def test_history_rate_limited(self, mock_transport):
        provider = _provider(mock_transport, {"Note": "Thank you for using Alpha Vantage!"})
        with pytest.raises(ProviderError) as exc:
            await provider.fetch_history("AAPL", 7)
        assert exc.value.kind is ErrorKind.RATE_LIMITED

    async def test_unparseable_bar_times_skipped(self, mock_transport):
        body = {"Time Series (60min)": {"yesterday": {"4. close": "1.0"}, _bar_time(1): {"4. close": "2.0"}}}
        provider = _provider(mock_transport, body)
        history = await provider.fetch_history("AAPL", 7)
        assert [p.price for p in history] == [2.0]
