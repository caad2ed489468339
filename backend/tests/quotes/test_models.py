"""Tests for quote data models and errors."""

import pytest

from app.quotes.errors import ErrorKind, InvalidRequestError, ProviderError
from app.quotes.models import NormalizedQuote, PricePoint, QuoteResult, ResultMeta


class TestNormalizedQuote:
    def test_to_dict_uses_camel_case(self):
        quote = NormalizedQuote(symbol="AAPL", price=150.25, change=1.2, change_percent=0.8, timestamp=1)
        assert quote.to_dict() == {
            "symbol": "AAPL",
            "price": 150.25,
            "change": 1.2,
            "changePercent": 0.8,
            "timestamp": 1,
        }

    def test_to_dict_includes_extras_when_present(self):
        quote = NormalizedQuote(symbol="MSFT", price=310.5, timestamp=1, previous_close=305.0, high=312.0)
        data = quote.to_dict()
        assert data["previousClose"] == 305.0
        assert data["high"] == 312.0
        assert "low" not in data

    def test_default_timestamp_is_milliseconds(self):
        quote = NormalizedQuote(symbol="AAPL", price=1.0)
        assert quote.timestamp > 10**12

    def test_immutability(self):
        quote = NormalizedQuote(symbol="AAPL", price=1.0)
        with pytest.raises(AttributeError):
            quote.price = 2.0


class TestQuoteResult:
    def test_quote_envelope(self):
        result = QuoteResult(
            data=NormalizedQuote(symbol="AAPL", price=1.0, timestamp=5),
            meta=ResultMeta(provider="alpha", cached=True),
        )
        body = result.to_dict()
        assert body["success"] is True
        assert body["data"]["price"] == 1.0
        assert body["meta"] == {"provider": "alpha", "cached": True}

    def test_history_envelope_with_fallback_flag(self):
        result = QuoteResult(
            data=[PricePoint(timestamp=1, price=2.0)],
            meta=ResultMeta(provider="finnhub", cached=False, fallback=True),
        )
        body = result.to_dict()
        assert body["data"] == [{"timestamp": 1, "price": 2.0}]
        assert body["meta"] == {"provider": "finnhub", "cached": False, "fallback": True}


class TestErrors:
    @pytest.mark.parametrize(
        "kind, status",
        [
            (ErrorKind.RATE_LIMITED, 429),
            (ErrorKind.UPSTREAM, 502),
            (ErrorKind.NETWORK, 502),
            (ErrorKind.MISCONFIGURED, 500),
        ],
    )
    def test_default_status_per_kind(self, kind, status):
        assert ProviderError(kind, "boom").status == status

    def test_explicit_status_wins(self):
        err = ProviderError(ErrorKind.UPSTREAM, "forbidden", status=403)
        assert err.status == 403
        assert err.code == "upstream"

    def test_error_envelope(self):
        err = ProviderError(ErrorKind.RATE_LIMITED, "slow down", provider="alpha")
        assert err.to_dict() == {
            "success": False,
            "error": {"message": "slow down", "code": "rate_limited", "status": 429},
        }

    def test_invalid_request_is_400(self):
        err = InvalidRequestError("Missing symbol query parameter")
        assert err.status == 400
        assert err.to_dict()["error"]["code"] == "invalid_request"
