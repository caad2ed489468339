"""Alpha Vantage adapter (primary provider)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ErrorKind, ProviderError
from .interface import QuoteProvider
from .models import NormalizedQuote, PricePoint, now_ms
from .transport import HttpTransport

logger = logging.getLogger(__name__)

BASE_URL = "https://www.alphavantage.co/query"
INTRADAY_INTERVAL = "60min"
DAY_MS = 24 * 60 * 60 * 1000


# --- Upstream payload variants ---


@dataclass(frozen=True, slots=True)
class RateLimitNotice:
    """'Note' / 'Information' payload: the free tier's throttling message."""

    message: str


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """'Error Message' payload, e.g. an unknown symbol or bad function."""

    message: str


@dataclass(frozen=True, slots=True)
class GlobalQuotePayload:
    fields: dict[str, Any]


@dataclass(frozen=True, slots=True)
class IntradayPayload:
    series: dict[str, dict[str, Any]]
    time_zone: str


def parse_payload(data: Any) -> RateLimitNotice | ErrorPayload | GlobalQuotePayload | IntradayPayload:
    """Classify a raw Alpha Vantage response body."""
    if not isinstance(data, dict):
        return ErrorPayload("Malformed Alpha Vantage response")
    notice = data.get("Note") or data.get("Information")
    if notice:
        return RateLimitNotice(str(notice))
    if data.get("Error Message"):
        return ErrorPayload(str(data["Error Message"]))
    if "Global Quote" in data:
        return GlobalQuotePayload(data.get("Global Quote") or {})
    series_key = f"Time Series ({INTRADAY_INTERVAL})"
    meta = data.get("Meta Data") or {}
    return IntradayPayload(
        series=data.get(series_key) or {},
        time_zone=meta.get("6. Time Zone", "US/Eastern"),
    )


def _to_float(value: Any) -> float | None:
    """Parse an Alpha Vantage numeric string ("1.23", "0.45%"). None if invalid."""
    if value is None:
        return None
    try:
        result = float(str(value).strip().rstrip("%"))
    except ValueError:
        return None
    return None if math.isnan(result) else result


def _parse_timestamp(value: str, tz_name: str) -> int | None:
    try:
        naive = datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown Alpha Vantage time zone %r, assuming UTC", tz_name)
        tz = timezone.utc
    return int(naive.replace(tzinfo=tz).timestamp() * 1000)


class AlphaVantageProvider(QuoteProvider):
    """QuoteProvider backed by the Alpha Vantage query API.

    Quotes come from GLOBAL_QUOTE; history from TIME_SERIES_INTRADAY (60min
    bars, closing price). Throttling is signalled in-band with HTTP 200 and a
    "Note" or "Information" field, which is classified as RATE_LIMITED.
    """

    name = "alpha"

    def __init__(self, api_key: str, transport: HttpTransport, base_url: str = BASE_URL) -> None:
        self._api_key = api_key
        self._transport = transport
        self._base_url = base_url

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        payload = await self._query({"function": "GLOBAL_QUOTE", "symbol": symbol})
        if not isinstance(payload, GlobalQuotePayload):
            raise ProviderError(ErrorKind.UPSTREAM, "Unexpected Alpha Vantage response", provider=self.name)

        quote = payload.fields
        return NormalizedQuote(
            symbol=quote.get("01. symbol") or symbol,
            price=_to_float(quote.get("05. price")) or 0.0,
            change=_to_float(quote.get("09. change")),
            change_percent=_to_float(quote.get("10. change percent")),
            timestamp=now_ms(),
            open=_to_float(quote.get("02. open")),
            high=_to_float(quote.get("03. high")),
            low=_to_float(quote.get("04. low")),
            previous_close=_to_float(quote.get("08. previous close")),
        )

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        payload = await self._query(
            {"function": "TIME_SERIES_INTRADAY", "symbol": symbol, "interval": INTRADAY_INTERVAL}
        )
        if not isinstance(payload, IntradayPayload):
            raise ProviderError(ErrorKind.UPSTREAM, "Unexpected Alpha Vantage response", provider=self.name)

        cutoff = now_ms() - days * DAY_MS
        points = []
        for date_str, bar in payload.series.items():
            timestamp = _parse_timestamp(date_str, payload.time_zone)
            if timestamp is None or timestamp < cutoff:
                continue
            points.append(PricePoint(timestamp=timestamp, price=_to_float(bar.get("4. close")) or 0.0))
        points.sort(key=lambda p: p.timestamp)
        return points

    # --- Internal ---

    async def _query(self, params: dict[str, Any]):
        if not self._api_key:
            raise ProviderError(
                ErrorKind.MISCONFIGURED, "Alpha Vantage API key is not configured", provider=self.name
            )

        resp = await self._transport.get(self._base_url, {**params, "apikey": self._api_key})
        payload = parse_payload(resp.data)

        if isinstance(payload, RateLimitNotice):
            logger.warning("Alpha Vantage rate limited: %s", payload.message)
            raise ProviderError(ErrorKind.RATE_LIMITED, payload.message, provider=self.name)
        if isinstance(payload, ErrorPayload):
            raise ProviderError(ErrorKind.UPSTREAM, payload.message, provider=self.name)
        return payload
