"""Data models for quote data."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


def now_ms() -> int:
    """Current wall-clock time as Unix milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class NormalizedQuote:
    """Provider-independent snapshot of a symbol's latest price.

    `price` is never NaN: adapters report 0.0 when upstream data is unusable.
    `change` and `change_percent` are None when the provider can't supply them.
    """

    symbol: str
    price: float
    change: float | None = None
    change_percent: float | None = None
    timestamp: int = field(default_factory=now_ms)  # Unix milliseconds
    open: float | None = None
    high: float | None = None
    low: float | None = None
    previous_close: float | None = None

    def to_dict(self) -> dict:
        """Serialize for JSON transmission."""
        data = {
            "symbol": self.symbol,
            "price": self.price,
            "change": self.change,
            "changePercent": self.change_percent,
            "timestamp": self.timestamp,
        }
        # Provider extras only appear when the provider supplied them
        for key, value in (
            ("open", self.open),
            ("high", self.high),
            ("low", self.low),
            ("previousClose", self.previous_close),
        ):
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True, slots=True)
class PricePoint:
    """A single point of a price history series."""

    timestamp: int  # Unix milliseconds
    price: float

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "price": self.price}


@dataclass(frozen=True, slots=True)
class ResultMeta:
    """Where a resolved value came from."""

    provider: str
    cached: bool
    fallback: bool = False

    def to_dict(self) -> dict:
        data = {"provider": self.provider, "cached": self.cached}
        if self.fallback:
            data["fallback"] = True
        return data


@dataclass(frozen=True, slots=True)
class QuoteResult:
    """A resolved quote or history series plus its provenance."""

    data: NormalizedQuote | list[PricePoint]
    meta: ResultMeta

    def to_dict(self) -> dict:
        """Serialize as the success envelope returned by the proxy API."""
        if isinstance(self.data, list):
            payload: dict | list = [point.to_dict() for point in self.data]
        else:
            payload = self.data.to_dict()
        return {"success": True, "data": payload, "meta": self.meta.to_dict()}
