"""Live quote subscriptions: one recurring poll per (connection, provider, symbol)."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .errors import ProviderError
from .interface import QuoteProvider
from .models import NormalizedQuote

logger = logging.getLogger(__name__)

Emit = Callable[[dict], Awaitable[None]]
SubscriptionKey = tuple[str, str, str]  # (connection_id, provider, symbol)

MIN_INTERVAL_MS = 3000
DEFAULT_INTERVAL_MS = 10000


@dataclass(slots=True)
class Subscription:
    connection_id: str
    symbol: str
    provider: str
    interval_ms: int
    task: asyncio.Task | None = None

    @property
    def key(self) -> SubscriptionKey:
        return (self.connection_id, self.provider, self.symbol)


class SubscriptionManager:
    """Runs a polling task per subscription key and emits events to its connection.

    Ticks call the providers directly, bypassing the request cache, so live
    values stay fresh. Within a tick, a failure from the requested provider
    is retried once on the other provider; the next tick starts from the
    requested provider again. A tick never raises: failures become `error`
    events and the subscription keeps running until unsubscribe or teardown.

    Each task sleeps after a tick completes, so ticks for one key never
    overlap. A slow fetch delays the next tick rather than stacking up.

    Lifecycle:
        manager.connect("c1", websocket.send_json)
        await manager.subscribe("c1", "AAPL", "alpha", 5000)
        await manager.unsubscribe("c1", "AAPL", "alpha")
        await manager.teardown("c1")      # on disconnect
        await manager.shutdown()          # on service stop
    """

    def __init__(
        self,
        primary: QuoteProvider,
        secondary: QuoteProvider,
        min_interval_ms: int = MIN_INTERVAL_MS,
        default_interval_ms: int = DEFAULT_INTERVAL_MS,
    ) -> None:
        self._providers = {primary.name: primary, secondary.name: secondary}
        self._alternate = {primary.name: secondary, secondary.name: primary}
        self._min_interval_ms = min_interval_ms
        self._default_interval_ms = default_interval_ms
        self._sinks: dict[str, Emit] = {}
        self._subscriptions: dict[SubscriptionKey, Subscription] = {}

    def connect(self, connection_id: str, emit: Emit) -> None:
        """Register the event sink for a connection."""
        self._sinks[connection_id] = emit
        logger.info("Stream connection opened: %s", connection_id)

    def effective_interval_ms(self, interval_ms: int | float | str | None) -> int:
        """Clamp a requested interval to the minimum; falsy or invalid -> default."""
        try:
            requested = int(float(interval_ms)) if interval_ms else 0
        except (TypeError, ValueError, OverflowError):
            requested = 0
        return max(self._min_interval_ms, requested or self._default_interval_ms)

    async def subscribe(
        self,
        connection_id: str,
        symbol: str | None,
        provider: str = "alpha",
        interval_ms: int | float | str | None = None,
    ) -> None:
        """Start (or restart) polling a symbol for a connection.

        Returns after the first tick has been emitted. Empty symbols are ignored.
        """
        symbol = (symbol or "").strip().upper()
        if not symbol:
            return
        emit = self._sinks.get(connection_id)
        if emit is None:
            logger.warning("Subscribe from unknown connection %s ignored", connection_id)
            return

        provider = (provider or "alpha").lower()
        if provider not in self._providers:
            await emit(
                {"type": "error", "message": f"Unknown provider: {provider}", "provider": provider, "symbol": symbol}
            )
            return

        sub = Subscription(
            connection_id=connection_id,
            symbol=symbol,
            provider=provider,
            interval_ms=self.effective_interval_ms(interval_ms),
        )
        # At most one active task per key
        await self._cancel(sub.key)

        first_tick = asyncio.Event()
        sub.task = asyncio.create_task(
            self._run(sub, emit, first_tick), name=f"quote-sub:{connection_id}:{provider}:{symbol}"
        )
        # Also release the waiter if the task is cancelled before its first tick
        sub.task.add_done_callback(lambda _: first_tick.set())
        self._subscriptions[sub.key] = sub
        logger.info(
            "Subscribed %s to %s via %s every %dms", connection_id, symbol, provider, sub.interval_ms
        )
        await first_tick.wait()

    async def unsubscribe(self, connection_id: str, symbol: str | None, provider: str = "alpha") -> None:
        """Stop polling for that exact key. No-op if not subscribed."""
        key = (connection_id, (provider or "alpha").lower(), (symbol or "").strip().upper())
        if await self._cancel(key):
            logger.info("Unsubscribed %s from %s via %s", connection_id, key[2], key[1])

    async def teardown(self, connection_id: str) -> None:
        """Cancel every subscription owned by a connection and forget its sink."""
        self._sinks.pop(connection_id, None)
        keys = [key for key in self._subscriptions if key[0] == connection_id]
        for key in keys:
            await self._cancel(key)
        logger.info("Stream connection closed: %s (%d subscriptions cancelled)", connection_id, len(keys))

    async def shutdown(self) -> None:
        """Tear down every connection. Safe to call multiple times."""
        connection_ids = set(self._sinks) | {key[0] for key in self._subscriptions}
        for connection_id in connection_ids:
            await self.teardown(connection_id)

    def active_keys(self, connection_id: str) -> list[tuple[str, str]]:
        """(provider, symbol) pairs currently polled for a connection."""
        return [(key[1], key[2]) for key in self._subscriptions if key[0] == connection_id]

    def __len__(self) -> int:
        return len(self._subscriptions)

    # --- Internal ---

    async def _cancel(self, key: SubscriptionKey) -> bool:
        sub = self._subscriptions.pop(key, None)
        if sub is None:
            return False
        task = sub.task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        return True

    async def _run(self, sub: Subscription, emit: Emit, first_tick: asyncio.Event) -> None:
        """Immediate tick, then one tick per interval until cancelled."""
        try:
            await self._tick(sub, emit)
        finally:
            first_tick.set()
        while True:
            await asyncio.sleep(sub.interval_ms / 1000)
            await self._tick(sub, emit)

    async def _tick(self, sub: Subscription, emit: Emit) -> None:
        try:
            event = await self._fetch_event(sub)
            await emit(event)
        except Exception:
            # Don't re-raise: the next tick runs on schedule
            logger.exception("Tick failed for %s %s via %s", sub.connection_id, sub.symbol, sub.provider)

    async def _fetch_event(self, sub: Subscription) -> dict:
        requested = self._providers[sub.provider]
        try:
            quote = await requested.fetch_quote(sub.symbol)
            answered = requested
        except Exception as e:
            alternate = self._alternate[sub.provider]
            logger.warning("%s failed for %s, trying %s: %s", requested.name, sub.symbol, alternate.name, e)
            try:
                quote = await alternate.fetch_quote(sub.symbol)
                answered = alternate
            except Exception as fallback_err:
                logger.error("Both providers failed for %s: %s", sub.symbol, fallback_err)
                return _error_event(fallback_err, sub.provider, sub.symbol)

        return _quote_event(quote, answered.name, sub.symbol)


def _quote_event(quote: NormalizedQuote, provider: str, symbol: str) -> dict:
    price = quote.price
    if not price or math.isnan(price):
        logger.warning("Invalid price (%s) for %s from %s, skipping emit", price, symbol, provider)
        return {
            "type": "error",
            "message": f"No valid data available for {symbol}",
            "provider": provider,
            "symbol": symbol,
        }
    return {
        "type": "quote",
        "provider": provider,
        "symbol": (quote.symbol or symbol).upper(),
        "price": price,
        "change": quote.change,
        "changePercent": quote.change_percent,
        "timestamp": quote.timestamp,
    }


def _error_event(err: Exception, provider: str, symbol: str) -> dict:
    code = err.code if isinstance(err, ProviderError) else "error"
    return {
        "type": "error",
        "message": str(err) or "fetch error",
        "provider": provider,
        "symbol": symbol,
        "code": code,
    }
