"""WebSocket streaming endpoint for live quote subscriptions."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)


def create_stream_router(manager: SubscriptionManager) -> APIRouter:
    """Create the streaming router with a reference to the subscription manager.

    This factory pattern lets us inject the manager without globals.
    """
    router = APIRouter(prefix="/api/stream", tags=["streaming"])

    @router.websocket("/ws")
    async def stream_quotes(websocket: WebSocket) -> None:
        """Live quotes over a WebSocket.

        Client messages:
            {"action": "subscribe", "symbol": "AAPL", "provider": "alpha", "intervalMs": 5000}
            {"action": "unsubscribe", "symbol": "AAPL", "provider": "alpha"}

        Server events:
            {"type": "quote", "provider", "symbol", "price", "change", "changePercent", "timestamp"}
            {"type": "error", "message", "provider", "symbol"}
        """
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        # Ticks for different keys emit concurrently; serialize writes on the socket
        send_lock = asyncio.Lock()

        async def emit(event: dict) -> None:
            async with send_lock:
                await websocket.send_json(event)

        manager.connect(connection_id, emit)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    await emit({"type": "error", "message": "Invalid JSON message"})
                    continue
                await _handle_message(manager, connection_id, message, emit)
        except WebSocketDisconnect:
            logger.info("Stream client disconnected: %s", connection_id)
        finally:
            await manager.teardown(connection_id)

    return router


async def _handle_message(manager: SubscriptionManager, connection_id: str, message: object, emit) -> None:
    if not isinstance(message, dict):
        await emit({"type": "error", "message": "Messages must be JSON objects"})
        return

    action = message.get("action")
    symbol = message.get("symbol")
    provider = message.get("provider") or "alpha"
    if symbol is not None and not isinstance(symbol, str):
        await emit({"type": "error", "message": "symbol must be a string"})
        return
    if not isinstance(provider, str):
        await emit({"type": "error", "message": "provider must be a string", "symbol": symbol})
        return

    if action == "subscribe":
        await manager.subscribe(connection_id, symbol, provider, message.get("intervalMs"))
    elif action == "unsubscribe":
        await manager.unsubscribe(connection_id, symbol, provider)
    else:
        await emit({"type": "error", "message": f"Unknown action: {action}", "symbol": symbol})
