"""Quote proxy subsystem.

Public API:
    NormalizedQuote      - Immutable provider-independent quote
    PricePoint           - One point of a history series
    TTLCache             - Thread-safe expiring key/value store
    QuoteProvider        - Abstract interface for upstream providers
    QuoteService         - Cached quote/history resolution with fallback
    SubscriptionManager  - Per-connection live quote polling
    ProviderError        - Classified upstream failure
    create_proxy_router  - FastAPI router factory for REST endpoints
    create_stream_router - FastAPI router factory for the WebSocket endpoint
"""

from .api import create_proxy_router
from .cache import TTLCache
from .errors import ErrorKind, InvalidRequestError, ProviderError
from .interface import QuoteProvider
from .models import NormalizedQuote, PricePoint, QuoteResult
from .service import QuoteService
from .stream import create_stream_router
from .subscriptions import SubscriptionManager

__all__ = [
    "NormalizedQuote",
    "PricePoint",
    "QuoteResult",
    "TTLCache",
    "QuoteProvider",
    "QuoteService",
    "SubscriptionManager",
    "ErrorKind",
    "ProviderError",
    "InvalidRequestError",
    "create_proxy_router",
    "create_stream_router",
]
