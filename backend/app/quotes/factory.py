"""Settings and factories for the quote subsystem."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .alpha_vantage import AlphaVantageProvider
from .finnhub import FinnhubProvider
from .interface import QuoteProvider
from .transport import DEFAULT_TIMEOUT, HttpTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Settings:
    alpha_vantage_key: str = ""
    finnhub_key: str = ""
    cache_ttl_seconds: float = 300
    cache_sweep_seconds: float = 60
    http_timeout_seconds: float = DEFAULT_TIMEOUT


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def load_settings() -> Settings:
    """Read settings from environment variables.

    - ALPHA_VANTAGE_API_KEY / FINNHUB_API_KEY: blank means not configured;
      calls to that provider then fail as MISCONFIGURED.
    - CACHE_TTL_SECONDS (300), CACHE_SWEEP_SECONDS (60), HTTP_TIMEOUT_SECONDS (10)
    """
    return Settings(
        alpha_vantage_key=os.environ.get("ALPHA_VANTAGE_API_KEY", "").strip(),
        finnhub_key=os.environ.get("FINNHUB_API_KEY", "").strip(),
        cache_ttl_seconds=_env_number("CACHE_TTL_SECONDS", 300),
        cache_sweep_seconds=_env_number("CACHE_SWEEP_SECONDS", 60),
        http_timeout_seconds=_env_number("HTTP_TIMEOUT_SECONDS", DEFAULT_TIMEOUT),
    )


def create_providers(settings: Settings, transport: HttpTransport) -> tuple[QuoteProvider, QuoteProvider]:
    """Build (primary, secondary) providers sharing one transport.

    Returns unconfigured providers as well; they raise MISCONFIGURED per call
    so the other provider can still serve requests and fallbacks.
    """
    primary = AlphaVantageProvider(api_key=settings.alpha_vantage_key, transport=transport)
    secondary = FinnhubProvider(api_key=settings.finnhub_key, transport=transport)

    for provider, key in ((primary, settings.alpha_vantage_key), (secondary, settings.finnhub_key)):
        if key:
            logger.info("Quote provider %s: configured", provider.name)
        else:
            logger.warning("Quote provider %s: no API key, requests will fail", provider.name)
    return primary, secondary
