"""Shared HTTP transport for upstream provider calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import ErrorKind, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True, slots=True)
class TransportResponse:
    status: int
    data: Any


class HttpTransport:
    """Thin wrapper over httpx.AsyncClient that maps failures to ProviderError.

    Non-2xx responses raise with the upstream status (429 -> RATE_LIMITED,
    anything else -> UPSTREAM). Connection errors and timeouts raise NETWORK.
    Provider-specific payload checks (rate-limit notes, error fields on 200
    responses) are left to the adapters.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def create(cls, timeout: float = DEFAULT_TIMEOUT) -> HttpTransport:
        return cls(httpx.AsyncClient(timeout=timeout))

    async def get(self, url: str, params: dict[str, Any] | None = None) -> TransportResponse:
        try:
            resp = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.warning("GET %s failed: %s", url, e)
            raise ProviderError(ErrorKind.NETWORK, str(e) or "Network Error") from e

        data = _decode(resp)
        if resp.is_success:
            return TransportResponse(status=resp.status_code, data=data)

        message = _error_message(data) or "Upstream API error"
        kind = ErrorKind.RATE_LIMITED if resp.status_code == 429 else ErrorKind.UPSTREAM
        raise ProviderError(kind, message, status=resp.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()


def _decode(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {}


def _error_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for field in ("error", "Note", "Information", "Message"):
        value = data.get(field)
        if value:
            return str(value)
    return None
