"""Typed errors raised by providers and the quote service."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification that drives fallback and propagation decisions."""

    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"
    NETWORK = "network"
    MISCONFIGURED = "misconfigured"


DEFAULT_STATUS: dict[ErrorKind, int] = {
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.UPSTREAM: 502,
    ErrorKind.NETWORK: 502,
    ErrorKind.MISCONFIGURED: 500,
}


class QuoteError(Exception):
    """Base class for errors that map to an HTTP-like status."""

    status: int = 500
    code: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Serialize as the error envelope returned by the proxy API."""
        return {
            "success": False,
            "error": {"message": self.message, "code": self.code, "status": self.status},
        }


class ProviderError(QuoteError):
    """A classified failure from an upstream provider.

    Status is fixed at construction: either given explicitly (e.g. the
    upstream's own non-2xx status) or the default for the kind.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status: int | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status if status is not None else DEFAULT_STATUS[kind]
        self.code = kind.value
        self.provider = provider

    @property
    def is_rate_limited(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMITED

    def __repr__(self) -> str:
        return (
            f"ProviderError(kind={self.kind.value!r}, status={self.status}, "
            f"provider={self.provider!r}, message={self.message!r})"
        )


class InvalidRequestError(QuoteError):
    """Caller supplied a missing or malformed parameter."""

    status = 400
    code = "invalid_request"
