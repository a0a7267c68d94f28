"""Exception hierarchy for provider access.

Every error carries the provider and operation it came from plus a stable
``kind`` string.  Callers should only rely on ``kind``; messages are taken
from whatever the upstream service said and change without notice.

``transient`` tells the failover router whether trying the next provider
makes sense.
"""

from __future__ import annotations

from typing import Optional


class ProviderError(Exception):
    """Base class for everything raised by the provider layer."""

    kind = "provider_error"
    transient = False

    def __init__(self, message: str, provider: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.operation = operation

    def __str__(self) -> str:
        where = "/".join(p for p in (self.provider, self.operation) if p)
        base = super().__str__()
        return f"[{where}] {base}" if where else base


class NotFound(ProviderError):
    """The username does not exist. Never retried on another provider."""

    kind = "not_found"


class RateLimited(ProviderError):
    kind = "rate_limited"
    transient = True


class ProviderTimeout(ProviderError):
    kind = "timeout"
    transient = True


class ProviderConnectionError(ProviderError):
    kind = "connection_error"
    transient = True


class ProviderUnavailable(ProviderError):
    """Gateway-style 5xx answer (502/503/504), usually a cold or overloaded host."""

    kind = "unavailable"
    transient = True

    def __init__(self, message: str, status_code: int, provider: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, provider, operation)
        self.status_code = status_code


class ProviderHTTPError(ProviderError):
    kind = "http_error"

    def __init__(self, message: str, status_code: int, provider: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, provider, operation)
        self.status_code = status_code


class MalformedResponse(ProviderError):
    """The payload could not be mapped onto the canonical schema.

    Not transient for the provider that produced it, but the router still
    moves on to the next provider since the two are independent services.
    """

    kind = "malformed_response"


class UnsupportedOperation(ProviderError):
    """The provider has no endpoint for the requested operation."""

    kind = "unsupported"


class DeadlineExceeded(ProviderError):
    """The caller's deadline passed before the next network call."""

    kind = "deadline_exceeded"


class AllProvidersExhausted(ProviderError):
    """Every provider in the order failed with a recoverable error."""

    kind = "all_providers_exhausted"
    transient = True

    def __init__(self, operation: str, errors: list[ProviderError]):
        self.errors = list(errors)
        self.last = self.errors[-1] if self.errors else None
        detail = "; ".join(str(e) for e in self.errors) or "no providers configured"
        super().__init__(f"all providers failed: {detail}", None, operation)


__all__ = [
    "ProviderError",
    "NotFound",
    "RateLimited",
    "ProviderTimeout",
    "ProviderConnectionError",
    "ProviderUnavailable",
    "ProviderHTTPError",
    "MalformedResponse",
    "UnsupportedOperation",
    "DeadlineExceeded",
    "AllProvidersExhausted",
]
