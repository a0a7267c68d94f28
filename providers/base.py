"""Shared plumbing for LeetCode statistics providers.

A provider client knows the URL layout of one upstream service and returns
its payload untouched, wrapped in a ``TaggedResponse`` so the normaliser can
dispatch on ``provider`` instead of guessing from field names.

HTTP goes through a single ``cloudscraper`` session per client (it is a
``requests.Session`` that clears Cloudflare's browser check).  The blocking
call runs in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

import cloudscraper
import requests

from .errors import (
    MalformedResponse,
    NotFound,
    ProviderConnectionError,
    ProviderHTTPError,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimited,
    UnsupportedOperation,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = float(os.getenv("CB_TIMEOUT", "10"))
USER_AGENT = "CodeBattle-App/1.0"

# Both mirrors answer HTTP 200 with this text in the body when throttling.
RATE_LIMIT_MARKERS = ("too many request", "rate limit")
NOT_FOUND_MARKERS = ("does not exist", "user not found")

_UNAVAILABLE_STATUSES = {502, 503, 504}


@dataclass(frozen=True)
class TaggedResponse:
    """Raw provider payload plus the tag identifying where it came from."""

    provider: str
    operation: str
    raw: Any
    params: dict[str, Any] = field(default_factory=dict)


def _mentions(text: str, markers) -> bool:
    low = text.lower()
    return any(m in low for m in markers)


def user_path(username: str) -> str:
    return "/" + quote(username.strip(), safe="")


class ProviderClient:
    """Base class; subclasses implement one coroutine per supported operation.

    Supported operations are listed in ``operations``; by default ``call``
    dispatches to the coroutine of the same name.
    """

    name = "base"
    default_base_url = ""
    operations: tuple = ()

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.session = session if session is not None else cloudscraper.create_scraper()
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout

    def supports(self, operation: str) -> bool:
        return operation in self.operations

    async def call(
        self,
        operation: str,
        *,
        before_request: Optional[Callable[[], Awaitable[None]]] = None,
        **params: Any,
    ) -> TaggedResponse:
        """Run *operation* and tag the raw payload.

        *before_request* is awaited once, right before the network call (the
        router uses it for the rate gate and deadline checks).
        """

        if not self.supports(operation):
            raise UnsupportedOperation(f"{self.name} cannot serve {operation}", self.name, operation)
        if before_request is not None:
            await before_request()
        raw = await getattr(self, operation)(**params)
        return TaggedResponse(self.name, operation, raw, dict(params))

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def get_json(self, path: str, operation: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await asyncio.to_thread(self._get_json_blocking, path, operation, params)

    def _get_json_blocking(self, path: str, operation: str, params: Optional[dict[str, Any]]) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("GET %s params=%s", url, params)
        try:
            resp = self.session.get(
                url,
                params=params,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise ProviderTimeout(f"request timed out after {self.timeout}s", self.name, operation) from exc
        except requests.RequestException as exc:
            raise ProviderConnectionError(f"failed to connect: {exc}", self.name, operation) from exc

        logger.debug("%s %s -> %s", self.name, path, resp.status_code)
        return self._decode(resp, operation)

    def _decode(self, resp: requests.Response, operation: str) -> Any:
        status = resp.status_code
        text = resp.text or ""

        if status == 429:
            raise RateLimited("HTTP 429", self.name, operation)
        if status == 404:
            raise NotFound("HTTP 404", self.name, operation)
        if status in _UNAVAILABLE_STATUSES:
            raise ProviderUnavailable(f"HTTP {status}", status, self.name, operation)
        if status >= 400:
            if _mentions(text, RATE_LIMIT_MARKERS):
                raise RateLimited(f"HTTP {status}: {text[:120]}", self.name, operation)
            raise ProviderHTTPError(f"HTTP {status}", status, self.name, operation)

        try:
            payload = resp.json()
        except ValueError:
            if _mentions(text, RATE_LIMIT_MARKERS):
                raise RateLimited(text.strip()[:120], self.name, operation)
            raise MalformedResponse("body is not JSON", self.name, operation)

        if isinstance(payload, str):
            if _mentions(payload, RATE_LIMIT_MARKERS):
                raise RateLimited(payload[:120], self.name, operation)
            raise MalformedResponse("unexpected string payload", self.name, operation)

        if isinstance(payload, dict):
            self._check_error_payload(payload, operation)
        return payload

    def _check_error_payload(self, payload: dict[str, Any], operation: str) -> None:
        """Raise for error envelopes that arrive with HTTP 200."""

        messages = []
        errors = payload.get("errors")
        if isinstance(errors, list):
            messages.extend(str(e.get("message", "")) for e in errors if isinstance(e, dict))
        elif isinstance(errors, str):
            messages.append(errors)
        for key in ("message", "error"):
            if isinstance(payload.get(key), str):
                messages.append(payload[key])

        for msg in messages:
            if _mentions(msg, RATE_LIMIT_MARKERS):
                raise RateLimited(msg[:120], self.name, operation)
            if _mentions(msg, NOT_FOUND_MARKERS):
                raise NotFound(msg[:120], self.name, operation)
        if errors:
            raise MalformedResponse(f"error payload: {'; '.join(messages)[:120]}", self.name, operation)


__all__ = ["ProviderClient", "TaggedResponse", "DEFAULT_TIMEOUT", "USER_AGENT", "user_path"]
