"""Fallback provider: ``leetcode-api-faisalshohag``.

The service exposes a single endpoint, ``/<username>``, whose payload bundles
solved counts, ranking, the submission calendar and recent submissions.  Every
supported operation is answered from that one payload; the normaliser picks
the fields it needs.  There is no display name, avatar, contest, badge, daily
or problem-list data here.

A sync asks for four fragments at once, so the bundle is fetched once per
username and shared for ``CB_BUNDLE_TTL`` seconds (default 30).  Callers
arriving while the fetch is in flight wait on it instead of queueing their own
request behind the rate gate.  Failed fetches are not kept.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Callable, Optional

from .base import ProviderClient, TaggedResponse, user_path
from .errors import UnsupportedOperation

logger = logging.getLogger(__name__)

FAISAL_API_URL = os.getenv("CB_FAISAL_URL", "https://leetcode-api-faisalshohag.vercel.app")
BUNDLE_TTL = float(os.getenv("CB_BUNDLE_TTL", "30"))


class FaisalClient(ProviderClient):
    name = "faisal"
    default_base_url = FAISAL_API_URL
    operations = ("profile", "solved_stats", "submissions", "calendar")

    def __init__(
        self,
        *args: Any,
        bundle_ttl: float = BUNDLE_TTL,
        clock: Callable[[], float] = time.monotonic,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.bundle_ttl = bundle_ttl
        self._clock = clock
        # username -> (started_at, fetch task)
        self._bundles: dict[str, tuple[float, asyncio.Task]] = {}
        self._waiters: dict[asyncio.Task, int] = {}

    async def call(
        self,
        operation: str,
        *,
        before_request: Optional[Callable[[], Awaitable[None]]] = None,
        **params: Any,
    ) -> TaggedResponse:
        # submissions' limit stays in params for the normaliser; the endpoint has no such knob
        if not self.supports(operation):
            raise UnsupportedOperation(f"{self.name} cannot serve {operation}", self.name, operation)
        raw = await self.bundle(params["username"], operation, before_request)
        return TaggedResponse(self.name, operation, raw, dict(params))

    async def bundle(
        self,
        username: str,
        operation: str = "profile",
        before_request: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Any:
        """Return the bundle for *username*, fetching it only when no fresh copy is around."""

        key = username.strip().lower()
        now = self._clock()
        self._bundles = {k: v for k, v in self._bundles.items() if now - v[0] < self.bundle_ttl}

        entry = self._bundles.get(key)
        if entry is None:
            task = asyncio.ensure_future(self._fetch(username, operation, before_request))
            self._bundles[key] = (now, task)
            task.add_done_callback(lambda t: self._forget_failed(key, t))
        else:
            task = entry[1]
            logger.debug("faisal: reusing bundle for %s (%s)", username, operation)

        if task.done():
            return task.result()

        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            return await asyncio.shield(task)
        finally:
            self._waiters[task] -= 1
            if not self._waiters[task]:
                del self._waiters[task]
                if not task.done():
                    # nobody is left to use the answer
                    task.cancel()

    async def _fetch(
        self, username: str, operation: str, before_request: Optional[Callable[[], Awaitable[None]]]
    ) -> Any:
        if before_request is not None:
            await before_request()
        return await self.get_json(user_path(username), operation)

    def _forget_failed(self, key: str, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is None:
            return
        entry = self._bundles.get(key)
        if entry is not None and entry[1] is task:
            del self._bundles[key]


__all__ = ["FaisalClient", "FAISAL_API_URL", "BUNDLE_TTL"]
