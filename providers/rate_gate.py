"""Per-provider request spacing.

The public mirrors we talk to start answering "Too many request" as soon as
calls arrive faster than roughly one per second.  ``RateGate`` keeps a last
grant timestamp per provider and makes each caller wait its turn.  Grants for
one provider are serialised through an ``asyncio.Lock`` so concurrent
acquirers never read the same stale timestamp; other providers are not
affected.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Awaitable, Callable, Optional

from .deadline import Deadline
from .errors import DeadlineExceeded

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_MS = int(os.getenv("CB_MIN_INTERVAL_MS", "1000"))


class RateGate:
    def __init__(
        self,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        self.min_interval = min_interval_ms / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last_grant: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, provider_id: str) -> asyncio.Lock:
        lock = self._locks.get(provider_id)
        if lock is None:
            lock = self._locks[provider_id] = asyncio.Lock()
        return lock

    async def acquire(self, provider_id: str, deadline: Optional[Deadline] = None) -> None:
        """Wait until *provider_id* may be called again, then claim the slot.

        If *deadline* would pass while waiting, ``DeadlineExceeded`` is raised
        and the slot is left for the next caller.
        """

        async with self._lock_for(provider_id):
            last = self._last_grant.get(provider_id)
            wait = 0.0
            if last is not None:
                wait = last + self.min_interval - self._clock()
            if deadline is not None and deadline.remaining() < max(wait, 0.0):
                raise DeadlineExceeded("deadline passes while waiting for rate gate", provider_id)
            if wait > 0:
                logger.debug("Rate gate %s: waiting %.3fs", provider_id, wait)
                await self._sleep(wait)
            self._last_grant[provider_id] = self._clock()

    def last_grant(self, provider_id: str) -> Optional[float]:
        return self._last_grant.get(provider_id)


__all__ = ["RateGate", "DEFAULT_MIN_INTERVAL_MS"]
