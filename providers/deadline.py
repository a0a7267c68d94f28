"""Caller-supplied deadline checked before every outbound call."""

from __future__ import annotations

import time
from typing import Callable, Optional

from .errors import DeadlineExceeded


class Deadline:
    """Absolute point in (monotonic) time after which no new request starts.

    A request already on the wire is allowed to finish; the deadline is only
    consulted at suspension points before a call, so abandoning a sync never
    leaves gate slots queued behind it.
    """

    def __init__(self, expires_at: float, clock: Callable[[], float] = time.monotonic):
        self.expires_at = expires_at
        self._clock = clock

    @classmethod
    def after(cls, seconds: float, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(clock() + seconds, clock)

    def remaining(self) -> float:
        return self.expires_at - self._clock()

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, operation: Optional[str] = None, provider: Optional[str] = None) -> None:
        if self.expired:
            raise DeadlineExceeded("deadline passed before request", provider, operation)


__all__ = ["Deadline"]
