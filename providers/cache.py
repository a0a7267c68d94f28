"""In-process day cache for provider payloads that change once per day.

Entries are grouped by UTC date; asking for a key on a later day misses and
drops the older days.  Nothing is written to disk.

Set CB_SKIP_CACHE=1 to bypass the cache (useful for debugging or force-refresh).
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Callable, Optional


SKIP_CACHE = os.getenv("CB_SKIP_CACHE", "0").lower() in {"1", "true", "yes"}


def _utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


class DayCache:
    """Catalog of ``{"YYYY-MM-DD": {key: value}}`` holding only the current day."""

    def __init__(self, today: Callable[[], str] = _utc_today, enabled: Optional[bool] = None):
        self._today = today
        self.enabled = (not SKIP_CACHE) if enabled is None else enabled
        self._catalog: dict[str, dict[str, Any]] = {}

    def _bucket(self) -> dict[str, Any]:
        today = self._today()
        if today not in self._catalog:
            self._catalog = {today: {}}
        return self._catalog[today]

    def get(self, key: str) -> Optional[Any]:
        """Return today's value for *key* (or *None* if absent/disabled)."""

        if not self.enabled:
            return None
        return self._bucket().get(key)

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        self._bucket()[key] = value

    def clear(self) -> None:
        self._catalog.clear()


__all__ = ["DayCache", "SKIP_CACHE"]
