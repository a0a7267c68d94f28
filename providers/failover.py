"""Route one logical request across providers in priority order.

For each provider: call it, normalise the payload.  The client waits on the
provider's rate gate just before it goes to the network, so a client that
answers from memory does not spend a gate slot.

Transient failures (throttling, timeouts, connection trouble, gateway 5xx)
and payloads the normaliser cannot map move on to the next provider.
``NotFound`` stops immediately: a username missing on one mirror is missing
on all of them, and retrying would only hide that.
"""

from __future__ import annotations

import logging
import os
from functools import partial
from typing import Any, Callable, Iterable, Optional, Sequence

from .base import ProviderClient, TaggedResponse
from .deadline import Deadline
from .errors import (
    AllProvidersExhausted,
    MalformedResponse,
    NotFound,
    ProviderError,
    UnsupportedOperation,
)
from .rate_gate import RateGate

logger = logging.getLogger(__name__)

# Optional env var CB_PROVIDERS="faisal,alfa" to change the failover order
DEFAULT_ORDER = tuple(p.strip().lower() for p in os.getenv("CB_PROVIDERS", "alfa,faisal").split(",") if p.strip())


def _advances(exc: ProviderError) -> bool:
    return exc.transient or isinstance(exc, (MalformedResponse, UnsupportedOperation))


class FailoverRouter:
    def __init__(
        self,
        clients: Iterable[ProviderClient],
        gate: Optional[RateGate] = None,
        normalizer: Optional[Callable[[TaggedResponse], Any]] = None,
        default_order: Optional[Sequence[str]] = None,
    ):
        self.clients: dict[str, ProviderClient] = {c.name: c for c in clients}
        self.gate = gate if gate is not None else RateGate()
        if normalizer is None:
            from stats.normalize import normalize as normalizer
        self.normalizer = normalizer
        self.default_order = tuple(default_order or [n for n in DEFAULT_ORDER if n in self.clients] or self.clients)

    async def fetch(
        self,
        operation: str,
        providers: Optional[Sequence[str]] = None,
        *,
        deadline: Optional[Deadline] = None,
        **params: Any,
    ) -> Any:
        """Return the canonical result of *operation* from the first provider that answers.

        Raises the provider's ``NotFound`` (or other non-recoverable error)
        as-is, ``DeadlineExceeded`` if *deadline* passes before a call, and
        ``AllProvidersExhausted`` when every provider failed recoverably.
        """

        order = tuple(providers) if providers else self.default_order
        failures: list[ProviderError] = []

        for name in order:
            client = self.clients.get(name)
            if client is None:
                logger.warning("Unknown provider %r in order for %s – skipping", name, operation)
                continue
            if not client.supports(operation):
                failures.append(UnsupportedOperation(f"{name} cannot serve {operation}", name, operation))
                continue

            try:
                tagged = await client.call(
                    operation, before_request=partial(self._clear_to_send, name, operation, deadline), **params
                )
                return self.normalizer(tagged)
            except NotFound:
                logger.info("%s: %s reports not found – not trying other providers", operation, name)
                raise
            except ProviderError as exc:
                if not _advances(exc):
                    raise
                failures.append(exc)
                logger.warning("%s via %s failed (%s: %s) – trying next provider", operation, name, exc.kind, exc)

        logger.error("%s: all providers exhausted (%d attempts)", operation, len(failures))
        raise AllProvidersExhausted(operation, failures)

    async def _clear_to_send(self, name: str, operation: str, deadline: Optional[Deadline]) -> None:
        """Deadline check, gate slot, deadline check; run by the client right before it goes to the network."""

        if deadline is not None:
            deadline.check(operation, name)
        await self.gate.acquire(name, deadline)
        if deadline is not None:
            deadline.check(operation, name)


__all__ = ["FailoverRouter", "DEFAULT_ORDER"]
