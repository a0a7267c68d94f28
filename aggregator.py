"""Aggregator: the public face of the sync core.

Given a LeetCode username it fans out to the providers through the failover
router, assembles the canonical fragments and derives the streak and skill
level.  Persisting the result is the caller's business.

Usage
-----
>>> agg = Aggregator.default()
>>> result = asyncio.run(agg.get_comprehensive_user_data("someone"))
>>> result.streak, result.skill_level
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Sequence

from providers import AlfaClient, DayCache, FaisalClient, FailoverRouter, RateGate
from providers.deadline import Deadline
from providers.errors import NotFound, ProviderError
from stats.models import (
    CanonicalBadge,
    CanonicalDailyProblem,
    CanonicalProblemPage,
    CanonicalSubmission,
    ContestInfo,
    SyncResult,
)
from stats.skill import classify
from stats.streak import compute_streak, epoch_day

logger = logging.getLogger(__name__)

DEFAULT_SUBMISSION_LIMIT = int(os.getenv("CB_SUBMISSION_LIMIT", "10"))

_DIFFICULTIES = {"EASY", "MEDIUM", "HARD"}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProblemFilters:
    limit: int = 20
    skip: int = 0
    tags: tuple[str, ...] = ()
    difficulty: Optional[str] = None

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError("limit must be positive")
        if self.skip < 0:
            raise ValueError("skip must be >= 0")
        object.__setattr__(self, "tags", tuple(t for t in self.tags if t))
        if self.difficulty is not None:
            level = self.difficulty.upper()
            if level not in _DIFFICULTIES:
                raise ValueError(f"difficulty must be one of {sorted(_DIFFICULTIES)}")
            object.__setattr__(self, "difficulty", level)


@dataclass(frozen=True)
class SyncOutcome:
    """Per-user entry of a batch sync."""

    username: str
    result: Optional[SyncResult] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class Aggregator:
    def __init__(
        self,
        router: FailoverRouter,
        submission_limit: int = DEFAULT_SUBMISSION_LIMIT,
        day_cache: Optional[DayCache] = None,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.router = router
        self.submission_limit = submission_limit
        self.day_cache = day_cache if day_cache is not None else DayCache()
        self._now = now

    @classmethod
    def default(cls, min_interval_ms: Optional[int] = None, **kwargs: Any) -> "Aggregator":
        """Aggregator wired to the live alfa (primary) and faisal (fallback) mirrors."""

        gate = RateGate() if min_interval_ms is None else RateGate(min_interval_ms)
        router = FailoverRouter([AlfaClient(), FaisalClient()], gate=gate)
        return cls(router, **kwargs)

    # ------------------------------------------------------------------
    # Username check
    # ------------------------------------------------------------------

    async def verify_username(self, username: str, deadline: Optional[Deadline] = None) -> bool:
        """True iff some provider returns a non-empty record for *username*. Never raises."""

        if not username or not username.strip():
            return False
        try:
            profile = await self.router.fetch("profile", username=username.strip(), deadline=deadline)
        except NotFound:
            logger.info("Username %s not found", username)
            return False
        except ProviderError as exc:
            logger.info("Username %s could not be verified (%s)", username, exc.kind)
            return False
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected failure verifying %s", username)
            return False
        return bool(profile.provider_username)

    # ------------------------------------------------------------------
    # Full sync
    # ------------------------------------------------------------------

    async def get_comprehensive_user_data(self, username: str, deadline: Optional[Deadline] = None) -> SyncResult:
        """Fetch, normalise and derive everything a profile needs.

        Profile, solved stats, recent submissions and calendar are required
        and fetched concurrently; the first failure cancels the others and
        propagates.  Contest info and badges are best-effort: failures are
        logged and recorded in ``SyncResult.degraded``.
        """

        username = username.strip()
        logger.info("Syncing LeetCode user %s", username)

        profile, solved, submissions, calendar = await self._gather_required(
            [
                self.router.fetch("profile", username=username, deadline=deadline),
                self.router.fetch("solved_stats", username=username, deadline=deadline),
                self.router.fetch("submissions", username=username, limit=self.submission_limit, deadline=deadline),
                self.router.fetch("calendar", username=username, deadline=deadline),
            ]
        )

        degraded: dict[str, str] = {}
        contest_info, badges = await asyncio.gather(
            self._contest_best_effort(username, deadline, degraded),
            self._badges_best_effort(username, deadline, degraded),
        )

        now = self._now()
        result = SyncResult(
            profile=profile,
            solved_stats=solved,
            submissions=tuple(submissions),
            calendar=calendar,
            streak=compute_streak(calendar, epoch_day(now)),
            skill_level=classify(solved),
            contest_info=contest_info,
            fetched_at=now,
            badges=tuple(badges),
            degraded=degraded,
        )
        logger.info(
            "Synced %s: solved=%d streak=%d skill=%s%s",
            username,
            solved.total_solved,
            result.streak,
            result.skill_level.value,
            f" degraded={sorted(degraded)}" if degraded else "",
        )
        return result

    @staticmethod
    async def _gather_required(coros: Sequence[Any]) -> list[Any]:
        tasks = [asyncio.ensure_future(c) for c in coros]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _contest_best_effort(
        self, username: str, deadline: Optional[Deadline], degraded: dict[str, str]
    ) -> Optional[ContestInfo]:
        try:
            return await self.router.fetch("contest", username=username, deadline=deadline)
        except NotFound:
            logger.info("No contest data for %s", username)
            return None
        except ProviderError as exc:
            logger.warning("Contest info unavailable for %s (%s: %s)", username, exc.kind, exc)
            degraded["contest_info"] = exc.kind
            return None
        except Exception:  # noqa: BLE001
            logger.exception("Contest fetch for %s failed unexpectedly", username)
            degraded["contest_info"] = "unexpected"
            return None

    async def _badges_best_effort(
        self, username: str, deadline: Optional[Deadline], degraded: dict[str, str]
    ) -> tuple[CanonicalBadge, ...]:
        try:
            return await self.router.fetch("badges", username=username, deadline=deadline)
        except NotFound:
            return ()
        except ProviderError as exc:
            logger.warning("Badges unavailable for %s (%s: %s)", username, exc.kind, exc)
            degraded["badges"] = exc.kind
            return ()
        except Exception:  # noqa: BLE001
            logger.exception("Badge fetch for %s failed unexpectedly", username)
            degraded["badges"] = "unexpected"
            return ()

    # ------------------------------------------------------------------
    # Other reads
    # ------------------------------------------------------------------

    async def get_accepted_submissions(
        self, username: str, limit: int = 20, deadline: Optional[Deadline] = None
    ) -> tuple[CanonicalSubmission, ...]:
        return await self.router.fetch("accepted_submissions", username=username.strip(), limit=limit, deadline=deadline)

    async def get_daily_problem(self, deadline: Optional[Deadline] = None) -> CanonicalDailyProblem:
        cached = self.day_cache.get("daily_problem")
        if cached is not None:
            logger.debug("Using cached daily problem %s", cached.title_slug)
            return cached
        daily = await self.router.fetch("daily_problem", deadline=deadline)
        self.day_cache.set("daily_problem", daily)
        return daily

    async def get_problems(
        self, filters: Optional[ProblemFilters] = None, deadline: Optional[Deadline] = None
    ) -> CanonicalProblemPage:
        filters = filters or ProblemFilters()
        return await self.router.fetch(
            "problems",
            limit=filters.limit,
            skip=filters.skip,
            tags=filters.tags,
            difficulty=filters.difficulty,
            deadline=deadline,
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def sync_all(self, usernames: Iterable[str]) -> list[SyncOutcome]:
        """Sync each username in turn; one failure never aborts the batch."""

        outcomes: list[SyncOutcome] = []
        for username in usernames:
            try:
                result = await self.get_comprehensive_user_data(username)
            except ProviderError as exc:
                logger.error("Sync failed for %s: %s", username, exc)
                outcomes.append(SyncOutcome(username, error_kind=exc.kind, error=str(exc)))
                continue
            outcomes.append(SyncOutcome(username, result=result))

        ok = sum(1 for o in outcomes if o.ok)
        logger.info("Batch sync complete: %d succeeded, %d failed", ok, len(outcomes) - ok)
        return outcomes


__all__ = ["Aggregator", "ProblemFilters", "SyncOutcome", "DEFAULT_SUBMISSION_LIMIT"]
