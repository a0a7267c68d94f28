"""Canonical value objects produced by the normaliser.

Everything here is a frozen dataclass: built once per fetch, never mutated.
``to_dict`` gives JSON-ready primitives for callers that persist results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

SECONDS_PER_DAY = 86_400


class _Canonical:
    def to_dict(self) -> dict[str, Any]:
        return {k: _plain(getattr(self, k)) for k in self.__dataclass_fields__}  # type: ignore[attr-defined]


class SubmissionStatus(str, Enum):
    ACCEPTED = "Accepted"
    WRONG_ANSWER = "Wrong Answer"
    OTHER = "Other"


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


def _plain(value: Any) -> Any:
    if isinstance(value, _Canonical):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class CanonicalProfile(_Canonical):
    provider_username: str
    display_name: str
    avatar_url: Optional[str] = None
    global_rank: Optional[int] = None
    reputation: Optional[int] = None
    country: Optional[str] = None
    company: Optional[str] = None
    school: Optional[str] = None
    external_links: tuple[str, ...] = ()


@dataclass(frozen=True)
class CanonicalSolvedStats(_Canonical):
    total_solved: int = 0
    easy_solved: int = 0
    medium_solved: int = 0
    hard_solved: int = 0
    total_submissions: int = 0
    accepted_submissions: int = 0

    @property
    def is_consistent(self) -> bool:
        """Providers sometimes disagree with themselves; this only reports it."""
        return self.total_solved == self.easy_solved + self.medium_solved + self.hard_solved


@dataclass(frozen=True)
class CanonicalSubmission(_Canonical):
    problem_title: str
    problem_slug: str
    timestamp: int
    status: SubmissionStatus
    language: str


@dataclass(frozen=True)
class CanonicalCalendar(_Canonical):
    """Sparse activity map keyed by day number (days since 1970-01-01 UTC)."""

    activity_by_day: Mapping[int, int] = field(default_factory=dict)
    total_active_days: Optional[int] = None

    def __post_init__(self) -> None:
        cleaned = {int(d): int(c) for d, c in dict(self.activity_by_day).items() if int(c) > 0}
        object.__setattr__(self, "activity_by_day", MappingProxyType(cleaned))

    @property
    def active_days(self) -> int:
        return len(self.activity_by_day)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CanonicalCalendar):
            return NotImplemented
        return (
            dict(self.activity_by_day) == dict(other.activity_by_day)
            and self.total_active_days == other.total_active_days
        )

    def __hash__(self) -> int:
        return hash((frozenset(self.activity_by_day.items()), self.total_active_days))


@dataclass(frozen=True)
class ContestInfo(_Canonical):
    attended: int = 0
    rating: Optional[float] = None
    global_ranking: Optional[int] = None
    total_participants: Optional[int] = None
    top_percentage: Optional[float] = None
    badge: Optional[str] = None


@dataclass(frozen=True)
class CanonicalBadge(_Canonical):
    id: str
    display_name: str
    icon: Optional[str] = None


@dataclass(frozen=True)
class CanonicalDailyProblem(_Canonical):
    date: str
    link: str
    title: str
    title_slug: str
    difficulty: str
    content: Optional[str] = None
    example_testcases: Optional[str] = None
    topic_tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class CanonicalProblem(_Canonical):
    frontend_id: str
    title: str
    title_slug: str
    difficulty: str
    acceptance_rate: Optional[float] = None
    paid_only: bool = False
    topic_tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class CanonicalProblemPage(_Canonical):
    total_questions: int
    problems: tuple[CanonicalProblem, ...] = ()

    @property
    def count(self) -> int:
        return len(self.problems)


@dataclass(frozen=True)
class SyncResult(_Canonical):
    """Everything one sync produced, plus what was derived from it.

    ``degraded`` maps a best-effort fragment name to the error kind that made
    it fall back (e.g. ``{"contest_info": "timeout"}``).  A fragment that is
    simply absent upstream is not listed.
    """

    profile: CanonicalProfile
    solved_stats: CanonicalSolvedStats
    submissions: tuple[CanonicalSubmission, ...]
    calendar: CanonicalCalendar
    streak: int
    skill_level: SkillLevel
    contest_info: Optional[ContestInfo]
    fetched_at: datetime
    badges: tuple[CanonicalBadge, ...] = ()
    degraded: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "degraded", MappingProxyType(dict(self.degraded)))

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded)


__all__ = [
    "SECONDS_PER_DAY",
    "SubmissionStatus",
    "SkillLevel",
    "CanonicalProfile",
    "CanonicalSolvedStats",
    "CanonicalSubmission",
    "CanonicalCalendar",
    "ContestInfo",
    "CanonicalBadge",
    "CanonicalDailyProblem",
    "CanonicalProblem",
    "CanonicalProblemPage",
    "SyncResult",
]
