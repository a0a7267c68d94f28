"""Normalise provider payloads into the canonical schema.

Current data quirks
-------------------
• **alfa** – one endpoint per fragment.  Timestamps in submissions are
  *strings*; the calendar arrives as a JSON-encoded string inside the JSON
  body; submission totals are lists keyed by difficulty.
• **faisal** – one bundled payload for everything.  No display name, avatar
  or social links; calendar is a real object; recent submissions use the
  same row layout as alfa.

Both report the global rank as ``ranking``; some forks of the alfa mirror
call it ``globalRank`` or nest it under ``profile``.  Optional fields that
are missing fall back to ``None``/0.  Unknown fields are ignored.

Dispatch is on the explicit ``TaggedResponse.provider`` tag.  A payload that
lacks the fields identifying its fragment raises ``MalformedResponse``.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from providers.base import TaggedResponse
from providers.errors import MalformedResponse, UnsupportedOperation

from .models import (
    SECONDS_PER_DAY,
    CanonicalBadge,
    CanonicalCalendar,
    CanonicalDailyProblem,
    CanonicalProblem,
    CanonicalProblemPage,
    CanonicalProfile,
    CanonicalSolvedStats,
    CanonicalSubmission,
    ContestInfo,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------------
# Coercion helpers
# ----------------------------------------------------------------------------

def to_int(value: Any, default: int = 0) -> int:
    """Best-effort int conversion ("12", 12.0, None → default)."""

    opt = to_opt_int(value)
    return default if opt is None else opt


def to_opt_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip().replace(",", "")))
    except (OverflowError, TypeError, ValueError):
        return None


def to_opt_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip().rstrip("%"))
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def to_epoch_seconds(value: Any) -> int:
    """Coerce numbers, numeric strings, millisecond stamps and ISO dates to epoch seconds."""

    num = to_opt_int(value)
    if num is not None:
        # millisecond timestamps (13 digits) show up on some mirrors
        return num // 1000 if num > 10**11 else num
    if isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise MalformedResponse(f"unparseable timestamp {value!r}")
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp())
    raise MalformedResponse(f"missing timestamp ({value!r})")


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_dict(raw: Any, tagged: TaggedResponse) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedResponse(f"expected object, got {type(raw).__name__}", tagged.provider, tagged.operation)
    return raw


def _difficulty_entry(rows: Any, difficulty: str, key: str) -> int:
    """Pick ``key`` from the ``{"difficulty": ..}`` row matching *difficulty*."""

    if not isinstance(rows, list):
        return to_int(rows)
    for row in rows:
        if isinstance(row, dict) and str(row.get("difficulty", "")).lower() == difficulty.lower():
            return to_int(row.get(key))
    return 0


def _status(display: Any) -> SubmissionStatus:
    text = str(display or "").strip().lower()
    if text == "accepted":
        return SubmissionStatus.ACCEPTED
    if text == "wrong answer":
        return SubmissionStatus.WRONG_ANSWER
    return SubmissionStatus.OTHER


def _tag_names(tags: Any) -> tuple[str, ...]:
    names: list[str] = []
    for tag in tags or []:
        if isinstance(tag, dict):
            name = _opt_str(tag.get("name") or tag.get("slug"))
        else:
            name = _opt_str(tag)
        if name:
            names.append(name)
    return tuple(names)


def _links(*values: Any) -> tuple[str, ...]:
    out: list[str] = []
    for value in values:
        items = value if isinstance(value, (list, tuple)) else [value]
        for item in items:
            link = _opt_str(item)
            if link and link not in out:
                out.append(link)
    return tuple(out)


# ----------------------------------------------------------------------------
# Shared row mappers
# ----------------------------------------------------------------------------

def _submission_rows(rows: Iterable[Any], limit: Optional[int]) -> tuple[CanonicalSubmission, ...]:
    subs = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            timestamp = to_epoch_seconds(row.get("timestamp"))
        except MalformedResponse as exc:
            logger.warning("Skipping submission %r: %s", row.get("titleSlug") or row.get("title"), exc)
            continue
        subs.append(
            CanonicalSubmission(
                problem_title=str(row.get("title") or ""),
                problem_slug=str(row.get("titleSlug") or row.get("title_slug") or ""),
                timestamp=timestamp,
                status=_status(row.get("statusDisplay") or row.get("status")),
                language=str(row.get("lang") or row.get("language") or ""),
            )
        )
    subs.sort(key=lambda s: s.timestamp, reverse=True)
    if limit is not None:
        subs = subs[: max(int(limit), 0)]
    return tuple(subs)


def calendar_from_raw(raw_calendar: Any, total_active_days: Any = None) -> CanonicalCalendar:
    """Build a calendar from a ``{epoch_seconds: count}`` map (or its JSON text)."""

    if isinstance(raw_calendar, str):
        try:
            raw_calendar = json.loads(raw_calendar or "{}")
        except ValueError as exc:
            raise MalformedResponse("submissionCalendar is not valid JSON") from exc
    if raw_calendar is None:
        raw_calendar = {}
    if not isinstance(raw_calendar, Mapping):
        raise MalformedResponse("submissionCalendar is not an object")

    by_day: dict[int, int] = {}
    for ts, count in raw_calendar.items():
        secs = to_opt_int(ts)
        n = to_int(count)
        if secs is None or n <= 0:
            continue
        day = secs // SECONDS_PER_DAY
        by_day[day] = by_day.get(day, 0) + n
    return CanonicalCalendar(activity_by_day=by_day, total_active_days=to_opt_int(total_active_days))


def _solved(total: Any, easy: Any, medium: Any, hard: Any, submissions: Any, accepted: Any) -> CanonicalSolvedStats:
    stats = CanonicalSolvedStats(
        total_solved=to_int(total),
        easy_solved=to_int(easy),
        medium_solved=to_int(medium),
        hard_solved=to_int(hard),
        total_submissions=to_int(submissions),
        accepted_submissions=to_int(accepted),
    )
    if not stats.is_consistent:
        logger.warning(
            "Solved counts disagree: total=%d easy+medium+hard=%d",
            stats.total_solved,
            stats.easy_solved + stats.medium_solved + stats.hard_solved,
        )
    return stats


# ----------------------------------------------------------------------------
# alfa
# ----------------------------------------------------------------------------

def _alfa_profile(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalProfile:
    nested = raw.get("profile") if isinstance(raw.get("profile"), dict) else {}
    username = _opt_str(raw.get("username"))
    rank = raw.get("ranking", raw.get("globalRank", nested.get("ranking")))
    if not username and rank is None:
        raise MalformedResponse("profile has neither username nor ranking")
    username = username or str(params.get("username", ""))
    return CanonicalProfile(
        provider_username=username,
        display_name=_opt_str(raw.get("name") or nested.get("realName")) or username,
        avatar_url=_opt_str(raw.get("avatar") or nested.get("userAvatar")),
        global_rank=to_opt_int(rank),
        reputation=to_opt_int(raw.get("reputation", nested.get("reputation"))),
        country=_opt_str(raw.get("country") or nested.get("countryName")),
        company=_opt_str(raw.get("company") or nested.get("company")),
        school=_opt_str(raw.get("school") or nested.get("school")),
        external_links=_links(raw.get("gitHub"), raw.get("linkedIN"), raw.get("twitter"), raw.get("website")),
    )


def _alfa_solved(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalSolvedStats:
    if "solvedProblem" not in raw and "easySolved" not in raw:
        raise MalformedResponse("solved payload lacks solvedProblem/easySolved")
    return _solved(
        raw.get("solvedProblem"),
        raw.get("easySolved"),
        raw.get("mediumSolved"),
        raw.get("hardSolved"),
        _difficulty_entry(raw.get("totalSubmissionNum"), "All", "submissions"),
        _difficulty_entry(raw.get("acSubmissionNum"), "All", "submissions"),
    )


def _alfa_submissions(raw: dict[str, Any], params: dict[str, Any]) -> tuple[CanonicalSubmission, ...]:
    rows = raw.get("submission")
    if not isinstance(rows, list):
        raise MalformedResponse("submission list missing")
    return _submission_rows(rows, params.get("limit"))


def _alfa_calendar(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalCalendar:
    if "submissionCalendar" not in raw:
        raise MalformedResponse("submissionCalendar missing")
    return calendar_from_raw(raw.get("submissionCalendar"), raw.get("totalActiveDays"))


def _alfa_contest(raw: dict[str, Any], params: dict[str, Any]) -> Optional[ContestInfo]:
    attended = to_opt_int(raw.get("contestAttend"))
    rating = to_opt_float(raw.get("contestRating"))
    if attended is None and rating is None:
        # user never took part in a rated contest
        return None
    badge = raw.get("contestBadges")
    return ContestInfo(
        attended=attended or 0,
        rating=rating,
        global_ranking=to_opt_int(raw.get("contestGlobalRanking")),
        total_participants=to_opt_int(raw.get("totalParticipants")),
        top_percentage=to_opt_float(raw.get("contestTopPercentage")),
        badge=_opt_str(badge.get("name")) if isinstance(badge, dict) else _opt_str(badge),
    )


def _alfa_badges(raw: dict[str, Any], params: dict[str, Any]) -> tuple[CanonicalBadge, ...]:
    badges = []
    for row in raw.get("badges") or []:
        if not isinstance(row, dict):
            continue
        badges.append(
            CanonicalBadge(
                id=str(row.get("id", "")),
                display_name=str(row.get("displayName") or row.get("name") or ""),
                icon=_opt_str(row.get("icon")),
            )
        )
    return tuple(badges)


def _alfa_daily(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalDailyProblem:
    question = raw.get("question")
    if isinstance(question, dict):
        # {date, link, question: {...}} layout
        src, content = question, question.get("content")
    else:
        # flat layout; "question" holds the HTML statement
        src, content = raw, question
    title = _opt_str(src.get("title") or src.get("questionTitle"))
    slug = _opt_str(src.get("titleSlug"))
    if not title or not slug:
        raise MalformedResponse("daily problem lacks title/titleSlug")
    link = _opt_str(raw.get("link") or raw.get("questionLink")) or f"https://leetcode.com/problems/{slug}/"
    if link.startswith("/"):
        link = "https://leetcode.com" + link
    return CanonicalDailyProblem(
        date=str(raw.get("date") or ""),
        link=link,
        title=title,
        title_slug=slug,
        difficulty=str(src.get("difficulty") or ""),
        content=_opt_str(content),
        example_testcases=_opt_str(src.get("exampleTestcases")),
        topic_tags=_tag_names(src.get("topicTags")),
    )


def _alfa_problems(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalProblemPage:
    rows = raw.get("problemsetQuestionList")
    if not isinstance(rows, list):
        raise MalformedResponse("problemsetQuestionList missing")
    problems = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        problems.append(
            CanonicalProblem(
                frontend_id=str(row.get("frontendQuestionId") or row.get("questionFrontendId") or ""),
                title=str(row.get("title") or ""),
                title_slug=str(row.get("titleSlug") or ""),
                difficulty=str(row.get("difficulty") or ""),
                acceptance_rate=to_opt_float(row.get("acRate")),
                paid_only=bool(row.get("isPaidOnly", row.get("paidOnly", False))),
                topic_tags=_tag_names(row.get("topicTags")),
            )
        )
    return CanonicalProblemPage(
        total_questions=to_int(raw.get("totalQuestions"), default=len(problems)),
        problems=tuple(problems),
    )


# ----------------------------------------------------------------------------
# faisal
# ----------------------------------------------------------------------------

def _faisal_require_bundle(raw: dict[str, Any]) -> None:
    if "totalSolved" not in raw:
        raise MalformedResponse("bundle lacks totalSolved")


def _faisal_profile(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalProfile:
    _faisal_require_bundle(raw)
    username = str(params.get("username", ""))
    return CanonicalProfile(
        provider_username=username,
        display_name=username,
        global_rank=to_opt_int(raw.get("ranking", raw.get("globalRank"))),
        reputation=to_opt_int(raw.get("reputation")),
    )


def _faisal_solved(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalSolvedStats:
    _faisal_require_bundle(raw)
    matched = raw.get("matchedUserStats") if isinstance(raw.get("matchedUserStats"), dict) else {}
    return _solved(
        raw.get("totalSolved"),
        raw.get("easySolved"),
        raw.get("mediumSolved"),
        raw.get("hardSolved"),
        _difficulty_entry(raw.get("totalSubmissions"), "All", "submissions"),
        _difficulty_entry(matched.get("acSubmissionNum"), "All", "submissions"),
    )


def _faisal_submissions(raw: dict[str, Any], params: dict[str, Any]) -> tuple[CanonicalSubmission, ...]:
    _faisal_require_bundle(raw)
    return _submission_rows(raw.get("recentSubmissions") or [], params.get("limit"))


def _faisal_calendar(raw: dict[str, Any], params: dict[str, Any]) -> CanonicalCalendar:
    _faisal_require_bundle(raw)
    return calendar_from_raw(raw.get("submissionCalendar"), raw.get("totalActiveDays"))


# ----------------------------------------------------------------------------
# Dispatch
# ----------------------------------------------------------------------------

Mapper = Callable[[dict[str, Any], dict[str, Any]], Any]

NORMALIZERS: dict[tuple[str, str], Mapper] = {
    ("alfa", "profile"): _alfa_profile,
    ("alfa", "solved_stats"): _alfa_solved,
    ("alfa", "submissions"): _alfa_submissions,
    ("alfa", "accepted_submissions"): _alfa_submissions,
    ("alfa", "calendar"): _alfa_calendar,
    ("alfa", "contest"): _alfa_contest,
    ("alfa", "badges"): _alfa_badges,
    ("alfa", "daily_problem"): _alfa_daily,
    ("alfa", "problems"): _alfa_problems,
    ("faisal", "profile"): _faisal_profile,
    ("faisal", "solved_stats"): _faisal_solved,
    ("faisal", "submissions"): _faisal_submissions,
    ("faisal", "calendar"): _faisal_calendar,
}


def normalize(tagged: TaggedResponse) -> Any:
    """Map *tagged* onto its canonical entity.

    Raises ``MalformedResponse`` (tagged with provider and operation) when the
    payload cannot be mapped.
    """

    mapper = NORMALIZERS.get((tagged.provider, tagged.operation))
    if mapper is None:
        raise UnsupportedOperation("no normaliser registered", tagged.provider, tagged.operation)
    raw = _require_dict(tagged.raw, tagged)
    try:
        return mapper(raw, tagged.params)
    except MalformedResponse as exc:
        exc.provider = exc.provider or tagged.provider
        exc.operation = exc.operation or tagged.operation
        raise
    except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as exc:
        raise MalformedResponse(f"cannot map payload: {exc}", tagged.provider, tagged.operation) from exc


__all__ = [
    "normalize",
    "calendar_from_raw",
    "to_int",
    "to_opt_int",
    "to_opt_float",
    "to_epoch_seconds",
    "NORMALIZERS",
]
