"""Primary provider: the public ``alfa-leetcode-api`` mirror.

Endpoint layout (all GET, JSON):

    /<username>                       profile
    /<username>/solved                solved counts per difficulty
    /<username>/submission?limit=N    recent submissions
    /<username>/acSubmission?limit=N  recent accepted submissions
    /<username>/calendar              submission calendar (JSON *string*)
    /<username>/contest               contest ranking summary
    /<username>/badges                earned badges
    /daily                            question of the day
    /problems?limit&skip&tags&difficulty

The mirror is hosted on a free tier and throttles aggressively; throttled
calls come back as HTTP 200 with a plain-text "Too many request" body, which
``ProviderClient._decode`` turns into ``RateLimited``.
"""

from __future__ import annotations

import os
from typing import Any, Optional, Sequence
from urllib.parse import quote

from .base import ProviderClient, user_path

ALFA_API_URL = os.getenv("CB_ALFA_URL", "https://alfa-leetcode-api.onrender.com")


class AlfaClient(ProviderClient):
    name = "alfa"
    default_base_url = ALFA_API_URL
    operations = (
        "profile",
        "solved_stats",
        "submissions",
        "accepted_submissions",
        "calendar",
        "contest",
        "badges",
        "daily_problem",
        "problems",
    )

    async def profile(self, username: str) -> Any:
        return await self.get_json(user_path(username), "profile")

    async def solved_stats(self, username: str) -> Any:
        return await self.get_json(f"{user_path(username)}/solved", "solved_stats")

    async def submissions(self, username: str, limit: int = 20) -> Any:
        return await self.get_json(f"{user_path(username)}/submission", "submissions", {"limit": limit})

    async def accepted_submissions(self, username: str, limit: int = 20) -> Any:
        return await self.get_json(f"{user_path(username)}/acSubmission", "accepted_submissions", {"limit": limit})

    async def calendar(self, username: str) -> Any:
        return await self.get_json(f"{user_path(username)}/calendar", "calendar")

    async def contest(self, username: str) -> Any:
        return await self.get_json(f"{user_path(username)}/contest", "contest")

    async def badges(self, username: str) -> Any:
        return await self.get_json(f"{user_path(username)}/badges", "badges")

    async def daily_problem(self) -> Any:
        return await self.get_json("/daily", "daily_problem")

    async def problems(
        self,
        limit: int = 20,
        skip: int = 0,
        tags: Sequence[str] = (),
        difficulty: Optional[str] = None,
    ) -> Any:
        # Tags are joined with a literal "+", so the query string is built by hand.
        path = f"/problems?limit={int(limit)}&skip={int(skip)}"
        if tags:
            path += "&tags=" + "+".join(quote(t, safe="") for t in tags)
        if difficulty:
            path += f"&difficulty={quote(difficulty.upper(), safe='')}"
        return await self.get_json(path, "problems")


__all__ = ["AlfaClient", "ALFA_API_URL"]
