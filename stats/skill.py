"""Coarse skill tag derived from solved counts."""

from __future__ import annotations

from .models import CanonicalSolvedStats, SkillLevel

ADVANCED_TOTAL = 500
ADVANCED_HARD = 50
INTERMEDIATE_TOTAL = 100
INTERMEDIATE_MEDIUM = 30


def classify(stats: CanonicalSolvedStats) -> SkillLevel:
    """Return the skill level for *stats*; advanced wins when both tiers match."""

    if stats.total_solved >= ADVANCED_TOTAL or stats.hard_solved >= ADVANCED_HARD:
        return SkillLevel.ADVANCED
    if stats.total_solved >= INTERMEDIATE_TOTAL or stats.medium_solved >= INTERMEDIATE_MEDIUM:
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER


__all__ = ["classify"]
