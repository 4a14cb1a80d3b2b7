"""Handicapping score engine: categories, overlay and race analytics."""

from furlong.scoring.categories import CATEGORY_DEFAULTS, CATEGORY_LIMITS, MAX_BASE_SCORE
from furlong.scoring.engine import MAX_SCORE, RaceScoreResult, get_tier, score_parsed_race, score_race
from furlong.scoring.overlay import MAX_OVERLAY

__all__ = [
    "CATEGORY_DEFAULTS",
    "CATEGORY_LIMITS",
    "MAX_BASE_SCORE",
    "MAX_OVERLAY",
    "MAX_SCORE",
    "RaceScoreResult",
    "get_tier",
    "score_parsed_race",
    "score_race",
]
