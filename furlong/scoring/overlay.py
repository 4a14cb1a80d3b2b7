"""Odds-derived overlay adjustment.

Model win probabilities come from a softmax over the field's base scores;
market probabilities come from the odds with the overround stripped. The
overlay is the relative gap between the two, turned into points and capped
at +/-MAX_OVERLAY.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from furlong.parser.domain import odds_to_probability

logger = logging.getLogger(__name__)

MAX_OVERLAY = 40.0
OVERLAY_TOLERANCE = 50.0  # outer bound consumers may assert; never reached after capping
MAX_POSITIVE_POINTS = 25.0
MAX_NEGATIVE_POINTS = -20.0
POINTS_PER_OVERLAY_PCT = 0.25

# Softmax settings
SCORE_SCALE = 20.0        # base-score points per e-fold of probability
MIN_PROBABILITY = 0.005
MAX_PROBABILITY = 0.95

# Overlay % thresholds
STRONG_OVERLAY = 15.0
MODERATE_OVERLAY = 8.0
SLIGHT_OVERLAY = 3.0
UNDERLAY = -3.0


@dataclass
class OverlayResult:
    model_probability: float
    market_probability: Optional[float]  # None when the horse has no odds
    overlay_pct: float = 0.0
    points: float = 0.0
    value: str = "no_odds"

    @property
    def edge(self) -> float:
        if self.market_probability is None:
            return 0.0
        return self.model_probability - self.market_probability


def model_probabilities(base_scores: Sequence[float]) -> list[float]:
    """Softmax over base scores, floored and capped, summing to 1."""
    if not base_scores:
        return []
    top = max(base_scores)
    weights = [math.exp((s - top) / SCORE_SCALE) for s in base_scores]
    total = sum(weights)
    probs = [w / total for w in weights]
    probs = [min(MAX_PROBABILITY, max(MIN_PROBABILITY, p)) for p in probs]
    total = sum(probs)
    return [p / total for p in probs]


def market_probabilities(ratios: Sequence[float]) -> list[Optional[float]]:
    """Implied probabilities normalised by the overround; None without odds."""
    implied = [odds_to_probability(r) for r in ratios]
    overround = sum(implied)
    if overround <= 0:
        return [None] * len(ratios)
    return [p / overround if p > 0 else None for p in implied]


def classify_value(overlay_pct: float) -> str:
    if overlay_pct >= STRONG_OVERLAY:
        return "strong_overlay"
    if overlay_pct >= MODERATE_OVERLAY:
        return "moderate_overlay"
    if overlay_pct >= SLIGHT_OVERLAY:
        return "slight_overlay"
    if overlay_pct > UNDERLAY:
        return "fair_price"
    return "underlay"


def overlay_points(model_probability: float, market_probability: Optional[float]) -> tuple[float, float]:
    """(overlay %, points) for one runner; (0, 0) without a market price."""
    if not market_probability or market_probability <= 0:
        return 0.0, 0.0
    pct = (model_probability / market_probability - 1.0) * 100.0
    if not math.isfinite(pct):
        return 0.0, 0.0
    points = max(MAX_NEGATIVE_POINTS, min(MAX_POSITIVE_POINTS, pct * POINTS_PER_OVERLAY_PCT))
    return round(pct, 1), max(-MAX_OVERLAY, min(MAX_OVERLAY, points))


def analyze_overlays(base_scores: Sequence[float], ratios: Sequence[float]) -> list[OverlayResult]:
    """One OverlayResult per runner, in input order."""
    model = model_probabilities(base_scores)
    market = market_probabilities(ratios)
    results = []
    for m, k in zip(model, market):
        pct, points = overlay_points(m, k)
        results.append(OverlayResult(
            model_probability=round(m, 4),
            market_probability=round(k, 4) if k is not None else None,
            overlay_pct=pct,
            points=round(points, 2),
            value=classify_value(pct) if k is not None else "no_odds",
        ))
    return results
