"""Race scoring engine.

Scores every horse in a race across the fourteen categories, applies the
odds-derived overlay and ranks the field. Scratched horses keep a sentinel
score and no rank. A failing category falls back to its default; nothing
raised while scoring escapes ``score_race``.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Sequence

from furlong.models import CategoryScores, HorseEntry, ParsedRace, RaceHeader, Score, ScoredHorse
from furlong.parser.domain import parse_odds, parse_track_condition
from furlong.patterns.engine import EvidenceProvider, NullEvidence, get_analyzer
from furlong.scoring.categories import (
    CATEGORY_DEFAULTS,
    CATEGORY_FUNCTIONS,
    CATEGORY_LIMITS,
    MAX_BASE_SCORE,
    RaceContext,
)
from furlong.scoring.overlay import MAX_OVERLAY, OverlayResult, analyze_overlays
from furlong.scoring.pace import FieldStrength, PaceScenario, analyze_field_strength, analyze_pace_scenario

logger = logging.getLogger(__name__)

MAX_SCORE = MAX_BASE_SCORE + MAX_OVERLAY  # 376

# (minimum total, tier) highest first
TIER_BREAKPOINTS = [
    (200.0, "Elite"),
    (180.0, "Strong"),
    (160.0, "Good"),
    (140.0, "Fair"),
]
SCRATCHED_TIER = "Scratched"

SPARSE_MIN_FIGURES = 3
SPARSE_MIN_PPS = 3

OddsLookup = Callable[[int, str], str]
ScratchPredicate = Callable[[int], bool]


@dataclass
class RaceScoreResult:
    """Scored field (input order) plus race-level analytics."""

    header: RaceHeader
    horses: list[ScoredHorse] = field(default_factory=list)
    pace: PaceScenario = field(default_factory=PaceScenario)
    field_strength: FieldStrength = field(default_factory=FieldStrength)
    overlays: dict[int, OverlayResult] = field(default_factory=dict)  # by horse index
    warnings: list[str] = field(default_factory=list)

    @property
    def ranked(self) -> list[ScoredHorse]:
        return sorted((s for s in self.horses if s.rank is not None), key=lambda s: s.rank)

    @property
    def scratched(self) -> list[ScoredHorse]:
        return [s for s in self.horses if s.is_scratched]

    def top(self, n: int = 3) -> list[ScoredHorse]:
        return self.ranked[:n]


def get_tier(total: float) -> str:
    for minimum, tier in TIER_BREAKPOINTS:
        if total >= minimum:
            return tier
    return "Weak"


def data_completeness(horse: HorseEntry) -> str:
    if len(horse.speed_figures) < SPARSE_MIN_FIGURES or len(horse.past_performances) < SPARSE_MIN_PPS:
        return "sparse"
    return "complete"


def _finite(value: float, default: float = 0.0) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def scratched_score() -> Score:
    return Score(
        categories=CategoryScores(),
        base_score=0.0,
        overlay_score=0.0,
        total=0.0,
        tier=SCRATCHED_TIER,
        data_completeness="sparse",
        is_scratched=True,
    )


def compute_categories(horse: HorseEntry, ctx: RaceContext) -> tuple[CategoryScores, tuple[str, ...]]:
    """Every category, each clamped to its limit; failures use the default."""
    values: dict[str, float] = {}
    fallbacks = []
    for name, fn in CATEGORY_FUNCTIONS.items():
        try:
            raw = fn(horse, ctx)
            if raw is None or not math.isfinite(raw):
                raise ValueError(f"non-finite result {raw!r}")
        except Exception as e:
            logger.warning("Category %s failed for %s; using default %.1f: %s",
                           name, horse.horse_name or f"#{horse.program_number}", CATEGORY_DEFAULTS[name], e)
            raw = CATEGORY_DEFAULTS[name]
            fallbacks.append(name)
        values[name] = round(_clamp(float(raw), 0.0, CATEGORY_LIMITS[name]), 2)
    return CategoryScores(**values), tuple(fallbacks)


def rank_scored(scored: Sequence[ScoredHorse]) -> list[ScoredHorse]:
    """Assign ranks: total desc, then base score desc, then post position asc.

    Returns the horses in their original order; scratched horses keep rank None.
    """
    order = sorted(
        (s for s in scored if not s.is_scratched),
        key=lambda s: (-s.score.total, -s.score.base_score, s.horse.post_position, s.index),
    )
    ranks = {s.index: n for n, s in enumerate(order, start=1)}
    return [replace(s, rank=ranks.get(s.index)) for s in scored]


def _safe_scratched(is_scratched: Optional[ScratchPredicate], index: int, horse: HorseEntry) -> bool:
    if is_scratched is None:
        return horse.is_scratched
    try:
        return bool(is_scratched(index))
    except Exception as e:
        logger.warning("Scratch lookup failed for horse %d: %s", index, e)
        return horse.is_scratched


def _safe_odds(odds_lookup: Optional[OddsLookup], index: int, horse: HorseEntry) -> float:
    default = horse.morning_line_odds
    if odds_lookup is None:
        return parse_odds(default)[1]
    try:
        return parse_odds(odds_lookup(index, default) or "")[1]
    except Exception as e:
        logger.warning("Odds lookup failed for horse %d: %s", index, e)
        return parse_odds(default)[1]


def _resolve_evidence(evidence: Optional[EvidenceProvider], header: RaceHeader,
                      active: list[HorseEntry]) -> EvidenceProvider:
    if evidence is not None:
        return evidence
    try:
        return get_analyzer().for_race(header.key, active)
    except Exception as e:
        logger.warning("Pattern analysis unavailable for %s: %s", header.key, e)
        return NullEvidence()


def score_race(
    horses: Sequence[HorseEntry],
    header: RaceHeader,
    odds_lookup: Optional[OddsLookup] = None,
    is_scratched: Optional[ScratchPredicate] = None,
    track_condition: Optional[str] = None,
    evidence: Optional[EvidenceProvider] = None,
) -> RaceScoreResult:
    """Score and rank one race.

    Args:
        horses: Entries in the race, in any order.
        header: The race header.
        odds_lookup: ``(index, default_odds) -> odds string``; defaults to the
            morning line.
        is_scratched: ``index -> bool``; defaults to ``HorseEntry.is_scratched``.
        track_condition: Current condition; defaults to the header's.
        evidence: Connection evidence provider; defaults to the shared
            pattern analyzer for this race.
    """
    result = RaceScoreResult(header=header)
    condition = parse_track_condition(track_condition) if track_condition else header.track_condition

    scratched = [_safe_scratched(is_scratched, i, h) for i, h in enumerate(horses)]
    active = [h for h, s in zip(horses, scratched) if not s]

    try:
        result.pace = analyze_pace_scenario(active)
    except Exception as e:
        logger.warning("Pace analysis failed for %s: %s", header.key, e)

    ctx = RaceContext(
        header=header,
        horses=active,
        track_condition=condition,
        evidence=_resolve_evidence(evidence, header, active),
        pace=result.pace,
    )

    # Pass 1: categories and base scores
    partial: list[tuple[int, HorseEntry, CategoryScores, float, tuple[str, ...]]] = []
    for index, horse in enumerate(horses):
        if scratched[index]:
            continue
        categories, fallbacks = compute_categories(horse, ctx)
        base = _clamp(_finite(categories.total()), 0.0, MAX_BASE_SCORE)
        partial.append((index, horse, categories, base, fallbacks))

    # Pass 2: overlay across the active field
    ratios = [_safe_odds(odds_lookup, index, horse) for index, horse, *_ in partial]
    if partial and not any(r > 0 for r in ratios):
        result.warnings.append(f"Race {header.race_number}: no odds available; overlay not applied")
    overlays = analyze_overlays([p[3] for p in partial], ratios)

    scores: dict[int, Score] = {}
    for (index, horse, categories, base, fallbacks), overlay in zip(partial, overlays):
        result.overlays[index] = overlay
        overlay_score = _clamp(_finite(overlay.points), -MAX_OVERLAY, MAX_OVERLAY)
        total = _clamp(_finite(base + overlay_score), 0.0, MAX_SCORE)
        scores[index] = Score(
            categories=categories,
            base_score=round(base, 2),
            overlay_score=round(overlay_score, 2),
            total=round(total, 2),
            tier=get_tier(total),
            data_completeness=data_completeness(horse),
            fallbacks=fallbacks,
        )

    scored = [
        ScoredHorse(horse=horse, index=i, score=scores.get(i) or scratched_score())
        for i, horse in enumerate(horses)
    ]
    result.horses = rank_scored(scored)
    result.field_strength = analyze_field_strength(result.horses)

    leader = result.top(1)
    logger.info("Scored %s: %d runners, %d scratched, top %s (%.1f)",
                header.key, len(active), len(horses) - len(active),
                leader[0].horse.horse_name if leader else "-", leader[0].score.total if leader else 0.0)
    return result


def score_parsed_race(race: ParsedRace, **kwargs) -> RaceScoreResult:
    """``score_race`` over a ParsedRace's horses and header."""
    return score_race(race.horses, race.header, **kwargs)
