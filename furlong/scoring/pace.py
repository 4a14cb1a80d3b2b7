"""Race-level analytics: pace scenario and field strength.

The pace scenario feeds the pace category; field strength is computed from
the finished scores and handed to downstream consumers alongside them.
"""

import logging
import statistics
from dataclasses import dataclass, field
from typing import Optional, Sequence

from furlong.models import HorseEntry, ScoredHorse

logger = logging.getLogger(__name__)

PACE_SCENARIOS = ("hot_pace", "contested_pace", "lone_speed", "slow_pace", "moderate_pace")

# Field-strength gaps (points between first and second)
DOMINANT_GAP = 25.0
SEPARATED_GAP = 12.0
WIDE_OPEN_STDEV = 12.0


@dataclass
class PaceScenario:
    scenario: str = "moderate_pace"
    early: int = 0          # E
    pressers: int = 0       # E/P and P
    closers: int = 0        # S and C
    unknown: int = 0
    leaders: list[str] = field(default_factory=list)

    @property
    def description(self) -> str:
        return {
            "hot_pace": "Several need the lead; a fast early pace should set up for closers",
            "contested_pace": "Speed will be contested up front",
            "lone_speed": f"Lone speed: {', '.join(self.leaders) or 'one runner'} may get loose",
            "slow_pace": "No confirmed speed; a slow pace favours anything forward",
            "moderate_pace": "A fair, honest pace",
        }.get(self.scenario, "")


def _style_of(horse: HorseEntry) -> str:
    return horse.running_style or "U"


def analyze_pace_scenario(horses: Sequence[HorseEntry]) -> PaceScenario:
    """Classify the likely early pace from the field's running styles."""
    result = PaceScenario()
    for horse in horses:
        style = _style_of(horse)
        if style == "E":
            result.early += 1
            result.leaders.append(horse.horse_name or f"#{horse.program_number}")
        elif style in ("E/P", "P"):
            result.pressers += 1
        elif style in ("S", "C"):
            result.closers += 1
        else:
            result.unknown += 1

    early_pressers = sum(1 for h in horses if _style_of(h) == "E/P")
    if result.early >= 3 or result.early + early_pressers >= 5:
        result.scenario = "hot_pace"
    elif result.early == 2 or (result.early == 1 and early_pressers >= 2):
        result.scenario = "contested_pace"
    elif result.early == 1:
        result.scenario = "lone_speed"
    elif early_pressers <= 1:
        result.scenario = "slow_pace"
    else:
        result.scenario = "moderate_pace"

    if not result.leaders:
        result.leaders = [h.horse_name or f"#{h.program_number}" for h in horses if _style_of(h) == "E/P"]
    logger.debug("Pace: %s (E=%d P=%d C=%d U=%d)", result.scenario, result.early,
                 result.pressers, result.closers, result.unknown)
    return result


# ──────────────────────────────────────────────
# Field strength
# ──────────────────────────────────────────────

@dataclass
class FieldStrength:
    runners: int = 0
    top_score: float = 0.0
    top_horse: Optional[str] = None
    gap: float = 0.0          # first minus second
    stdev: float = 0.0
    label: str = "wide_open"  # dominant, separated, competitive, wide_open


def analyze_field_strength(scored: Sequence[ScoredHorse]) -> FieldStrength:
    """Spread of totals across the non-scratched runners."""
    active = sorted(
        (s for s in scored if not s.is_scratched),
        key=lambda s: (s.rank if s.rank is not None else float("inf"),
                       -s.score.total, -s.score.base_score, s.horse.post_position),
    )
    result = FieldStrength(runners=len(active))
    if not active:
        return result

    totals = [s.score.total for s in active]
    result.top_score = totals[0]
    result.top_horse = active[0].horse.horse_name or f"#{active[0].horse.program_number}"
    if len(totals) == 1:
        result.gap = totals[0]
        result.label = "dominant"
        return result

    result.gap = round(totals[0] - totals[1], 1)
    result.stdev = round(statistics.pstdev(totals), 1)
    if result.gap >= DOMINANT_GAP:
        result.label = "dominant"
    elif result.gap >= SEPARATED_GAP:
        result.label = "separated"
    elif result.stdev <= WIDE_OPEN_STDEV:
        result.label = "wide_open"
    else:
        result.label = "competitive"
    return result
