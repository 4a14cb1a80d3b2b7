"""Per-category scoring functions.

Fourteen independent categories, each bounded by ``CATEGORY_LIMITS`` and each
with a documented default used when its computation raises. Every function
takes ``(horse, ctx)`` and returns a float; the engine owns clamping,
fallback and summation.

Category maxima:
  connections 24, post position 12, speed/class 140 (speed 105 + class 35),
  form 50, equipment 8, pace 45, distance/surface 20, trainer patterns 8,
  combo patterns 10, track specialist 10, trainer surface/distance 6,
  weight 1, age 1, sire 1.  Total 336.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from furlong.models import HorseEntry, RaceHeader, StatsRecord
from furlong.parser.domain import class_level, distance_category, is_wet_condition
from furlong.parser.extractors import days_between
from furlong.patterns.engine import (
    EvidenceProvider,
    NullEvidence,
    classify_trainer_pattern,
    normalize_name,
    pattern_credit,
)
from furlong.scoring.pace import PaceScenario

logger = logging.getLogger(__name__)

CATEGORY_LIMITS = {
    "connections": 24.0,
    "post_position": 12.0,
    "speed_class": 140.0,
    "form": 50.0,
    "equipment": 8.0,
    "pace": 45.0,
    "distance_surface": 20.0,
    "trainer_patterns": 8.0,
    "combo_patterns": 10.0,
    "track_specialist": 10.0,
    "trainer_surface_distance": 6.0,
    "weight": 1.0,
    "age": 1.0,
    "sire": 1.0,
}
MAX_BASE_SCORE = sum(CATEGORY_LIMITS.values())  # 336

# Used when a category's computation raises
CATEGORY_DEFAULTS = {
    "connections": 8.0,
    "post_position": 6.0,
    "speed_class": 50.0,
    "form": 15.0,
    "equipment": 2.0,
    "pace": 15.0,
    "distance_surface": 0.0,
    "trainer_patterns": 0.0,
    "combo_patterns": 0.0,
    "track_specialist": 0.0,
    "trainer_surface_distance": 3.0,
    "weight": 0.0,
    "age": 0.0,
    "sire": 0.0,
}

LAYOFF_DAYS = 60
FRESHENING_DAYS = 30
RECENT_WORK_DAYS = 14


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class RaceContext:
    """Everything a category needs to know about today's race."""

    header: RaceHeader
    horses: list[HorseEntry] = field(default_factory=list)  # non-scratched
    track_condition: str = "fast"
    evidence: EvidenceProvider = field(default_factory=NullEvidence)
    pace: PaceScenario = field(default_factory=PaceScenario)

    @property
    def field_size(self) -> int:
        return len(self.horses)

    @property
    def is_sprint(self) -> bool:
        return self.header.is_sprint

    @property
    def is_turf(self) -> bool:
        return self.header.surface == "turf"

    @property
    def is_wet(self) -> bool:
        return is_wet_condition(self.track_condition)

    @property
    def distance_category(self) -> str:
        return distance_category(self.header.distance_furlongs)


def _days_before_race(date: str, ctx: RaceContext) -> Optional[int]:
    return days_between(date, ctx.header.race_date)


def _has_recent_work(horse: HorseEntry, ctx: RaceContext, days: int = RECENT_WORK_DAYS) -> bool:
    for work in horse.workouts:
        gap = _days_before_race(work.date, ctx)
        if gap is not None and 0 <= gap <= days:
            return True
    return False


def _has_recent_bullet(horse: HorseEntry, recent: int = 3) -> bool:
    return any(w.is_bullet for w in horse.workouts[:recent])


def _last_class_change(horse: HorseEntry, ctx: RaceContext) -> int:
    """Class levels dropped since the last start (negative for a rise)."""
    if not horse.past_performances:
        return 0
    return class_level(horse.past_performances[0].classification) - class_level(ctx.header.classification)


# ──────────────────────────────────────────────
# Connections (24)
# ──────────────────────────────────────────────

TRAINER_TIER_POINTS = {
    "elite": 14.0, "strong": 11.0, "above_average": 9.0, "average": 7.0,
    "below_average": 4.0, "insufficient": 5.0,
}
JOCKEY_TIER_POINTS = {
    "elite": 8.0, "strong": 6.0, "average": 4.0, "below_average": 2.0, "insufficient": 3.0,
}
PARTNERSHIP_TIER_POINTS = {"elite": 2.0, "strong": 1.5, "good": 1.0, "regular": 0.5}


def score_connections(horse: HorseEntry, ctx: RaceContext) -> float:
    """Trainer (14) + jockey (8) + partnership (2).

    Below the sample gates the fixed "insufficient" points apply whatever the
    observed rate.
    """
    ev = ctx.evidence.evidence(horse.trainer_name, horse.jockey_name, ctx.header.track_code,
                               ctx.header.surface, ctx.distance_category)
    return (
        TRAINER_TIER_POINTS.get(ev.trainer.tier, TRAINER_TIER_POINTS["insufficient"])
        + JOCKEY_TIER_POINTS.get(ev.jockey.tier, JOCKEY_TIER_POINTS["insufficient"])
        + PARTNERSHIP_TIER_POINTS.get(ev.partnership.tier, 0.0)
    )


# ──────────────────────────────────────────────
# Post position (12)
# ──────────────────────────────────────────────

SPRINT_POST_TIERS = [("ideal", (4, 5)), ("good", (3, 6)), ("neutral", (2, 7)), ("poor", (1, 8))]
ROUTE_POST_TIERS = [("ideal", (4, 5)), ("good", (2, 3, 6)), ("neutral", (1, 7)), ("poor", (8, 9))]
POST_TIER_POINTS = {"ideal": 10.8, "good": 8.4, "neutral": 6.4, "poor": 4.4, "terrible": 2.0}
SMALL_FIELD = 6
INSIDE_SPEED_BONUS = 1.2


def post_tier(post: int, is_sprint: bool) -> str:
    for tier, posts in (SPRINT_POST_TIERS if is_sprint else ROUTE_POST_TIERS):
        if post in posts:
            return tier
    return "terrible"


def score_post_position(horse: HorseEntry, ctx: RaceContext) -> float:
    points = POST_TIER_POINTS[post_tier(horse.post_position, ctx.is_sprint)]
    # An outside draw costs little when there are only a handful of rivals
    if ctx.field_size <= SMALL_FIELD:
        points = max(points, POST_TIER_POINTS["neutral"])
    if ctx.is_sprint and horse.running_style in ("E", "E/P") and 1 <= horse.post_position <= 3:
        points += INSIDE_SPEED_BONUS
    return points


# ──────────────────────────────────────────────
# Speed / class (105 + 35)
# ──────────────────────────────────────────────

SPEED_MAX = 105.0
CLASS_MAX = 35.0
NO_FIGURE_SPEED_POINTS = 30.0
NO_PP_CLASS_POINTS = 12.0

# Par figure a typical winner runs at each level
CLASS_PAR_FIGURES = {
    "maiden-claiming": 65,
    "maiden": 72,
    "claiming": 75,
    "starter-allowance": 78,
    "allowance": 82,
    "allowance-optional-claiming": 85,
    "handicap": 88,
    "stakes": 90,
    "stakes-listed": 93,
    "stakes-graded-3": 96,
    "stakes-graded-2": 100,
    "stakes-graded-1": 105,
    "unknown": 75,
}


def speed_rating(figures: list[int]) -> Optional[float]:
    """0.6 x best + 0.4 x average of the last three figures."""
    recent = figures[:3]
    if not recent:
        return None
    return 0.6 * max(recent) + 0.4 * (sum(recent) / len(recent))


def score_speed(horse: HorseEntry, ctx: RaceContext) -> float:
    figures = horse.speed_figures
    if not figures and horse.best_speed_figure:
        figures = [horse.best_speed_figure]
    rating = speed_rating(figures)
    if rating is None:
        return NO_FIGURE_SPEED_POINTS
    par = CLASS_PAR_FIGURES.get(ctx.header.classification, CLASS_PAR_FIGURES["unknown"])
    return _clamp(60.0 + (rating - par) * 3.0, 0.0, SPEED_MAX)


def score_class(horse: HorseEntry, ctx: RaceContext) -> float:
    pps = horse.past_performances
    if not pps:
        return NO_PP_CLASS_POINTS
    today = class_level(ctx.header.classification)
    points = 15.0
    if any(class_level(pp.classification) >= today and pp.finish_position <= 3 for pp in pps):
        points += 10.0  # proven at the level
    drop = _last_class_change(horse, ctx)
    if drop >= 2:
        points += 8.0
    elif drop == 1:
        points += 6.0
    elif drop < 0:
        points -= 5.0
    if horse.lifetime.starts >= 3:
        points += min(6.0, horse.lifetime.win_rate * 20.0)
    return _clamp(points, 0.0, CLASS_MAX)


def score_speed_class(horse: HorseEntry, ctx: RaceContext) -> float:
    return score_speed(horse, ctx) + score_class(horse, ctx)


# ──────────────────────────────────────────────
# Form (25 + 15 + 10)
# ──────────────────────────────────────────────

RECENT_FORM_WEIGHTS = (0.5, 0.3, 0.2)
RECENT_FORM_MAX = 25.0
NO_PP_RECENT_FORM = 7.5


def analyze_finish(finish: int, lengths_behind: float) -> float:
    """Points (max 15) for one finish, crediting close-up placings."""
    if finish == 1:
        return 15.0
    if finish == 2:
        return 12.0 if lengths_behind <= 2 else 10.0
    if finish == 3:
        return 11.0 if lengths_behind <= 2 else 9.0
    if finish in (4, 5):
        return 8.0 if lengths_behind <= 5 else 6.0
    if 6 <= finish <= 8:
        return 4.0
    return 3.0


def score_recent_form(horse: HorseEntry) -> float:
    recent = horse.past_performances[:3]
    if not recent:
        return NO_PP_RECENT_FORM
    weights = RECENT_FORM_WEIGHTS[:len(recent)]
    weighted = sum(w * analyze_finish(pp.finish_position, pp.lengths_behind) for w, pp in zip(weights, recent))
    return weighted / sum(weights) * (RECENT_FORM_MAX / 15.0)


def score_layoff(horse: HorseEntry) -> float:
    if not horse.past_performances:
        return 5.0
    days = horse.days_since_last_race
    if days is None:
        return 10.0
    if days <= 14:
        points = 11.0
    elif days <= 45:
        points = 15.0
    elif days <= 90:
        points = 10.0
    elif days <= 180:
        points = 6.0
    else:
        points = 3.0
    if days > 45 and _has_recent_bullet(horse):
        points += 3.0
    return min(points, 15.0)


def score_consistency(horse: HorseEntry) -> float:
    streak = 0
    for pp in horse.past_performances:
        if pp.finish_position > 3:
            break
        streak += 1
    points = {0: 0.0, 1: 4.0, 2: 7.0}.get(streak, 10.0)
    if horse.lifetime.starts >= 4 and horse.lifetime.itm_rate >= 0.5:
        points += 2.0
    return min(points, 10.0)


def score_form(horse: HorseEntry, ctx: RaceContext) -> float:
    return score_recent_form(horse) + score_layoff(horse) + score_consistency(horse)


# ──────────────────────────────────────────────
# Equipment (8)
# ──────────────────────────────────────────────

def score_equipment(horse: HorseEntry, ctx: RaceContext) -> float:
    points = 2.0
    if horse.medication.first_time_lasix:
        points += 3.0
    first_time = set(horse.equipment.first_time)
    if "blinkers" in first_time:
        points += 3.0
    if horse.equipment.blinkers_off:
        points += 2.0
    points += 1.0 * len(first_time - {"blinkers"})
    return _clamp(points, 0.0, CATEGORY_LIMITS["equipment"])


# ──────────────────────────────────────────────
# Pace (45)
# ──────────────────────────────────────────────

# style -> scenario -> points
PACE_MATRIX = {
    "E":   {"hot_pace": 18, "contested_pace": 26, "lone_speed": 42, "slow_pace": 38, "moderate_pace": 32},
    "E/P": {"hot_pace": 24, "contested_pace": 28, "lone_speed": 32, "slow_pace": 34, "moderate_pace": 32},
    "P":   {"hot_pace": 32, "contested_pace": 30, "lone_speed": 26, "slow_pace": 24, "moderate_pace": 28},
    "S":   {"hot_pace": 36, "contested_pace": 32, "lone_speed": 20, "slow_pace": 18, "moderate_pace": 26},
    "C":   {"hot_pace": 38, "contested_pace": 33, "lone_speed": 18, "slow_pace": 15, "moderate_pace": 25},
}
UNKNOWN_STYLE_PACE = 15.0


def _late_pace_average(horse: HorseEntry) -> Optional[float]:
    figures = [pp.late_pace for pp in horse.past_performances[:3] if pp.late_pace is not None]
    return sum(figures) / len(figures) if figures else None


def score_pace(horse: HorseEntry, ctx: RaceContext) -> float:
    row = PACE_MATRIX.get(horse.running_style)
    if row is None:
        return UNKNOWN_STYLE_PACE
    points = float(row.get(ctx.pace.scenario, row["moderate_pace"]))

    mine = _late_pace_average(horse)
    field_avgs = [a for a in (_late_pace_average(h) for h in ctx.horses) if a is not None]
    if mine is not None and field_avgs:
        edge = mine - sum(field_avgs) / len(field_avgs)
        if edge >= 5:
            points += 3.0
        elif edge >= 2:
            points += 1.5
    return _clamp(points, 0.0, CATEGORY_LIMITS["pace"])


# ──────────────────────────────────────────────
# Distance / surface (8 + 6 + 6)
# ──────────────────────────────────────────────

TURF_MAX = 8.0
WET_MAX = 6.0
DISTANCE_MAX = 6.0
THIN_RECORD_STARTS = 3
THIN_RECORD_CREDIT = 0.6


def record_points(record: StatsRecord, max_points: float) -> float:
    """Points from a surface/distance record: 60% win rate, 40% ITM rate."""
    if record.starts <= 0:
        return 0.0
    strength = 0.6 * min(1.0, record.win_rate / 0.3) + 0.4 * min(1.0, record.itm_rate / 0.6)
    points = max_points * strength
    if record.starts < THIN_RECORD_STARTS:
        points *= THIN_RECORD_CREDIT
    return points


def score_distance_surface(horse: HorseEntry, ctx: RaceContext) -> float:
    points = record_points(horse.distance, DISTANCE_MAX)
    if ctx.is_turf:
        points += record_points(horse.turf, TURF_MAX)
    if ctx.is_wet:
        points += record_points(horse.wet, WET_MAX)
    return points


# ──────────────────────────────────────────────
# Trainer situational patterns (8)
# ──────────────────────────────────────────────

@dataclass
class TrainerPatternMatch:
    category: str
    starts: int
    win_pct: float
    tier: str
    points: float


def situational_categories(horse: HorseEntry, ctx: RaceContext) -> list[str]:
    """Trainer-statistic categories that describe today's runner."""
    cats = []
    pps = horse.past_performances
    if not pps:
        cats.append("first_time_starter")
    if horse.medication.first_time_lasix:
        cats.append("first_time_lasix")
    if "blinkers" in horse.equipment.first_time:
        cats.append("first_time_blinkers")
    if horse.equipment.blinkers_off:
        cats.append("blinkers_off")

    today = ctx.distance_category
    if pps and today != "unknown":
        last = distance_category(pps[0].distance_furlongs)
        if last == "sprint" and today == "route":
            cats.append("sprint_to_route")
        elif last == "route" and today == "sprint":
            cats.append("route_to_sprint")
    if today != "unknown":
        cats.append(f"{'turf' if ctx.is_turf else 'dirt'}_{today}")
    if ctx.is_wet:
        cats.append("wet_track")

    days = horse.days_since_last_race
    if days is not None:
        if 31 <= days <= 60:
            cats.append("days_31_60")
        elif 61 <= days <= 90:
            cats.append("days_61_90")
        elif 91 <= days <= 180:
            cats.append("days_91_180")
        elif days > 180:
            cats.append("days_181_plus")
    return cats


def match_trainer_patterns(horse: HorseEntry, ctx: RaceContext) -> list[TrainerPatternMatch]:
    matches = []
    for cat in situational_categories(horse, ctx):
        stat = horse.trainer_category_stats.get(cat)
        if stat is None or stat.starts <= 0:
            continue
        if stat.win_pct >= 25:
            base = 4.0
        elif stat.win_pct >= 18:
            base = 2.5
        else:
            base = 0.0
        matches.append(TrainerPatternMatch(
            category=cat,
            starts=stat.starts,
            win_pct=stat.win_pct,
            tier=classify_trainer_pattern(stat.starts, stat.win_pct),
            points=base * pattern_credit(stat.starts),
        ))
    return matches


def score_trainer_patterns(horse: HorseEntry, ctx: RaceContext) -> float:
    return min(CATEGORY_LIMITS["trainer_patterns"], sum(m.points for m in match_trainer_patterns(horse, ctx)))


# ──────────────────────────────────────────────
# Combination patterns (10)
# ──────────────────────────────────────────────

@dataclass
class ComboPattern:
    name: str
    points: float


def _trainer_is_hot(horse: HorseEntry) -> bool:
    meet = horse.trainer_meet
    return meet.starts >= 10 and meet.win_rate >= 0.20


def _strong_turf_trainer(horse: HorseEntry) -> bool:
    for cat in ("turf_sprint", "turf_route"):
        stat = horse.trainer_category_stats.get(cat)
        if stat and stat.starts >= 5 and stat.win_pct >= 20:
            return True
    return False


def detect_combo_patterns(horse: HorseEntry, ctx: RaceContext) -> list[ComboPattern]:
    """Angles that only mean something together."""
    combos = []
    pps = horse.past_performances
    class_drop = _last_class_change(horse, ctx) > 0
    class_rise = _last_class_change(horse, ctx) < 0
    first_blinkers = "blinkers" in horse.equipment.first_time
    days = horse.days_since_last_race
    off_layoff = days is not None and days >= LAYOFF_DAYS
    recent_work = _has_recent_work(horse, ctx)

    if class_drop and horse.medication.first_time_lasix:
        combos.append(ComboPattern("class_drop_first_lasix", 4.0))
    if class_drop and _trainer_is_hot(horse):
        combos.append(ComboPattern("class_drop_hot_trainer", 3.0))
    if off_layoff and _has_recent_bullet(horse):
        combos.append(ComboPattern("layoff_bullet_work", 3.0))
    if first_blinkers and class_drop:
        combos.append(ComboPattern("first_blinkers_class_drop", 3.0))
    if (len(pps) >= 2 and (pps[0].days_since_previous or 0) >= LAYOFF_DAYS
            and days is not None and days <= 45):
        combos.append(ComboPattern("second_off_layoff", 2.0))
    if ctx.is_turf and pps and horse.turf.starts == 0 and not any(pp.surface == "turf" for pp in pps) \
            and _strong_turf_trainer(horse):
        combos.append(ComboPattern("first_turf_turf_trainer", 2.0))
    if days is not None and FRESHENING_DAYS <= days < LAYOFF_DAYS and recent_work:
        combos.append(ComboPattern("freshened_recent_work", 2.0))
    if off_layoff and class_rise:
        combos.append(ComboPattern("class_rise_off_layoff", -3.0))
    if days is not None and days >= FRESHENING_DAYS and not _has_recent_work(horse, ctx, days=FRESHENING_DAYS):
        combos.append(ComboPattern("no_recent_work", -2.0))
    return combos


def score_combo_patterns(horse: HorseEntry, ctx: RaceContext) -> float:
    return _clamp(sum(c.points for c in detect_combo_patterns(horse, ctx)), 0.0,
                  CATEGORY_LIMITS["combo_patterns"])


# ──────────────────────────────────────────────
# Track specialist (10)
# ──────────────────────────────────────────────

def _track_record_from_pps(horse: HorseEntry, track: str) -> StatsRecord:
    record = StatsRecord()
    for pp in horse.past_performances:
        if normalize_name(pp.track) != normalize_name(track):
            continue
        record.starts += 1
        if pp.finish_position == 1:
            record.wins += 1
        elif pp.finish_position == 2:
            record.places += 1
        elif pp.finish_position == 3:
            record.shows += 1
    return record


def score_track_specialist(horse: HorseEntry, ctx: RaceContext) -> float:
    record = horse.track
    if record.starts <= 0:
        record = _track_record_from_pps(horse, ctx.header.track_code)
    if record.starts <= 0:
        return 0.0
    if record.starts >= 3:
        if record.win_rate >= 0.30:
            return 10.0
        if record.win_rate >= 0.20:
            return 7.0
        if record.itm_rate >= 0.50:
            return 5.0
    return 3.0 if record.wins > 0 else 0.0


# ──────────────────────────────────────────────
# Trainer x surface x distance (6)
# ──────────────────────────────────────────────

TSD_MIN_STARTS = 5
TSD_BASELINE = 3.0


def score_trainer_surface_distance(horse: HorseEntry, ctx: RaceContext) -> float:
    dist = ctx.distance_category
    stat = None
    if dist != "unknown":
        stat = horse.trainer_category_stats.get(f"{'turf' if ctx.is_turf else 'dirt'}_{dist}")

    if stat is None or stat.starts < TSD_MIN_STARTS:
        points = TSD_BASELINE
    elif stat.win_pct >= 25:
        points = 4.0
    elif stat.win_pct >= 20:
        points = 3.0
    elif stat.win_pct >= 15:
        points = 2.0
    elif stat.win_pct >= 10:
        points = 1.0
    else:
        points = 0.0

    if ctx.is_wet:
        wet = horse.trainer_category_stats.get("wet_track")
        if wet and wet.starts >= TSD_MIN_STARTS:
            if wet.win_pct >= 20:
                points += 2.0
            elif wet.win_pct >= 15:
                points += 1.0
    return min(points, CATEGORY_LIMITS["trainer_surface_distance"])


# ──────────────────────────────────────────────
# Weight, age, sire (1 each)
# ──────────────────────────────────────────────

def score_weight(horse: HorseEntry, ctx: RaceContext) -> float:
    if not horse.past_performances or horse.weight <= 0:
        return 0.0
    last = horse.past_performances[0].weight
    if last <= 0:
        return 0.0
    drop = last - horse.weight
    if drop >= 5:
        return 1.0
    if drop >= 3:
        return 0.5
    return 0.0


def score_age(horse: HorseEntry, ctx: RaceContext) -> float:
    if 4 <= horse.age <= 5:
        return 1.0
    if horse.age == 3:
        return 0.5
    if 6 <= horse.age <= 7 and ctx.is_turf:
        return 0.5
    return 0.0


# sire's sire -> (surface preference, distance preference, influence)
INFLUENTIAL_SIRES = {
    "A P INDY": ("dirt", "route", "strong"),
    "STORM CAT": ("versatile", "sprint", "strong"),
    "MR PROSPECTOR": ("dirt", "versatile", "strong"),
    "SMART STRIKE": ("dirt", "route", "strong"),
    "UNBRIDLED": ("dirt", "route", "strong"),
    "GIANT S CAUSEWAY": ("versatile", "versatile", "strong"),
    "GALILEO": ("turf", "route", "strong"),
    "SADLER S WELLS": ("turf", "route", "strong"),
    "DANEHILL": ("turf", "versatile", "strong"),
    "EL PRADO": ("turf", "route", "strong"),
    "INTO MISCHIEF": ("dirt", "versatile", "strong"),
    "CURLIN": ("dirt", "route", "strong"),
    "TAPIT": ("dirt", "versatile", "strong"),
    "UNCLE MO": ("dirt", "sprint", "strong"),
    "WAR FRONT": ("turf", "sprint", "strong"),
    "SPEIGHTSTOWN": ("dirt", "sprint", "strong"),
    "CANDY RIDE": ("dirt", "route", "moderate"),
    "STREET CRY": ("versatile", "route", "moderate"),
    "DISTORTED HUMOR": ("dirt", "versatile", "moderate"),
    "MEDAGLIA D ORO": ("versatile", "route", "moderate"),
    "QUALITY ROAD": ("dirt", "versatile", "moderate"),
    "KITTEN S JOY": ("turf", "route", "moderate"),
    "MORE THAN READY": ("versatile", "sprint", "moderate"),
    "GHOSTZAPPER": ("dirt", "route", "moderate"),
    "MALIBU MOON": ("dirt", "versatile", "moderate"),
}


def _affinity(preference: str, today: str, influence: str) -> float:
    if preference == "versatile":
        return 0.0
    if preference == today:
        return 1.0 if influence == "strong" else 0.5
    return -0.5 if influence == "strong" else -0.25


def score_sire(horse: HorseEntry, ctx: RaceContext) -> float:
    """One point when the sire line suits both today's surface and trip."""
    profile = None
    for name in (horse.breeding.sire_of_sire, horse.breeding.sire):
        profile = INFLUENTIAL_SIRES.get(normalize_name(name))
        if profile:
            break
    if profile is None:
        return 0.0
    surface_pref, distance_pref, influence = profile
    surface = "turf" if ctx.is_turf else "dirt"
    trip = "sprint" if ctx.is_sprint else "route"
    combined = (_affinity(surface_pref, surface, influence) + _affinity(distance_pref, trip, influence)) / 2
    return 1.0 if combined >= 0.75 else 0.0


# ──────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────

CategoryFunction = Callable[[HorseEntry, RaceContext], float]

# Order matches CategoryScores
CATEGORY_FUNCTIONS: dict[str, CategoryFunction] = {
    "connections": score_connections,
    "post_position": score_post_position,
    "speed_class": score_speed_class,
    "form": score_form,
    "equipment": score_equipment,
    "pace": score_pace,
    "distance_surface": score_distance_surface,
    "trainer_patterns": score_trainer_patterns,
    "combo_patterns": score_combo_patterns,
    "track_specialist": score_track_specialist,
    "trainer_surface_distance": score_trainer_surface_distance,
    "weight": score_weight,
    "age": score_age,
    "sire": score_sire,
}
