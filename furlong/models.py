"""Data model for parsed DRF cards and scored fields.

Everything here is a plain dataclass. Parsed structures are built once by the
parser; scoring results (``Score``/``ScoredHorse``) are frozen and replaced,
never mutated.
"""

from dataclasses import dataclass, field, fields as dc_fields
from datetime import datetime
from typing import Optional

# Finish position used when a PP line has no usable finish
FINISH_SENTINEL = 99
MAX_PAST_PERFORMANCES = 12
MAX_WORKOUTS = 12


# ──────────────────────────────────────────────
# Record building blocks
# ──────────────────────────────────────────────

@dataclass
class StatsRecord:
    """Starts/wins/places/shows/earnings for one slice of a horse's record."""

    starts: int = 0
    wins: int = 0
    places: int = 0
    shows: int = 0
    earnings: float = 0.0

    @property
    def win_rate(self) -> float:
        return self.wins / self.starts if self.starts > 0 else 0.0

    @property
    def itm_rate(self) -> float:
        return (self.wins + self.places + self.shows) / self.starts if self.starts > 0 else 0.0


@dataclass
class TrainerCategoryStat:
    """Trainer record in one situational category (first-time lasix, etc)."""

    category: str
    starts: int = 0
    win_pct: float = 0.0
    itm_pct: float = 0.0
    roi: float = 0.0


@dataclass
class Equipment:
    """Equipment flags decoded from the raw equipment string."""

    raw: str = ""
    blinkers: bool = False
    blinkers_off: bool = False
    front_bandages: bool = False
    tongue_tie: bool = False
    nasal_strip: bool = False
    shadow_roll: bool = False
    bar_shoes: bool = False
    mud_caulks: bool = False
    first_time: list[str] = field(default_factory=list)


@dataclass
class Medication:
    raw: str = ""
    lasix: bool = False
    first_time_lasix: bool = False
    lasix_off: bool = False
    bute: bool = False


@dataclass
class Breeding:
    sire: str = ""
    sire_of_sire: str = ""
    dam: str = ""
    dam_sire: str = ""


@dataclass
class RunningLine:
    """Position and beaten lengths at each call of a past race."""

    start: Optional[int] = None
    first_call: Optional[int] = None
    second_call: Optional[int] = None
    stretch: Optional[int] = None
    finish: Optional[int] = None
    first_call_lengths: Optional[float] = None
    second_call_lengths: Optional[float] = None
    stretch_lengths: Optional[float] = None
    finish_lengths: Optional[float] = None


@dataclass
class PastPerformance:
    """One historical race line."""

    date: str
    track: str = ""
    distance_furlongs: float = 0.0
    distance: str = ""
    surface: str = "dirt"
    track_condition: str = "fast"
    classification: str = "unknown"
    claiming_price: Optional[int] = None
    was_claimed: bool = False
    field_size: int = 0
    post_position: int = 0
    finish_position: int = FINISH_SENTINEL
    lengths_behind: float = 0.0
    running_line: RunningLine = field(default_factory=RunningLine)
    speed_figure: Optional[int] = None
    track_variant: Optional[int] = None
    early_pace: Optional[int] = None
    late_pace: Optional[int] = None
    final_time: Optional[float] = None
    odds: Optional[float] = None
    weight: int = 0
    equipment: str = ""
    medication: str = ""
    trip_comment: str = ""
    trainer: str = ""
    jockey: str = ""
    running_style: str = "U"
    days_since_previous: Optional[int] = None

    @property
    def won(self) -> bool:
        return self.finish_position == 1


@dataclass
class Workout:
    date: str
    track: str = ""
    distance_furlongs: float = 0.0
    distance: str = ""
    time_seconds: float = 0.0
    type: str = "unknown"  # breeze, handily, driving, easy, unknown
    track_condition: str = "fast"
    surface: str = "dirt"
    ranking: Optional[int] = None
    total_works: Optional[int] = None
    is_bullet: bool = False


# ──────────────────────────────────────────────
# Race and horse
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class RaceKey:
    """Identity of one race inside a card: (track, date, race number)."""

    track_code: str
    race_date: str
    race_number: int

    def __str__(self) -> str:
        return f"{self.track_code}-{self.race_date}-R{self.race_number}"


@dataclass
class RaceHeader:
    track_code: str = "UNK"
    race_date: str = ""
    race_number: int = 1
    distance_furlongs: float = 0.0
    distance: str = ""
    surface: str = "dirt"
    track_condition: str = "fast"
    classification: str = "unknown"
    race_type: str = ""
    conditions: str = ""
    purse: int = 0
    claiming_price_min: Optional[int] = None
    claiming_price_max: Optional[int] = None
    field_size: int = 0

    @property
    def key(self) -> RaceKey:
        return RaceKey(self.track_code, self.race_date, self.race_number)

    @property
    def is_sprint(self) -> bool:
        return 0 < self.distance_furlongs < 8


@dataclass
class HorseEntry:
    """One starter in one race."""

    program_number: int = 1
    post_position: int = 1
    horse_name: str = ""
    age: int = 0
    sex: str = "unknown"
    color: str = ""

    trainer_name: str = ""
    jockey_name: str = ""
    owner_name: str = ""

    weight: int = 0
    equipment: Equipment = field(default_factory=Equipment)
    medication: Medication = field(default_factory=Medication)
    breeding: Breeding = field(default_factory=Breeding)

    morning_line_odds: str = ""
    morning_line_decimal: float = 0.0

    lifetime: StatsRecord = field(default_factory=StatsRecord)
    current_year: StatsRecord = field(default_factory=StatsRecord)
    previous_year: StatsRecord = field(default_factory=StatsRecord)
    track: StatsRecord = field(default_factory=StatsRecord)
    turf: StatsRecord = field(default_factory=StatsRecord)
    wet: StatsRecord = field(default_factory=StatsRecord)
    distance: StatsRecord = field(default_factory=StatsRecord)
    trainer_meet: StatsRecord = field(default_factory=StatsRecord)
    jockey_meet: StatsRecord = field(default_factory=StatsRecord)
    trainer_category_stats: dict[str, TrainerCategoryStat] = field(default_factory=dict)

    running_style: str = "U"
    early_speed_points: Optional[int] = None
    best_speed_figure: Optional[int] = None
    days_since_last_race: Optional[int] = None

    past_performances: list[PastPerformance] = field(default_factory=list)
    workouts: list[Workout] = field(default_factory=list)
    is_scratched: bool = False
    line_number: int = 0

    @property
    def speed_figures(self) -> list[int]:
        return [pp.speed_figure for pp in self.past_performances if pp.speed_figure is not None]


@dataclass
class ParsedRace:
    header: RaceHeader
    horses: list[HorseEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def key(self) -> RaceKey:
        return self.header.key

    @property
    def is_usable(self) -> bool:
        return not self.errors


# ──────────────────────────────────────────────
# Parse result
# ──────────────────────────────────────────────

@dataclass
class ParseProgress:
    """One progress notification handed to the advisory progress sink."""

    step: str
    progress: int
    message: str = ""
    races_found: int = 0
    horses_found: int = 0


@dataclass
class ParseStats:
    total_races: int = 0
    total_horses: int = 0
    total_past_performances: int = 0
    total_workouts: int = 0
    lines_processed: int = 0
    lines_skipped: int = 0
    elapsed_ms: float = 0.0


@dataclass
class ParsedFile:
    filename: str
    races: list[ParsedRace] = field(default_factory=list)
    format: str = "unknown"  # "csv", "fixed-width" or "unknown"
    schema_revision: str = ""
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    race_errors: list[str] = field(default_factory=list)  # blocking for that race only
    stats: ParseStats = field(default_factory=ParseStats)
    parsed_at: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors and len(self.races) > 0


# ──────────────────────────────────────────────
# Scoring result
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class CategoryScores:
    """Per-category sub-scores; field order matches CATEGORY_LIMITS."""

    connections: float = 0.0
    post_position: float = 0.0
    speed_class: float = 0.0
    form: float = 0.0
    equipment: float = 0.0
    pace: float = 0.0
    distance_surface: float = 0.0
    trainer_patterns: float = 0.0
    combo_patterns: float = 0.0
    track_specialist: float = 0.0
    trainer_surface_distance: float = 0.0
    weight: float = 0.0
    age: float = 0.0
    sire: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in dc_fields(self)}

    def total(self) -> float:
        return sum(self.as_dict().values())


@dataclass(frozen=True)
class Score:
    categories: CategoryScores
    base_score: float
    overlay_score: float
    total: float
    tier: str
    data_completeness: str = "complete"  # or "sparse"
    is_scratched: bool = False
    fallbacks: tuple[str, ...] = ()  # categories that fell back to their default


@dataclass(frozen=True)
class ScoredHorse:
    horse: HorseEntry
    index: int
    score: Score
    rank: Optional[int] = None

    @property
    def is_scratched(self) -> bool:
        return self.score.is_scratched
