"""Versioned offset schema for DRF single-file exports.

Offsets are 0-based positions into the comma-split field array. Repeating
past-performance and workout columns are field-major: record ``i`` of a
column lives at ``base + i``.

Upstream revisions move a handful of scalar blocks (the lifetime/turf/wet
record block in particular). Each revision is a ``FieldSchema`` instance, and
``validate_anchor_fields`` re-reads a few known-good anchors from the raw
fields so drift is reported at parse time instead of corrupting statistics.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from furlong.models import MAX_PAST_PERFORMANCES, HorseEntry
from furlong.parser.fields import get_field, parse_optional_int

logger = logging.getLogger(__name__)

DEFAULT_REVISION = "bris-12pp"

# Record blocks are (starts, wins, places, shows, earnings); None = not present
RecordBlock = Optional[tuple[int, int, int, int, Optional[int]]]

TRAINER_CATEGORIES = [
    "first_time_starter",
    "first_time_lasix",
    "first_time_blinkers",
    "blinkers_off",
    "sprint_to_route",
    "route_to_sprint",
    "turf_sprint",
    "turf_route",
    "dirt_sprint",
    "dirt_route",
    "wet_track",
    "days_31_60",
    "days_61_90",
    "days_91_180",
    "days_181_plus",
]


@dataclass(frozen=True)
class FieldSchema:
    """Every offset the parser reads, for one export revision."""

    revision: str

    # Race header
    track_code: int = 0
    race_date: int = 1
    race_number: int = 2
    post_position: int = 3
    distance_yards: int = 5
    surface: int = 6
    surface_fallback: Optional[int] = None
    race_type: int = 8
    conditions: int = 10
    purse: int = 11
    claiming_price_max: int = 12
    claiming_price_min: int = 13
    distance_furlongs: int = 14
    field_size: int = 23

    # Connections (name followed by meet starts/wins/places/shows)
    trainer_name: int = 27
    trainer_meet: RecordBlock = (28, 29, 30, 31, None)
    jockey_name: int = 32
    jockey_meet: RecordBlock = (34, 35, 36, 37, None)
    owner_name: int = 38

    # Horse identity
    program_number: int = 42
    morning_line: int = 43
    horse_name: int = 44
    age: int = 45
    sex: int = 48
    color: int = 49
    weight: int = 50
    sire: int = 51
    sire_of_sire: int = 52
    dam: int = 53
    dam_sire: int = 54
    equipment: int = 60
    medication: int = 61
    first_time_lasix: int = 62

    # Cumulative records
    lifetime: RecordBlock = (64, 65, 66, 67, 68)
    current_year: RecordBlock = (69, 70, 71, 72, 73)
    previous_year: RecordBlock = (74, 75, 76, 77, 78)
    turf: RecordBlock = (79, 80, 81, 82, 83)
    wet: RecordBlock = (85, 86, 87, 88, 89)
    distance: RecordBlock = (91, 92, 93, 94, 95)
    track: RecordBlock = (96, 97, 98, 99, 100)

    # Past-performance columns (base of a 12-wide column)
    pp_date: int = 101
    pp_distance_yards: int = 113
    pp_track: int = 125
    pp_surface: int = 137
    pp_condition: int = 149
    pp_equipment: int = 161
    pp_medication: int = 173
    pp_field_size: int = 185
    pp_post_position: int = 197
    pp_finish_position: int = 355
    pp_margin: int = 367
    pp_trip_comment: int = 379
    pp_weight: int = 435
    pp_odds: int = 515
    pp_race_type: int = 535
    pp_claiming_price: int = 547
    pp_claimed: int = 559
    pp_start_position: int = 571
    pp_first_call_position: int = 583
    pp_second_call_position: int = 595
    pp_stretch_position: int = 607
    pp_first_call_lengths: int = 631
    pp_second_call_lengths: int = 643
    pp_stretch_lengths: int = 655
    pp_speed_figure: int = 765
    pp_track_variant: int = 777
    pp_early_pace: int = 815
    pp_late_pace: int = 845
    pp_final_time: int = 1005
    pp_trainer: int = 1055   # 10-wide
    pp_jockey: int = 1065    # 10-wide
    pp_connections_depth: int = 10

    # Workout columns (base of a 12-wide column)
    work_date: int = 255
    work_track: int = 267
    work_distance_yards: int = 279
    work_time: int = 291
    work_type: int = 303
    work_condition: int = 315
    work_surface: int = 327
    work_rank: int = 339

    # Derived horse-level values
    running_style: int = 209
    early_speed_points: int = 210
    best_speed_figure: int = 223

    # Trainer situational categories: 5-wide blocks (starts, win%, itm%, roi, -)
    trainer_categories: int = 1145
    trainer_category_width: int = 5

    def describe(self) -> dict:
        """Anchor offsets used for diagnostics."""
        return {
            "revision": self.revision,
            "horse_name": self.horse_name,
            "trainer_name": self.trainer_name,
            "lifetime_starts": self.lifetime[0] if self.lifetime else None,
            "pp_speed_figure": self.pp_speed_figure,
        }


BRIS_12PP = FieldSchema(revision="bris-12pp")

# Older exports: lifetime block sits where track lives today, track/turf are
# shifted and the wet/distance blocks do not exist.
LEGACY = replace(
    BRIS_12PP,
    revision="legacy",
    surface_fallback=12,
    lifetime=(96, 97, 98, 99, 100),
    track=(79, 80, 81, 82, None),
    turf=(85, 86, 87, 88, None),
    wet=None,
    distance=None,
)

SCHEMAS: dict[str, FieldSchema] = {s.revision: s for s in (BRIS_12PP, LEGACY)}


def get_schema(revision: str | None = None) -> FieldSchema:
    """Look up a registered schema revision (default ``bris-12pp``)."""
    name = (revision or DEFAULT_REVISION).strip().lower()
    try:
        return SCHEMAS[name]
    except KeyError:
        raise KeyError(f"Unknown schema revision {name!r}; known: {', '.join(sorted(SCHEMAS))}") from None


# ──────────────────────────────────────────────
# Anchor validation
# ──────────────────────────────────────────────

SPEED_FIGURE_RANGE = (0, 130)
_YEAR_RANGE = (1900, 2100)


@dataclass
class AnchorReport:
    """Outcome of cross-checking an assembled horse against its raw fields."""

    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    anchor_points: dict = field(default_factory=dict)


def _looks_like_year(value: int) -> bool:
    return _YEAR_RANGE[0] <= value <= _YEAR_RANGE[1]


def validate_anchor_fields(
    horse: HorseEntry,
    fields: Sequence[str],
    schema: FieldSchema = BRIS_12PP,
) -> AnchorReport:
    """Re-derive anchor values from ``fields`` and compare with ``horse``."""
    report = AnchorReport()

    raw_name = get_field(fields, schema.horse_name)
    name_match = raw_name == horse.horse_name
    report.anchor_points["horse_name"] = {
        "index": schema.horse_name, "expected": horse.horse_name,
        "actual": raw_name, "match": name_match,
    }
    if not name_match:
        report.errors.append(
            f"Horse name mismatch at field {schema.horse_name}: "
            f"parsed {horse.horse_name!r}, raw {raw_name!r}"
        )

    raw_trainer = get_field(fields, schema.trainer_name)
    trainer_match = raw_trainer == horse.trainer_name
    report.anchor_points["trainer_name"] = {
        "index": schema.trainer_name, "expected": horse.trainer_name,
        "actual": raw_trainer, "match": trainer_match,
    }
    if not trainer_match:
        report.errors.append(
            f"Trainer name mismatch at field {schema.trainer_name}: "
            f"parsed {horse.trainer_name!r}, raw {raw_trainer!r}"
        )

    pp1_figure = parse_optional_int(get_field(fields, schema.pp_speed_figure))
    figure_ok = pp1_figure is None or SPEED_FIGURE_RANGE[0] <= pp1_figure <= SPEED_FIGURE_RANGE[1]
    report.anchor_points["pp1_speed_figure"] = {
        "index": schema.pp_speed_figure, "value": pp1_figure, "valid": figure_ok,
    }
    if not figure_ok:
        report.errors.append(
            f"PP1 speed figure {pp1_figure} at field {schema.pp_speed_figure} "
            f"outside {SPEED_FIGURE_RANGE[0]}-{SPEED_FIGURE_RANGE[1]}"
        )

    for label, record in (("turf", horse.turf), ("wet", horse.wet),
                          ("distance", horse.distance), ("lifetime", horse.lifetime)):
        if _looks_like_year(record.starts):
            report.errors.append(
                f"{label} starts value {record.starts} looks like a year; "
                f"record offsets have probably shifted"
            )
        elif record.wins > record.starts:
            report.warnings.append(f"{label} wins ({record.wins}) exceed starts ({record.starts})")

    if len(horse.past_performances) > MAX_PAST_PERFORMANCES:
        report.errors.append(
            f"Too many PPs: {len(horse.past_performances)} (max {MAX_PAST_PERFORMANCES})"
        )
    if len(horse.workouts) > MAX_PAST_PERFORMANCES:
        report.warnings.append(f"Too many workouts: {len(horse.workouts)}")

    report.valid = not report.errors
    return report
