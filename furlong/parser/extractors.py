"""Past-performance, workout and statistics-block extraction.

Repeating columns carry no explicit "unused" marker: an empty date is the only
signal that there are no more records, so extraction stops at the first
blank date.
"""

import logging
import re
from datetime import datetime
from typing import Optional, Sequence

from furlong.models import (
    FINISH_SENTINEL,
    MAX_PAST_PERFORMANCES,
    MAX_WORKOUTS,
    PastPerformance,
    RunningLine,
    StatsRecord,
    TrainerCategoryStat,
    Workout,
)
from furlong.parser.domain import (
    classify_pp_style,
    format_distance,
    parse_classification,
    parse_distance,
    parse_surface,
    parse_time_seconds,
    parse_track_condition,
    parse_workout_type,
)
from furlong.parser.fields import (
    get_bool,
    get_field,
    get_float,
    get_int,
    get_optional_float,
    get_optional_int,
    parse_float,
    parse_int,
)
from furlong.parser.schema import TRAINER_CATEGORIES, FieldSchema, RecordBlock

logger = logging.getLogger(__name__)

_DATE_FORMATS = ("%Y%m%d", "%Y-%m-%d", "%m/%d/%Y")

# Beaten-margin abbreviations, in lengths
_MARGIN_ABBREVS = {
    "NOSE": 0.05, "NSE": 0.05, "NO": 0.05,
    "HEAD": 0.1, "HD": 0.1,
    "NECK": 0.25, "NK": 0.25,
    "DH": 0.0, "WIN": 0.0,
}
_MIXED_FRACTION_RE = re.compile(r"^(\d+)?\s*(?:(\d+)/(\d+))?$")
_RANK_RE = re.compile(r"(\d+)\s*/\s*(\d+)")


def parse_date(value: str) -> Optional[datetime]:
    text = (value or "").strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def days_between(earlier: str, later: str) -> Optional[int]:
    a, b = parse_date(earlier), parse_date(later)
    if a is None or b is None:
        return None
    return (b - a).days


def parse_margin(value: str) -> Optional[float]:
    """Beaten margin in lengths: "3", "2.5", "1 1/2", "3/4", "HD", "NK"."""
    ms = (value or "").strip().upper()
    if not ms:
        return None
    if ms in _MARGIN_ABBREVS:
        return _MARGIN_ABBREVS[ms]
    try:
        num = float(ms)
        return num if num >= 0 else None
    except ValueError:
        pass
    m = _MIXED_FRACTION_RE.match(ms)
    if m and (m.group(1) or m.group(2)):
        whole = int(m.group(1)) if m.group(1) else 0
        frac = 0.0
        if m.group(2) and int(m.group(3)) > 0:
            frac = int(m.group(2)) / int(m.group(3))
        return whole + frac
    return None


def parse_rank(value: str) -> tuple[Optional[int], Optional[int]]:
    """(rank, total) from an "N/M" substring; (None, None) when absent/malformed."""
    m = _RANK_RE.search(value or "")
    if not m:
        return None, None
    rank, total = int(m.group(1)), int(m.group(2))
    if rank < 1 or total < 1 or rank > total:
        return None, None
    return rank, total


# ──────────────────────────────────────────────
# Statistics blocks
# ──────────────────────────────────────────────

def read_record(fields: Sequence[str], block: RecordBlock) -> StatsRecord:
    """StatsRecord from a (starts, wins, places, shows, earnings) block.

    A block of ``None`` means the revision does not carry it: all zeros.
    """
    if block is None:
        return StatsRecord()
    starts, wins, places, shows, earnings = block
    return StatsRecord(
        starts=max(0, get_int(fields, starts)),
        wins=max(0, get_int(fields, wins)),
        places=max(0, get_int(fields, places)),
        shows=max(0, get_int(fields, shows)),
        earnings=max(0.0, get_float(fields, earnings)) if earnings is not None else 0.0,
    )


def extract_trainer_categories(fields: Sequence[str], schema: FieldSchema) -> dict[str, TrainerCategoryStat]:
    stats: dict[str, TrainerCategoryStat] = {}
    for i, name in enumerate(TRAINER_CATEGORIES):
        base = schema.trainer_categories + i * schema.trainer_category_width
        starts = get_int(fields, base)
        if starts <= 0:
            continue
        stats[name] = TrainerCategoryStat(
            category=name,
            starts=starts,
            win_pct=get_float(fields, base + 1),
            itm_pct=get_float(fields, base + 2),
            roi=get_float(fields, base + 3),
        )
    return stats


# ──────────────────────────────────────────────
# Past performances
# ──────────────────────────────────────────────

def _pp_field(fields: Sequence[str], column: int, i: int) -> str:
    return get_field(fields, column + i)


def _build_past_performance(fields: Sequence[str], schema: FieldSchema, i: int, date: str) -> PastPerformance:
    s = schema
    furlongs = parse_distance(yards=abs(parse_float(_pp_field(fields, s.pp_distance_yards, i))))
    finish = parse_int(_pp_field(fields, s.pp_finish_position, i), FINISH_SENTINEL)
    if finish <= 0:
        finish = FINISH_SENTINEL
    margin = parse_margin(_pp_field(fields, s.pp_margin, i))
    lengths_behind = 0.0 if finish == 1 else (margin or 0.0)

    running_line = RunningLine(
        start=get_optional_int(fields, s.pp_start_position + i),
        first_call=get_optional_int(fields, s.pp_first_call_position + i),
        second_call=get_optional_int(fields, s.pp_second_call_position + i),
        stretch=get_optional_int(fields, s.pp_stretch_position + i),
        finish=finish if finish != FINISH_SENTINEL else None,
        first_call_lengths=parse_margin(_pp_field(fields, s.pp_first_call_lengths, i)),
        second_call_lengths=parse_margin(_pp_field(fields, s.pp_second_call_lengths, i)),
        stretch_lengths=parse_margin(_pp_field(fields, s.pp_stretch_lengths, i)),
        finish_lengths=lengths_behind,
    )

    claim_price = get_optional_int(fields, s.pp_claiming_price + i)
    pp = PastPerformance(
        date=date,
        track=_pp_field(fields, s.pp_track, i),
        distance_furlongs=furlongs,
        distance=format_distance(furlongs),
        surface=parse_surface(_pp_field(fields, s.pp_surface, i)),
        track_condition=parse_track_condition(_pp_field(fields, s.pp_condition, i)),
        classification=parse_classification(_pp_field(fields, s.pp_race_type, i)),
        claiming_price=claim_price if claim_price and claim_price > 0 else None,
        was_claimed=get_bool(fields, s.pp_claimed + i),
        field_size=get_int(fields, s.pp_field_size + i),
        post_position=get_int(fields, s.pp_post_position + i),
        finish_position=finish,
        lengths_behind=lengths_behind,
        running_line=running_line,
        speed_figure=get_optional_int(fields, s.pp_speed_figure + i),
        track_variant=get_optional_int(fields, s.pp_track_variant + i),
        early_pace=get_optional_int(fields, s.pp_early_pace + i),
        late_pace=get_optional_int(fields, s.pp_late_pace + i),
        final_time=get_optional_float(fields, s.pp_final_time + i),
        odds=get_optional_float(fields, s.pp_odds + i),
        weight=get_int(fields, s.pp_weight + i),
        equipment=_pp_field(fields, s.pp_equipment, i),
        medication=_pp_field(fields, s.pp_medication, i),
        trip_comment=_pp_field(fields, s.pp_trip_comment, i),
    )
    if i < s.pp_connections_depth:
        pp.trainer = _pp_field(fields, s.pp_trainer, i)
        pp.jockey = _pp_field(fields, s.pp_jockey, i)
    pp.running_style = classify_pp_style(pp)
    return pp


def extract_past_performances(fields: Sequence[str], schema: FieldSchema) -> list[PastPerformance]:
    """Decode up to 12 past performances, most recent first."""
    pps: list[PastPerformance] = []
    for i in range(MAX_PAST_PERFORMANCES):
        date = _pp_field(fields, schema.pp_date, i)
        if not date:
            break
        try:
            pps.append(_build_past_performance(fields, schema, i, date))
        except (ValueError, TypeError, IndexError) as e:
            logger.debug("Skipping PP %d: %s", i + 1, e)

    # Layoff between each PP and the one before it
    for newer, older in zip(pps, pps[1:]):
        newer.days_since_previous = days_between(older.date, newer.date)
    return pps


# ──────────────────────────────────────────────
# Workouts
# ──────────────────────────────────────────────

def extract_workouts(fields: Sequence[str], schema: FieldSchema) -> list[Workout]:
    """Decode up to 12 workouts, most recent first."""
    works: list[Workout] = []
    s = schema
    for i in range(MAX_WORKOUTS):
        date = get_field(fields, s.work_date + i)
        if not date:
            break
        yards = abs(get_float(fields, s.work_distance_yards + i))
        furlongs = parse_distance(yards=yards)
        rank, total = parse_rank(get_field(fields, s.work_rank + i))
        works.append(Workout(
            date=date,
            track=get_field(fields, s.work_track + i),
            distance_furlongs=furlongs,
            distance=format_distance(furlongs),
            time_seconds=parse_time_seconds(get_field(fields, s.work_time + i)),
            type=parse_workout_type(get_field(fields, s.work_type + i)),
            track_condition=parse_track_condition(get_field(fields, s.work_condition + i)),
            surface=parse_surface(get_field(fields, s.work_surface + i)),
            ranking=rank,
            total_works=total,
            is_bullet=rank == 1,
        ))
    return works
