"""DRF file parser: raw text in, race-grouped cards out.

Runs as a small state machine (initializing, detecting-format,
extracting-races, parsing-horses, validating-data, finalizing, complete) and
reports monotonic 0-100 progress through an optional callback. Malformed
lines, headers and horses are skipped with a warning; ``parse_drf_file``
always returns a ``ParsedFile`` and never raises.
"""

import logging
import re
import time
from datetime import datetime
from typing import Callable, Optional, Sequence, Union

from furlong.config import Settings, get_settings
from furlong.errors import FileValidationError, RecordParseError, SchemaDriftError
from furlong.models import (
    HorseEntry,
    ParsedFile,
    ParsedRace,
    ParseProgress,
    ParseStats,
    RaceHeader,
    RaceKey,
)
from furlong.parser.domain import (
    format_distance,
    infer_running_style,
    parse_classification,
    parse_distance,
    parse_equipment,
    parse_medication,
    parse_odds,
    parse_sex,
    parse_surface,
)
from furlong.parser.extractors import (
    days_between,
    extract_past_performances,
    extract_trainer_categories,
    extract_workouts,
    read_record,
)
from furlong.parser.fields import (
    get_bool,
    get_field,
    get_float,
    get_int,
    get_optional_int,
    split_csv_line,
    split_fixed_width,
)
from furlong.parser.schema import FieldSchema, get_schema, validate_anchor_fields
from furlong.parser.validator import check_line, decode_content, validate_file_content

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ParseProgress], None]

# Progress checkpoints per state
STEP_PROGRESS = {
    "initializing": 0,
    "detecting-format": 10,
    "extracting-races": 20,
    "parsing-horses": 30,
    "validating-data": 90,
    "finalizing": 95,
    "complete": 100,
}
_HORSE_PROGRESS_SPAN = 55  # parsing-horses runs from 30 to 85

_PROGRAM_NUMBER_RE = re.compile(r"\d+")
_ODDS_TOKEN_RE = re.compile(r"^(?:\d+(?:\.\d+)?(?:[-/]\d+)?|even|e)$", re.IGNORECASE)


class _ProgressReporter:
    """Clamps progress to a monotonic 0-100 sequence and shields the caller."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self._last = 0

    def __call__(self, step: str, progress: float, message: str = "",
                 races: int = 0, horses: int = 0) -> None:
        value = max(self._last, min(100, int(progress)))
        self._last = value
        if self._callback is None:
            return
        try:
            self._callback(ParseProgress(step, value, message, races, horses))
        except Exception as e:
            # Progress is advisory; a broken sink must not abort the parse
            logger.warning("Progress callback failed at %s: %s", step, e)


# ──────────────────────────────────────────────
# Defaults
# ──────────────────────────────────────────────

def create_default_race_header() -> RaceHeader:
    return RaceHeader(track_code="UNK", race_number=1, surface="dirt", track_condition="fast",
                      distance=format_distance(0))


def create_default_horse_entry(index: int) -> HorseEntry:
    """Blank entry for the ``index``-th horse (0-based) of a race."""
    return HorseEntry(program_number=index + 1, post_position=index + 1)


# ──────────────────────────────────────────────
# Builders
# ──────────────────────────────────────────────

def race_key_for(fields: Sequence[str], schema: FieldSchema) -> RaceKey:
    track = get_field(fields, schema.track_code, "UNK")[:3]
    race_number = get_int(fields, schema.race_number, 1)
    return RaceKey(track, get_field(fields, schema.race_date), race_number if race_number > 0 else 1)


def build_race_header(fields: Sequence[str], schema: FieldSchema) -> RaceHeader:
    key = race_key_for(fields, schema)
    header = create_default_race_header()
    header.track_code = key.track_code
    header.race_date = key.race_date
    header.race_number = key.race_number

    furlongs = parse_distance(
        furlongs=get_float(fields, schema.distance_furlongs),
        yards=abs(get_float(fields, schema.distance_yards)),
    )
    header.distance_furlongs = furlongs
    header.distance = format_distance(furlongs)

    surface_code = get_field(fields, schema.surface)
    if not surface_code and schema.surface_fallback is not None:
        surface_code = get_field(fields, schema.surface_fallback)
    header.surface = parse_surface(surface_code)

    header.race_type = get_field(fields, schema.race_type)
    header.conditions = get_field(fields, schema.conditions)
    header.classification = parse_classification(header.race_type, header.conditions)
    header.purse = max(0, get_int(fields, schema.purse))

    claim_max = get_optional_int(fields, schema.claiming_price_max)
    claim_min = get_optional_int(fields, schema.claiming_price_min)
    header.claiming_price_max = claim_max if claim_max and claim_max > 0 else None
    header.claiming_price_min = claim_min if claim_min and claim_min > 0 else None
    return header


def _program_number(raw: str, fallback: int) -> int:
    """Program numbers can carry entry letters ("1A"); keep the number."""
    m = _PROGRAM_NUMBER_RE.search(raw or "")
    if not m:
        return fallback
    value = int(m.group())
    return value if value > 0 else fallback


def build_horse_entry(
    fields: Sequence[str],
    index: int,
    schema: FieldSchema,
    race_date: str = "",
    line_number: int = 0,
) -> HorseEntry:
    """Decode one horse line. ``index`` is the 0-based order within its race."""
    horse = create_default_horse_entry(index)
    horse.line_number = line_number

    post = get_int(fields, schema.post_position, index + 1)
    horse.post_position = post if post > 0 else index + 1
    horse.program_number = _program_number(get_field(fields, schema.program_number), horse.post_position)

    horse.horse_name = get_field(fields, schema.horse_name)
    horse.trainer_name = get_field(fields, schema.trainer_name)
    horse.jockey_name = get_field(fields, schema.jockey_name)
    horse.owner_name = get_field(fields, schema.owner_name)
    horse.trainer_meet = read_record(fields, schema.trainer_meet)
    horse.jockey_meet = read_record(fields, schema.jockey_meet)

    age = get_int(fields, schema.age)
    if age > 1900 and race_date[:4].isdigit():
        # Some exports carry foaling year instead of age
        age = int(race_date[:4]) - age
    horse.age = age if 0 < age < 40 else 0
    horse.sex = parse_sex(get_field(fields, schema.sex))
    horse.color = get_field(fields, schema.color)
    horse.weight = max(0, get_int(fields, schema.weight))

    horse.breeding.sire = get_field(fields, schema.sire)
    horse.breeding.sire_of_sire = get_field(fields, schema.sire_of_sire)
    horse.breeding.dam = get_field(fields, schema.dam)
    horse.breeding.dam_sire = get_field(fields, schema.dam_sire)

    horse.equipment = parse_equipment(get_field(fields, schema.equipment))
    horse.medication = parse_medication(
        get_field(fields, schema.medication),
        first_time_lasix_flag=get_bool(fields, schema.first_time_lasix),
    )

    horse.morning_line_odds, horse.morning_line_decimal = parse_odds(get_field(fields, schema.morning_line))

    horse.lifetime = read_record(fields, schema.lifetime)
    horse.current_year = read_record(fields, schema.current_year)
    horse.previous_year = read_record(fields, schema.previous_year)
    horse.turf = read_record(fields, schema.turf)
    horse.wet = read_record(fields, schema.wet)
    horse.distance = read_record(fields, schema.distance)
    horse.track = read_record(fields, schema.track)
    horse.trainer_category_stats = extract_trainer_categories(fields, schema)

    horse.past_performances = extract_past_performances(fields, schema)
    horse.workouts = extract_workouts(fields, schema)

    horse.running_style = infer_running_style(
        horse.past_performances, declared=get_field(fields, schema.running_style),
    )
    horse.early_speed_points = get_optional_int(fields, schema.early_speed_points)
    best = get_optional_int(fields, schema.best_speed_figure)
    if best is None and horse.speed_figures:
        best = max(horse.speed_figures)
    horse.best_speed_figure = best
    if horse.past_performances and race_date:
        horse.days_since_last_race = days_between(horse.past_performances[0].date, race_date)
    return horse


def parse_fixed_width_line(tokens: Sequence[str], index: int, line_number: int = 0) -> tuple[RaceHeader, HorseEntry]:
    """Best-effort decode of a whitespace-delimited line.

    Only identity is recovered: track, date, race, post, name and a trailing
    odds token. Records, PPs and workouts stay empty.
    """
    if len(tokens) < 5:
        raise RecordParseError(f"only {len(tokens)} tokens", line_number)
    header = create_default_race_header()
    header.track_code = tokens[0][:3]
    header.race_date = tokens[1]
    race_number = get_int(tokens, 2, 1)
    header.race_number = race_number if race_number > 0 else 1

    horse = create_default_horse_entry(index)
    horse.line_number = line_number
    post = get_int(tokens, 3, index + 1)
    horse.post_position = horse.program_number = post if post > 0 else index + 1

    name_tokens = list(tokens[4:])
    if len(name_tokens) > 1 and _ODDS_TOKEN_RE.match(name_tokens[-1]):
        horse.morning_line_odds, horse.morning_line_decimal = parse_odds(name_tokens.pop())
    horse.horse_name = " ".join(name_tokens)
    return header, horse


# ──────────────────────────────────────────────
# Post-processing
# ──────────────────────────────────────────────

def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _finalize_race(race: ParsedRace) -> None:
    """Sort, size, and attach race-level warnings/errors."""
    race.horses.sort(key=lambda h: h.post_position)
    race.header.field_size = len(race.horses)
    label = f"Race {race.header.race_number} ({race.header.track_code})"

    if len(race.horses) < 2:
        race.warnings.append(
            f"{label}: only {_plural(len(race.horses), 'horse')} found; a race needs at least 2 horses"
        )

    missing_names = sum(1 for h in race.horses if not h.horse_name)
    if missing_names:
        race.warnings.append(f"{label}: {_plural(missing_names, 'horse')} missing a name")

    missing_odds = sum(1 for h in race.horses if h.morning_line_decimal <= 0)
    if race.horses and missing_odds == len(race.horses):
        race.errors.append(f"{label}: no horse has morning-line odds; the race cannot be ranked")
    elif missing_odds:
        race.warnings.append(f"{label}: {_plural(missing_odds, 'horse')} missing morning-line odds")


def _error_result(filename: str, errors: list[str], warnings: list[str], started: float,
                  fmt: str = "unknown", revision: str = "") -> ParsedFile:
    return ParsedFile(
        filename=filename,
        format=fmt,
        schema_revision=revision,
        warnings=list(warnings),
        errors=list(errors),
        stats=ParseStats(elapsed_ms=round((time.perf_counter() - started) * 1000, 2)),
        parsed_at=datetime.now(),
    )


# ──────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────

def parse_drf_file(
    content: Union[str, bytes, None],
    filename: str = "",
    progress: Optional[ProgressCallback] = None,
    schema_revision: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> ParsedFile:
    """Parse a DRF export into races. Never raises."""
    started = time.perf_counter()
    report = _ProgressReporter(progress)
    try:
        return _parse(content, filename, report, schema_revision, settings or get_settings(), started)
    except FileValidationError as e:
        report("complete", 100, "File rejected")
        return _error_result(filename, e.errors, e.warnings, started, revision=e.revision)
    except Exception as e:
        logger.exception("Unexpected failure parsing %s", filename or "<content>")
        report("complete", 100, "Parse failed")
        return _error_result(filename, [f"Unexpected parser failure: {e}"], [], started)


def _parse(
    content: Union[str, bytes, None],
    filename: str,
    report: _ProgressReporter,
    schema_revision: Optional[str],
    settings: Settings,
    started: float,
) -> ParsedFile:
    report("initializing", STEP_PROGRESS["initializing"], "Validating file")

    try:
        schema = get_schema(schema_revision or settings.schema_revision)
    except KeyError as e:
        report("complete", 100, "Unknown schema revision")
        return _error_result(filename, [str(e.args[0])], [], started)

    if isinstance(content, (bytes, bytearray)):
        content = decode_content(bytes(content))
    content = (content or "").lstrip("\ufeff")

    validation = validate_file_content(
        content, filename,
        max_bytes=settings.max_file_bytes,
        binary_ratio_threshold=settings.binary_ratio_threshold,
        mojibake_threshold=settings.mojibake_threshold,
    )
    if not validation.is_valid:
        raise FileValidationError(validation.errors, validation.warnings, schema.revision)

    warnings: list[str] = list(validation.warnings)
    report("detecting-format", STEP_PROGRESS["detecting-format"], "Detecting format")
    lines = [line for line in content.splitlines() if line.strip()]
    fmt = validation.detected_format
    if fmt == "fixed-width":
        warnings.append("Fixed-width format detected; only basic entry details can be read")

    report("extracting-races", STEP_PROGRESS["extracting-races"], f"Reading {len(lines)} lines")
    races: dict[RaceKey, ParsedRace] = {}
    stats = ParseStats()
    total = len(lines)
    every = max(1, total // 20)

    for n, line in enumerate(lines, start=1):
        stats.lines_processed += 1
        if fmt == "csv":
            accepted = _parse_csv_line(line, n, schema, settings, races, warnings)
        else:
            accepted = _parse_fixed_width(line, n, races, warnings)
        if not accepted:
            stats.lines_skipped += 1

        if n % every == 0 or n == total:
            report(
                "parsing-horses",
                STEP_PROGRESS["parsing-horses"] + _HORSE_PROGRESS_SPAN * n / total,
                f"Parsed line {n} of {total}",
                races=len(races),
                horses=sum(len(r.horses) for r in races.values()),
            )

    report("validating-data", STEP_PROGRESS["validating-data"], "Checking races")
    race_errors: list[str] = []
    for race in races.values():
        _finalize_race(race)
        warnings.extend(race.warnings)
        race_errors.extend(race.errors)

    report("finalizing", STEP_PROGRESS["finalizing"], "Sorting races")
    ordered = sorted(races.values(), key=lambda r: r.header.race_number)
    errors: list[str] = []
    if not ordered:
        errors.append("No races could be parsed from the file.")

    stats.total_races = len(ordered)
    stats.total_horses = sum(len(r.horses) for r in ordered)
    stats.total_past_performances = sum(len(h.past_performances) for r in ordered for h in r.horses)
    stats.total_workouts = sum(len(h.workouts) for r in ordered for h in r.horses)
    stats.elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    result = ParsedFile(
        filename=filename,
        races=ordered,
        format=fmt,
        schema_revision=schema.revision,
        warnings=warnings,
        errors=errors,
        race_errors=race_errors,
        stats=stats,
        parsed_at=datetime.now(),
    )
    logger.info(
        "Parsed %s: %d races, %d horses, %d lines skipped (%s, %.1f ms)",
        filename or "<content>", stats.total_races, stats.total_horses,
        stats.lines_skipped, schema.revision, stats.elapsed_ms,
    )
    report("complete", STEP_PROGRESS["complete"], "Done",
           races=stats.total_races, horses=stats.total_horses)
    return result


def _parse_csv_line(
    line: str,
    line_number: int,
    schema: FieldSchema,
    settings: Settings,
    races: dict[RaceKey, ParsedRace],
    warnings: list[str],
) -> bool:
    fields = split_csv_line(line)
    check = check_line(fields, line_number, settings.min_expected_fields)
    if check.warning:
        warnings.append(check.warning)
    if not check.accepted:
        logger.debug("Skipping line %d: %d fields", line_number, check.field_count)
        return False

    key = race_key_for(fields, schema)
    race = races.get(key)
    if race is None:
        try:
            header = build_race_header(fields, schema)
        except Exception as e:
            logger.warning("Race header on line %d failed to parse: %s", line_number, e)
            warnings.append(f"Line {line_number}: could not read race header ({e}); skipped")
            return False
        race = ParsedRace(header=header)
        races[key] = race

    try:
        horse = build_horse_entry(fields, len(race.horses), schema, key.race_date, line_number)
        anchors = validate_anchor_fields(horse, fields, schema)
        if not anchors.valid:
            if settings.strict_schema:
                raise SchemaDriftError("anchor fields disagree", anchors.errors)
            warnings.extend(f"Line {line_number}: {msg}" for msg in anchors.errors)
    except SchemaDriftError as e:
        logger.warning("Dropping line %d, schema drift: %s", line_number, "; ".join(e.errors))
        warnings.append(f"Line {line_number}: horse dropped, {'; '.join(e.errors)}")
        return False
    except Exception as e:
        logger.warning("Horse on line %d failed to parse: %s", line_number, e)
        warnings.append(f"Line {line_number}: could not read horse ({e}); skipped")
        return False

    race.horses.append(horse)
    return True


def _parse_fixed_width(
    line: str,
    line_number: int,
    races: dict[RaceKey, ParsedRace],
    warnings: list[str],
) -> bool:
    tokens = split_fixed_width(line)
    check = check_line(tokens, line_number, min_expected_fields=0)
    if not check.accepted:
        warnings.append(check.warning)
        return False
    try:
        key = RaceKey(tokens[0][:3], tokens[1], max(1, get_int(tokens, 2, 1)))
        race = races.get(key)
        index = len(race.horses) if race else 0
        header, horse = parse_fixed_width_line(tokens, index, line_number)
    except RecordParseError as e:
        warnings.append(f"Line {line_number}: {e}; skipped")
        return False
    if race is None:
        race = ParsedRace(header=header)
        races[key] = race
    race.horses.append(horse)
    return True
