"""Post-parse data-quality audit.

Walks a ``ParsedFile`` and grades everything that would weaken handicapping:
missing identity fields, implausible odds, posts, finishes, figures and
workouts. ``high`` issues make the report invalid; ``medium`` and ``low`` are
advisory.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field

from furlong.models import HorseEntry, ParsedFile, ParsedRace, PastPerformance, Workout
from furlong.parser.schema import SPEED_FIGURE_RANGE

logger = logging.getLogger(__name__)

# Plausibility bounds
RACE_DISTANCE_RANGE = (2, 16)       # furlongs
WORKOUT_DISTANCE_RANGE = (2, 12)    # furlongs
POST_POSITION_RANGE = (1, 24)
PROGRAM_NUMBER_RANGE = (1, 99)
FINISH_RANGE = (1, 20)
WEIGHT_RANGE = (100, 140)
ODDS_SUSPICIOUS_LOW = 0.1
ODDS_SUSPICIOUS_HIGH = 99
MAX_FIELD_SIZE = 20


@dataclass
class QualityIssue:
    severity: str       # "high", "medium" or "low"
    field: str
    message: str
    race_index: int = -1
    horse_index: int = -1
    suggestion: str = ""


@dataclass
class QualityReport:
    issues: list[QualityIssue] = field(default_factory=list)
    races_checked: int = 0
    horses_checked: int = 0
    horses_with_issues: int = 0

    @property
    def errors(self) -> list[QualityIssue]:
        return [i for i in self.issues if i.severity == "high"]

    @property
    def warnings(self) -> list[QualityIssue]:
        return [i for i in self.issues if i.severity != "high"]

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    @property
    def completeness(self) -> float:
        """Percent of horses with no issue at all."""
        if not self.horses_checked:
            return 0.0
        return round(100.0 * (self.horses_checked - self.horses_with_issues) / self.horses_checked, 1)

    def summary(self) -> str:
        if not self.issues:
            return f"Clean: {self.horses_checked} horses across {self.races_checked} races"
        return (
            f"{len(self.errors)} high, {len(self.warnings)} other issues "
            f"({self.horses_checked} horses, {self.races_checked} races, "
            f"{self.completeness}% complete)"
        )


def _in_range(value, bounds) -> bool:
    return value is not None and bounds[0] <= value <= bounds[1]


def _check_pp(pp: PastPerformance, n: int, ri: int, hi: int, name: str) -> list[QualityIssue]:
    issues = []
    prefix = f"Race {ri + 1}, {name}: PP #{n + 1}"
    if not pp.date:
        issues.append(QualityIssue("low", f"past_performances[{n}].date", f"{prefix} missing date", ri, hi))
    if not _in_range(pp.finish_position, FINISH_RANGE):
        issues.append(QualityIssue("low", f"past_performances[{n}].finish_position",
                                   f"{prefix} invalid finish position", ri, hi))
    if pp.speed_figure is not None and not _in_range(pp.speed_figure, SPEED_FIGURE_RANGE):
        issues.append(QualityIssue("low", f"past_performances[{n}].speed_figure",
                                   f"{prefix} unusual speed figure ({pp.speed_figure})", ri, hi))
    return issues


def _check_workout(work: Workout, n: int, ri: int, hi: int, name: str) -> list[QualityIssue]:
    issues = []
    prefix = f"Race {ri + 1}, {name}: Workout #{n + 1}"
    if work.time_seconds <= 0:
        issues.append(QualityIssue("low", f"workouts[{n}].time_seconds", f"{prefix} missing time", ri, hi))
    if not _in_range(work.distance_furlongs, WORKOUT_DISTANCE_RANGE):
        issues.append(QualityIssue("low", f"workouts[{n}].distance_furlongs",
                                   f"{prefix} unusual distance", ri, hi))
    return issues


def _check_horse(horse: HorseEntry, ri: int, hi: int) -> list[QualityIssue]:
    issues = []
    name = horse.horse_name or f"Entry #{horse.program_number}"
    where = f"Race {ri + 1}, {name}"

    if not horse.horse_name:
        issues.append(QualityIssue("high", "horse_name", f"Race {ri + 1}, Entry #{horse.program_number}: "
                                   "Missing horse name", ri, hi,
                                   "Horse name is required for accurate handicapping"))
    if not horse.trainer_name or horse.trainer_name == "Unknown":
        issues.append(QualityIssue("medium", "trainer_name", f"{where}: Missing trainer name", ri, hi,
                                   "Trainer statistics will not be available"))
    if not horse.jockey_name or horse.jockey_name == "Unknown":
        issues.append(QualityIssue("medium", "jockey_name", f"{where}: Missing jockey name", ri, hi,
                                   "Jockey statistics will not be available"))

    odds = horse.morning_line_decimal
    if odds <= 0:
        issues.append(QualityIssue("high", "morning_line_odds",
                                   f"{where}: Invalid or missing morning line odds", ri, hi,
                                   "Enter odds manually before analyzing"))
    elif odds < ODDS_SUSPICIOUS_LOW or odds > ODDS_SUSPICIOUS_HIGH:
        issues.append(QualityIssue("low", "morning_line_odds",
                                   f"{where}: Odds look unusual ({horse.morning_line_odds})", ri, hi))

    if not _in_range(horse.post_position, POST_POSITION_RANGE):
        issues.append(QualityIssue("medium", "post_position",
                                   f"{where}: Invalid post position ({horse.post_position})", ri, hi,
                                   "Post position should be between 1 and 24"))
    if not _in_range(horse.program_number, PROGRAM_NUMBER_RANGE):
        issues.append(QualityIssue("medium", "program_number",
                                   f"{where}: Invalid program number ({horse.program_number})", ri, hi))
    if horse.weight and not _in_range(horse.weight, WEIGHT_RANGE):
        issues.append(QualityIssue("low", "weight", f"{where}: Unusual weight ({horse.weight} lbs)", ri, hi))

    for n, pp in enumerate(horse.past_performances):
        issues.extend(_check_pp(pp, n, ri, hi, name))
    for n, work in enumerate(horse.workouts):
        issues.extend(_check_workout(work, n, ri, hi, name))
    return issues


def _check_race(race: ParsedRace, ri: int) -> list[QualityIssue]:
    issues = []
    header = race.header
    if not header.track_code or header.track_code == "UNK":
        issues.append(QualityIssue("high", "track_code", f"Race {ri + 1}: Missing track code", ri))
    if header.distance_furlongs <= 0:
        issues.append(QualityIssue("high", "distance", f"Race {ri + 1}: Missing distance", ri))
    elif not _in_range(header.distance_furlongs, RACE_DISTANCE_RANGE):
        issues.append(QualityIssue("medium", "distance_furlongs",
                                   f"Race {ri + 1}: Unusual distance ({header.distance_furlongs}f)", ri,
                                   suggestion="Distance should be between 2 and 16 furlongs"))

    if len(race.horses) < 2:
        issues.append(QualityIssue("high", "horses",
                                   f"Race {ri + 1}: Only {len(race.horses)} horse(s), need at least 2", ri,
                                   suggestion="Check if the file is complete"))
    elif len(race.horses) > MAX_FIELD_SIZE:
        issues.append(QualityIssue("low", "horses",
                                   f"Race {ri + 1}: Large field ({len(race.horses)} horses)", ri))

    if header.purse <= 0:
        issues.append(QualityIssue("low", "purse", f"Race {ri + 1}: Missing purse amount", ri))

    dupes = sorted(p for p, c in Counter(h.post_position for h in race.horses).items() if c > 1)
    if dupes:
        issues.append(QualityIssue("medium", "post_positions",
                                   f"Race {ri + 1}: Duplicate post positions: {', '.join(map(str, dupes))}",
                                   ri, suggestion="May indicate coupled entries or a data error"))
    return issues


def audit_parsed_file(parsed: ParsedFile | None) -> QualityReport:
    """Grade every race, horse, PP and workout in ``parsed``."""
    report = QualityReport()
    if parsed is None or not parsed.races:
        report.issues.append(QualityIssue("high", "races", "No races to audit"))
        return report

    for ri, race in enumerate(parsed.races):
        report.races_checked += 1
        report.issues.extend(_check_race(race, ri))
        for hi, horse in enumerate(race.horses):
            report.horses_checked += 1
            horse_issues = _check_horse(horse, ri, hi)
            if horse_issues:
                report.horses_with_issues += 1
            report.issues.extend(horse_issues)

    logger.debug("Audit of %s: %s", parsed.filename or "<content>", report.summary())
    return report
