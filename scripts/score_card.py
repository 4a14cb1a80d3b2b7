"""Parse a DRF card and print ranked scores for each race.

Usage:
    python scripts/score_card.py card.drf
    python scripts/score_card.py card.drf --race 5 --condition sloppy
    python scripts/score_card.py card.drf --schema legacy --json
    python scripts/score_card.py card.drf --audit
    python scripts/score_card.py card.drf --race 5 --patterns
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from furlong.config import get_settings
from furlong.models import ParsedFile, ParsedRace, ParseProgress
from furlong.parser import audit_parsed_file, parse_drf_file
from furlong.patterns import get_analyzer
from furlong.patterns.engine import summarize_database
from furlong.scoring import RaceScoreResult, score_parsed_race

logger = logging.getLogger(__name__)


def _log_progress(update: ParseProgress) -> None:
    logger.debug("%3d%% %s %s", update.progress, update.step, update.message)


def race_to_dict(result: RaceScoreResult) -> dict:
    header = result.header
    return {
        "race": str(header.key),
        "distance": header.distance,
        "surface": header.surface,
        "classification": header.classification,
        "pace": result.pace.scenario,
        "field_strength": result.field_strength.label,
        "warnings": result.warnings,
        "horses": [
            {
                "rank": s.rank,
                "program": s.horse.program_number,
                "post": s.horse.post_position,
                "name": s.horse.horse_name,
                "odds": s.horse.morning_line_odds,
                "base": s.score.base_score,
                "overlay": s.score.overlay_score,
                "total": s.score.total,
                "tier": s.score.tier,
                "data": s.score.data_completeness,
                "categories": s.score.categories.as_dict(),
                "fallbacks": list(s.score.fallbacks),
            }
            for s in (result.ranked + result.scratched)
        ],
    }


def print_race(result: RaceScoreResult) -> None:
    header = result.header
    print("\n" + "=" * 72)
    print(f"{header.key}  {header.distance} {header.surface}  {header.classification}  "
          f"purse ${header.purse:,}")
    print(f"Pace: {result.pace.scenario}  Field: {result.field_strength.label} "
          f"(gap {result.field_strength.gap})")
    print("=" * 72)
    print(f"{'Rk':>3} {'#':>3} {'Horse':<24} {'ML':>6} {'Base':>7} {'Ovl':>6} {'Total':>7}  Tier")
    for s in result.ranked:
        flag = "*" if s.score.data_completeness == "sparse" else " "
        print(f"{s.rank:>3} {s.horse.program_number:>3} {s.horse.horse_name[:24]:<24} "
              f"{s.horse.morning_line_odds:>6} {s.score.base_score:>7.1f} {s.score.overlay_score:>6.1f} "
              f"{s.score.total:>7.1f}{flag} {s.score.tier}")
    for s in result.scratched:
        print(f"{'-':>3} {s.horse.program_number:>3} {s.horse.horse_name[:24]:<24} scratched")
    for warning in result.warnings:
        print(f"  ! {warning}")


def print_audit(parsed: ParsedFile) -> None:
    report = audit_parsed_file(parsed)
    print(f"\nData quality: {report.summary()}")
    for issue in report.issues:
        print(f"  [{issue.severity}] {issue.message}")


def print_patterns(race: ParsedRace) -> None:
    db = get_analyzer().database_for(race.key, race.horses)
    rows = summarize_database(db)
    print(f"\nConnections in {race.key} ({db.pps_analyzed} PPs analyzed)")
    if not rows:
        print("  No trainer or jockey with enough starts")
    for row in rows[:15]:
        print(f"  {row['dimension']:<12} {row['insight_text']}")


def main():
    parser = argparse.ArgumentParser(description="Score a DRF past-performance card")
    parser.add_argument("file", help="Path to the DRF export")
    parser.add_argument("--race", type=int, default=None, help="Only this race number")
    parser.add_argument("--condition", default=None, help="Override track condition (e.g. sloppy)")
    parser.add_argument("--schema", default=None, help="Field schema revision (default from settings)")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    parser.add_argument("--audit", action="store_true", help="Also print the data-quality audit")
    parser.add_argument("--patterns", action="store_true", help="Also print trainer/jockey pattern summaries")
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO),
                        format="%(asctime)s %(levelname)s %(message)s")

    path = Path(args.file)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error("Cannot read %s: %s", path, e)
        return 2

    parsed = parse_drf_file(data, filename=path.name, progress=_log_progress,
                            schema_revision=args.schema, settings=settings)
    for warning in parsed.warnings:
        logger.warning(warning)
    for error in parsed.race_errors:
        logger.error(error)
    if not parsed.is_valid:
        for error in parsed.errors:
            logger.error(error)
        return 1

    results = []
    patterns = []
    for race in parsed.races:
        if args.race is not None and race.header.race_number != args.race:
            continue
        if not race.is_usable:
            logger.warning("Skipping %s: %s", race.key, "; ".join(race.errors))
            continue
        results.append(score_parsed_race(race, track_condition=args.condition))
        if args.patterns and not args.json:
            patterns.append(race)

    if args.json:
        print(json.dumps([race_to_dict(r) for r in results], indent=2))
    else:
        for result in results:
            print_race(result)
        for race in patterns:
            print_patterns(race)
        if args.audit:
            print_audit(parsed)
    return 0


if __name__ == "__main__":
    sys.exit(main())
