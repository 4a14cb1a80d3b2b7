"""Shared test fixtures: synthetic DRF lines and cards."""

import pytest

from furlong.config import get_settings
from furlong.parser.schema import BRIS_12PP, TRAINER_CATEGORIES
from furlong.patterns.engine import clear_pattern_caches

LINE_WIDTH = 1250  # covers the trainer-category block at 1145


def _quote(value) -> str:
    text = "" if value is None else str(value)
    if "," in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def build_line(values: dict, width: int = LINE_WIDTH) -> str:
    """Comma-delimited line with ``values`` placed at their 0-based indices."""
    size = max(width, max(values, default=0) + 1)
    fields = [""] * size
    for index, value in values.items():
        fields[index] = _quote(value)
    return ",".join(fields)


def horse_values(
    track: str = "SAR",
    date: str = "20240815",
    race: int = 5,
    post: int = 1,
    name: str = "Secretariat",
    odds: str = "5-1",
    trainer: str = "Lucien Laurin",
    jockey: str = "Ron Turcotte",
    overrides: dict[int, object] | None = None,
    **extra,
) -> dict:
    s = BRIS_12PP
    values = {
        s.track_code: track,
        s.race_date: date,
        s.race_number: race,
        s.post_position: post,
        s.surface: "D",
        s.race_type: "A",
        s.purse: 80000,
        s.distance_furlongs: 6,
        s.trainer_name: trainer,
        s.jockey_name: jockey,
        s.program_number: post,
        s.morning_line: odds,
        s.horse_name: name,
        s.age: 4,
        s.sex: "C",
        s.weight: 122,
    }
    values.update(extra)
    if overrides:
        values.update(overrides)
    return values


def pp_values(i: int, date: str, finish: int = 1, figure: int = 90, track: str = "SAR",
              yards: int = 1320, surface: str = "D", race_type: str = "A",
              trainer: str = "", jockey: str = "", first_call: int = 1, margin: str = "",
              weight: int = 0, late_pace: int | None = None) -> dict:
    """Fields for past performance ``i`` (0 = most recent)."""
    s = BRIS_12PP
    values = {
        s.pp_date + i: date,
        s.pp_distance_yards + i: yards,
        s.pp_track + i: track,
        s.pp_surface + i: surface,
        s.pp_condition + i: "FT",
        s.pp_field_size + i: 8,
        s.pp_finish_position + i: finish,
        s.pp_margin + i: margin,
        s.pp_race_type + i: race_type,
        s.pp_first_call_position + i: first_call,
        s.pp_speed_figure + i: figure,
    }
    if weight:
        values[s.pp_weight + i] = weight
    if late_pace is not None:
        values[s.pp_late_pace + i] = late_pace
    if i < s.pp_connections_depth:
        values[s.pp_trainer + i] = trainer
        values[s.pp_jockey + i] = jockey
    return values


def work_values(i: int, date: str, rank: str = "3/20", time: str = "48.2", yards: int = 880) -> dict:
    s = BRIS_12PP
    return {
        s.work_date + i: date,
        s.work_track + i: "SAR",
        s.work_distance_yards + i: yards,
        s.work_time + i: time,
        s.work_type + i: "B",
        s.work_condition + i: "FT",
        s.work_surface + i: "D",
        s.work_rank + i: rank,
    }


def trainer_category_values(category: str, starts: int, win_pct: float, itm_pct: float = 50.0,
                            roi: float = 1.5) -> dict:
    base = BRIS_12PP.trainer_categories + TRAINER_CATEGORIES.index(category) * BRIS_12PP.trainer_category_width
    return {base: starts, base + 1: win_pct, base + 2: itm_pct, base + 3: roi}


@pytest.fixture(autouse=True)
def _reset_caches():
    """Settings and pattern caches are process-wide; isolate every test."""
    get_settings.cache_clear()
    clear_pattern_caches()
    yield
    get_settings.cache_clear()
    clear_pattern_caches()


@pytest.fixture
def make_line():
    return build_line


@pytest.fixture
def make_horse():
    return horse_values


@pytest.fixture
def make_pp():
    return pp_values


@pytest.fixture
def make_work():
    return work_values


@pytest.fixture
def make_trainer_category():
    return trainer_category_values


@pytest.fixture
def sample_card() -> str:
    """Two races at SAR, out of order, with horses out of post order."""
    lines = []
    race6 = [
        (3, "Sham", "3-1"),
        (1, "Forego", "5-2"),
        (2, "Riva Ridge", "7/2"),
    ]
    for post, name, odds in race6:
        values = horse_values(race=6, post=post, name=name, odds=odds)
        values.update(pp_values(0, "20240720", finish=post, figure=88 + post))
        lines.append(build_line(values))

    race5 = [
        (2, "Secretariat", "even"),
        (1, "Sham", "4-1"),
    ]
    for post, name, odds in race5:
        values = horse_values(race=5, post=post, name=name, odds=odds)
        values.update(pp_values(0, "20240720", finish=1, figure=95))
        values.update(pp_values(1, "20240620", finish=2, figure=92))
        values.update(work_values(0, "20240810", rank="1/30"))
        lines.append(build_line(values))
    return "\n".join(lines) + "\n"
