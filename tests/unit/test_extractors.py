"""Tests for past-performance, workout and record extraction."""

import pytest

from furlong.models import FINISH_SENTINEL
from furlong.parser.extractors import (
    days_between,
    extract_past_performances,
    extract_trainer_categories,
    extract_workouts,
    parse_date,
    parse_margin,
    parse_rank,
    read_record,
)
from furlong.parser.fields import split_csv_line
from furlong.parser.schema import BRIS_12PP


def _fields(make_line, values):
    return split_csv_line(make_line(values))


class TestDates:
    def test_formats(self):
        assert parse_date("20240815").day == 15
        assert parse_date("2024-08-15").month == 8
        assert parse_date("08/15/2024").year == 2024

    def test_bad_date(self):
        assert parse_date("yesterday") is None
        assert parse_date("") is None

    def test_days_between(self):
        assert days_between("20240801", "20240815") == 14
        assert days_between("", "20240815") is None


class TestParseMargin:
    @pytest.mark.parametrize("raw,expected", [
        ("3", 3.0),
        ("2.5", 2.5),
        ("1 1/2", 1.5),
        ("3/4", 0.75),
        ("HD", 0.1),
        ("nk", 0.25),
        ("NOSE", 0.05),
    ])
    def test_values(self, raw, expected):
        assert parse_margin(raw) == pytest.approx(expected)

    def test_blank_and_junk(self):
        assert parse_margin("") is None
        assert parse_margin("far back") is None


class TestParseRank:
    def test_rank(self):
        assert parse_rank("1/30") == (1, 30)
        assert parse_rank(" 4 / 12 ") == (4, 12)

    def test_malformed(self):
        assert parse_rank("") == (None, None)
        assert parse_rank("31/30") == (None, None)
        assert parse_rank("0/5") == (None, None)


class TestReadRecord:
    def test_block(self):
        fields = [""] * 70
        fields[64:69] = ["10", "3", "2", "1", "125000"]
        record = read_record(fields, BRIS_12PP.lifetime)
        assert (record.starts, record.wins, record.places, record.shows) == (10, 3, 2, 1)
        assert record.earnings == 125000.0
        assert record.win_rate == pytest.approx(0.3)
        assert record.itm_rate == pytest.approx(0.6)

    def test_absent_block_is_zero(self):
        record = read_record(["5"] * 200, None)
        assert record.starts == 0 and record.win_rate == 0.0

    def test_negative_values_clamped(self):
        fields = [""] * 70
        fields[64:69] = ["-1", "-2", "", "", ""]
        record = read_record(fields, BRIS_12PP.lifetime)
        assert record.starts == 0 and record.wins == 0


class TestPastPerformances:
    def test_stops_at_first_blank_date(self, make_line, make_pp):
        values = {}
        values.update(make_pp(0, "20240720"))
        values.update(make_pp(1, "20240620"))
        values.update(make_pp(3, "20240420"))  # gap at index 2
        pps = extract_past_performances(_fields(make_line, values), BRIS_12PP)
        assert len(pps) == 2

    def test_fields_decoded(self, make_line, make_pp):
        values = make_pp(0, "20240720", finish=2, figure=94, yards=1540, margin="1 1/2",
                         trainer="Laurin L", jockey="Turcotte R")
        pp = extract_past_performances(_fields(make_line, values), BRIS_12PP)[0]
        assert pp.distance_furlongs == 7.0
        assert pp.distance == "7 furlongs"
        assert pp.finish_position == 2
        assert pp.lengths_behind == 1.5
        assert pp.speed_figure == 94
        assert pp.classification == "allowance"
        assert pp.trainer == "Laurin L"
        assert pp.jockey == "Turcotte R"
        assert pp.running_style == "E"

    def test_winner_has_no_lengths_behind(self, make_line, make_pp):
        values = make_pp(0, "20240720", finish=1, margin="3")
        pp = extract_past_performances(_fields(make_line, values), BRIS_12PP)[0]
        assert pp.won
        assert pp.lengths_behind == 0.0

    def test_missing_finish_uses_sentinel(self, make_line, make_pp):
        values = make_pp(0, "20240720")
        values[BRIS_12PP.pp_finish_position] = ""
        pp = extract_past_performances(_fields(make_line, values), BRIS_12PP)[0]
        assert pp.finish_position == FINISH_SENTINEL

    def test_days_since_previous(self, make_line, make_pp):
        values = {}
        values.update(make_pp(0, "20240720"))
        values.update(make_pp(1, "20240620"))
        pps = extract_past_performances(_fields(make_line, values), BRIS_12PP)
        assert pps[0].days_since_previous == 30
        assert pps[1].days_since_previous is None

    def test_connections_only_for_first_ten(self, make_line, make_pp):
        values = {}
        for i in range(12):
            values.update(make_pp(i, f"2024{12 - i:02d}01", trainer="T", jockey="J"))
        pps = extract_past_performances(_fields(make_line, values), BRIS_12PP)
        assert len(pps) == 12
        assert pps[9].trainer == "T"
        assert pps[10].trainer == ""


class TestWorkouts:
    def test_bullet(self, make_line, make_work):
        values = {}
        values.update(make_work(0, "20240810", rank="1/30"))
        values.update(make_work(1, "20240803", rank="5/30", time="1:01.2", yards=1100))
        works = extract_workouts(_fields(make_line, values), BRIS_12PP)
        assert len(works) == 2
        assert works[0].is_bullet
        assert works[0].distance_furlongs == 4.0
        assert works[0].type == "breeze"
        assert not works[1].is_bullet
        assert works[1].time_seconds == 61.2
        assert works[1].ranking == 5 and works[1].total_works == 30

    def test_no_workouts(self, make_line):
        assert extract_workouts(_fields(make_line, {0: "SAR"}), BRIS_12PP) == []


class TestTrainerCategories:
    def test_present_categories_only(self, make_line, make_trainer_category):
        values = {}
        values.update(make_trainer_category("first_time_lasix", 22, 27.0))
        values.update(make_trainer_category("dirt_sprint", 140, 18.5))
        stats = extract_trainer_categories(_fields(make_line, values), BRIS_12PP)
        assert set(stats) == {"first_time_lasix", "dirt_sprint"}
        assert stats["first_time_lasix"].starts == 22
        assert stats["first_time_lasix"].win_pct == 27.0
        assert stats["dirt_sprint"].roi == 1.5
