"""Tests for domain code tables and value parsers."""

import pytest

from furlong.models import PastPerformance, RunningLine
from furlong.parser.domain import (
    class_level,
    classify_pp_style,
    distance_category,
    format_distance,
    infer_running_style,
    is_wet_condition,
    odds_to_decimal,
    odds_to_probability,
    parse_classification,
    parse_distance,
    parse_equipment,
    parse_medication,
    parse_odds,
    parse_sex,
    parse_surface,
    parse_time_seconds,
    parse_track_condition,
    parse_workout_type,
    running_style_name,
)


class TestParseOdds:
    def test_fractional_dash(self):
        assert parse_odds("5-1") == ("5-1", 5.0)

    def test_fractional_slash_normalised(self):
        assert parse_odds("7/2") == ("7-2", 3.5)

    def test_even_money(self):
        assert parse_odds("even") == ("1-1", 1.0)
        assert parse_odds("EVN") == ("1-1", 1.0)

    def test_empty_is_not_an_error(self):
        assert parse_odds("") == ("", 0.0)
        assert parse_odds(None) == ("", 0.0)

    def test_whole_number(self):
        assert parse_odds("10") == ("10-1", 10.0)

    def test_decimal(self):
        assert parse_odds("2.5") == ("2.5", 2.5)

    def test_zero_denominator(self):
        assert parse_odds("5-0")[1] == 0.0

    def test_garbage(self):
        assert parse_odds("SCR") == ("SCR", 0.0)

    def test_odds_to_decimal(self):
        assert odds_to_decimal("9/5") == pytest.approx(1.8)


class TestOddsToProbability:
    def test_even_money_is_half(self):
        assert odds_to_probability(1.0) == 0.5

    def test_four_to_one(self):
        assert odds_to_probability(4.0) == pytest.approx(0.2)

    def test_unknown_odds(self):
        assert odds_to_probability(0.0) == 0.0
        assert odds_to_probability(-3) == 0.0


class TestSurfaceAndCondition:
    def test_surface_codes(self):
        assert parse_surface("D") == "dirt"
        assert parse_surface("T") == "turf"
        assert parse_surface("t") == "turf"
        assert parse_surface("A") == "synthetic"

    def test_surface_words(self):
        assert parse_surface("Inner Turf") == "turf"
        assert parse_surface("Tapeta") == "synthetic"

    def test_surface_default(self):
        assert parse_surface("") == "dirt"
        assert parse_surface("??") == "dirt"

    def test_condition_codes(self):
        assert parse_track_condition("SY") == "sloppy"
        assert parse_track_condition("fm") == "firm"
        assert parse_track_condition("muddy") == "muddy"
        assert parse_track_condition("") == "fast"

    def test_wet(self):
        assert is_wet_condition("sloppy")
        assert is_wet_condition("yielding")
        assert not is_wet_condition("fast")
        assert not is_wet_condition("firm")


class TestClassification:
    def test_codes(self):
        assert parse_classification("G1") == "stakes-graded-1"
        assert parse_classification("AO") == "allowance-optional-claiming"
        assert parse_classification("M") == "maiden-claiming"

    def test_keyword_fallback(self):
        assert parse_classification("", "Maiden Special Weight for 2yo") == "maiden"
        assert parse_classification("", "Grade 2 Stakes") == "stakes-graded-2"
        assert parse_classification("", "Claiming $25,000") == "claiming"

    def test_maiden_claiming_beats_maiden(self):
        assert parse_classification("", "MAIDEN CLAIMING $20,000") == "maiden-claiming"

    def test_unknown(self):
        assert parse_classification("", "") == "unknown"

    def test_hierarchy_order(self):
        assert class_level("maiden-claiming") < class_level("claiming") < class_level("allowance")
        assert class_level("stakes-graded-1") > class_level("stakes-graded-3")
        assert class_level("unknown") == class_level("claiming")


class TestDistance:
    def test_furlongs_preferred(self):
        assert parse_distance(furlongs=6, yards=1760) == 6.0

    def test_yards_conversion(self):
        assert parse_distance(yards=1320) == 6.0

    def test_missing(self):
        assert parse_distance() == 0.0

    def test_format_sprint(self):
        assert format_distance(6) == "6 furlongs"
        assert format_distance(6.5) == "6 1/2 furlongs"

    def test_format_route(self):
        assert format_distance(8.5) == "1 1/16 miles"
        assert format_distance(9) == "1 1/8 miles"
        assert format_distance(10) == "1 1/4 miles"

    def test_format_unknown(self):
        assert format_distance(0) == "Unknown"

    def test_category(self):
        assert distance_category(6) == "sprint"
        assert distance_category(8) == "route"
        assert distance_category(0) == "unknown"


class TestEquipmentAndMedication:
    def test_blinkers(self):
        eq = parse_equipment("Blinkers")
        assert eq.blinkers and not eq.blinkers_off

    def test_blinkers_off_is_not_blinkers_on(self):
        eq = parse_equipment("BLINKERS OFF")
        assert eq.blinkers_off
        assert not eq.blinkers

    def test_first_time_blinkers(self):
        eq = parse_equipment("1ST TIME BLINKERS")
        assert "blinkers" in eq.first_time

    def test_numeric_change_codes(self):
        assert parse_equipment("1").first_time == ["blinkers"]
        assert parse_equipment("2").blinkers_off

    def test_multiple_items(self):
        eq = parse_equipment("B TT F")
        assert eq.blinkers and eq.tongue_tie and eq.front_bandages
        assert eq.first_time == []

    def test_lasix(self):
        med = parse_medication("L")
        assert med.lasix and not med.first_time_lasix

    def test_first_time_lasix_code(self):
        med = parse_medication("4")
        assert med.lasix and med.first_time_lasix and not med.bute

    def test_first_time_lasix_flag(self):
        assert parse_medication("", first_time_lasix_flag=True).first_time_lasix

    def test_lasix_off(self):
        med = parse_medication("LASIX OFF")
        assert med.lasix_off and not med.lasix


class TestMiscCodes:
    def test_sex(self):
        assert parse_sex("F") == "filly"
        assert parse_sex("g") == "gelding"
        assert parse_sex("") == "unknown"

    def test_workout_type(self):
        assert parse_workout_type("B") == "breeze"
        assert parse_workout_type("Handily") == "handily"
        assert parse_workout_type("") == "unknown"

    def test_time_seconds(self):
        assert parse_time_seconds("48.2") == 48.2
        assert parse_time_seconds("1:12.40") == 72.4
        assert parse_time_seconds("-59.1") == 59.1
        assert parse_time_seconds("fast") == 0.0


def _make_pp(first_call=None, lengths=None, finish=5, stretch=None, field_size=10):
    return PastPerformance(
        date="20240101",
        field_size=field_size,
        finish_position=finish,
        running_line=RunningLine(first_call=first_call, first_call_lengths=lengths, stretch=stretch),
    )


class TestRunningStyle:
    def test_leader_is_early(self):
        assert classify_pp_style(_make_pp(first_call=1)) == "E"

    def test_close_up_is_early_presser(self):
        assert classify_pp_style(_make_pp(first_call=3, lengths=1.5)) == "E/P"

    def test_mid_pack_is_presser(self):
        assert classify_pp_style(_make_pp(first_call=4, lengths=4)) == "P"

    def test_rally_from_back_is_closer(self):
        assert classify_pp_style(_make_pp(first_call=9, lengths=10, finish=2, stretch=4)) == "C"

    def test_back_without_rally_is_sustained(self):
        assert classify_pp_style(_make_pp(first_call=9, lengths=10, finish=8, stretch=8)) == "S"

    def test_no_calls(self):
        assert classify_pp_style(_make_pp()) == "U"

    def test_declared_style_wins(self):
        assert infer_running_style([_make_pp(first_call=9)], declared="EP") == "E/P"

    def test_inferred_majority(self):
        pps = [_make_pp(first_call=1), _make_pp(first_call=1), _make_pp(first_call=5, lengths=4)]
        assert infer_running_style(pps) == "E"

    def test_tie_resolves_toward_speed(self):
        pps = [_make_pp(first_call=5, lengths=4), _make_pp(first_call=1)]
        assert infer_running_style(pps) == "E"

    def test_style_names(self):
        assert running_style_name("E/P") == "Early/Presser"
        assert running_style_name(None) == "Unknown"
