"""Tests for trainer/jockey pattern analysis."""

import threading

import pytest

from furlong.models import HorseEntry, PastPerformance, RaceKey, StatsRecord
from furlong.patterns import engine
from furlong.patterns.engine import (
    NullEvidence,
    PatternAnalyzer,
    RaceEvidence,
    _make_result,
    build_pattern_database,
    classify_jockey_pattern,
    classify_partnership,
    classify_trainer_pattern,
    get_analyzer,
    normalize_name,
    pattern_cache_stats,
    pattern_credit,
    summarize_database,
)

KEY = RaceKey("SAR", "20240815", 5)


def _pps(count, wins, trainer="Lucien Laurin", jockey="Ron Turcotte", track="SAR", surface="dirt",
         furlongs=6.0):
    return [
        PastPerformance(date=f"2024{(n % 12) + 1:02d}01", track=track, surface=surface,
                        distance_furlongs=furlongs, finish_position=1 if n < wins else 4,
                        trainer=trainer, jockey=jockey)
        for n in range(count)
    ]


class TestTierGates:
    def test_trainer_needs_fifteen_starts(self):
        assert classify_trainer_pattern(10, 40.0) == "insufficient"
        assert classify_trainer_pattern(14, 100.0) == "insufficient"

    def test_trainer_tiers(self):
        assert classify_trainer_pattern(18, 25.0) == "elite"
        assert classify_trainer_pattern(18, 20.0) == "strong"
        assert classify_trainer_pattern(18, 15.0) == "above_average"
        assert classify_trainer_pattern(18, 10.0) == "average"
        assert classify_trainer_pattern(18, 5.0) == "below_average"

    def test_jockey_needs_twenty_starts(self):
        assert classify_jockey_pattern(19, 50.0) == "insufficient"
        assert classify_jockey_pattern(20, 20.0) == "elite"
        assert classify_jockey_pattern(20, 12.0) == "average"

    def test_partnership(self):
        assert classify_partnership(4, 50.0) == "insufficient"
        assert classify_partnership(6, 50.0) == "strong"  # elite needs 8 starts
        assert classify_partnership(8, 30.0) == "elite"
        assert classify_partnership(10, 10.0) == "none"

    def test_pattern_credit(self):
        assert pattern_credit(20) == 1.0
        assert pattern_credit(12) == 0.7
        assert pattern_credit(5) == 0.4
        assert pattern_credit(4) == 0.0

    def test_normalize_name(self):
        assert normalize_name("  O'Neill,  Doug ") == "O NEILL DOUG"
        assert normalize_name(None) == ""


class TestDatabase:
    def test_tallies_by_context(self):
        horse = HorseEntry(horse_name="A", past_performances=_pps(6, 2) + _pps(4, 1, track="BEL"))
        db = build_pattern_database(KEY, [horse])
        profile = db.trainers["LUCIEN LAURIN"]
        assert profile["overall"].starts == 10
        assert profile["overall"].wins == 3
        assert profile["track:SAR"].starts == 6
        assert profile["track:BEL"].starts == 4
        assert profile["distance:sprint"].starts == 10
        assert db.partnerships[("LUCIEN LAURIN", "RON TURCOTTE")].starts == 10
        assert db.pps_analyzed == 10
        assert db.horses_processed == 1

    def test_pps_without_connections_only_count_as_analyzed(self):
        horse = HorseEntry(past_performances=_pps(3, 1, trainer="", jockey=""))
        db = build_pattern_database(KEY, [horse])
        assert db.trainers == {} and db.partnerships == {}
        assert db.pps_analyzed == 3

    def test_sentinel_finishes_skipped(self):
        pps = _pps(2, 0)
        pps[0].finish_position = 99
        db = build_pattern_database(KEY, [HorseEntry(past_performances=pps)])
        assert db.pps_analyzed == 1

    def test_meet_record_keeps_largest_sample(self):
        a = HorseEntry(trainer_name="Laurin", trainer_meet=StatsRecord(starts=10, wins=2))
        b = HorseEntry(trainer_name="LAURIN", trainer_meet=StatsRecord(starts=30, wins=9))
        db = build_pattern_database(KEY, [a, b])
        assert db.trainer_meet["LAURIN"].starts == 30


class TestRaceEvidence:
    def test_prefers_specific_credible_context(self):
        pps = _pps(16, 5) + _pps(10, 0, track="BEL")
        db = build_pattern_database(KEY, [HorseEntry(past_performances=pps)])
        ev = RaceEvidence(db).evidence("Lucien Laurin", "Ron Turcotte", "SAR", "dirt", "sprint")
        assert ev.trainer.source == "track:SAR"
        assert ev.trainer.starts == 16
        assert ev.trainer.tier == "elite"
        assert ev.trainer.is_credible

    def test_falls_back_to_overall_context(self):
        pps = _pps(8, 2) + _pps(8, 1, track="BEL")
        db = build_pattern_database(KEY, [HorseEntry(past_performances=pps)])
        ev = RaceEvidence(db).evidence("Lucien Laurin", "", "AQU", "turf", "route")
        assert ev.trainer.source == "overall"
        assert ev.trainer.starts == 16
        assert ev.trainer.tier == "above_average"

    def test_meet_record_used_when_larger(self):
        horse = HorseEntry(trainer_name="Lucien Laurin", trainer_meet=StatsRecord(starts=40, wins=12),
                           past_performances=_pps(3, 1))
        db = build_pattern_database(KEY, [horse])
        ev = RaceEvidence(db).evidence("Lucien Laurin", "", "SAR", "dirt", "sprint")
        assert ev.trainer.source == "meet"
        assert ev.trainer.tier == "elite"

    def test_unknown_connections(self):
        db = build_pattern_database(KEY, [])
        ev = RaceEvidence(db).evidence("Nobody", "No One", "SAR", "dirt", "sprint")
        assert not ev.trainer.is_credible
        assert ev.partnership.starts == 0

    def test_partnership(self):
        db = build_pattern_database(KEY, [HorseEntry(past_performances=_pps(10, 4))])
        ev = RaceEvidence(db).evidence("lucien laurin", "RON TURCOTTE", "SAR", "dirt", "sprint")
        assert ev.partnership.tier == "elite"
        assert ev.partnership.win_rate == 40.0

    def test_null_evidence(self):
        ev = NullEvidence().evidence("A", "B", "SAR", "dirt", "sprint")
        assert ev.trainer.tier == "insufficient"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestAnalyzerCache:
    def test_cached_within_ttl(self):
        clock = FakeClock()
        analyzer = PatternAnalyzer(ttl_seconds=60, clock=clock)
        first = analyzer.database_for(KEY, [])
        clock.now += 59
        assert analyzer.database_for(KEY, []) is first
        assert analyzer.stats()["builds"] == 1
        assert analyzer.stats()["hits"] == 1

    def test_rebuilt_after_ttl(self):
        clock = FakeClock()
        analyzer = PatternAnalyzer(ttl_seconds=60, clock=clock)
        first = analyzer.database_for(KEY, [])
        clock.now += 60
        assert analyzer.database_for(KEY, []) is not first
        assert analyzer.builds == 2

    def test_keys_cached_separately(self):
        analyzer = PatternAnalyzer()
        analyzer.database_for(KEY, [])
        analyzer.database_for(RaceKey("SAR", "20240815", 6), [])
        assert analyzer.stats()["cached_races"] == 2

    def test_changed_field_rebuilds(self):
        analyzer = PatternAnalyzer()
        losing = [HorseEntry(horse_name="Forego", past_performances=_pps(12, 0))]
        winning = [HorseEntry(horse_name="Forego", past_performances=_pps(12, 6))]
        first = analyzer.for_race(KEY, losing).evidence("Lucien Laurin", "", "SAR", "dirt", "sprint")
        second = analyzer.for_race(KEY, winning).evidence("Lucien Laurin", "", "SAR", "dirt", "sprint")
        assert first.trainer.wins == 0
        assert second.trainer.wins == 6
        assert analyzer.builds == 2
        assert analyzer.stats()["cached_races"] == 1

    def test_same_field_reused(self):
        analyzer = PatternAnalyzer()
        first = analyzer.database_for(KEY, [HorseEntry(horse_name="Forego", past_performances=_pps(12, 3))])
        again = analyzer.database_for(KEY, [HorseEntry(horse_name="Forego", past_performances=_pps(12, 3))])
        assert again is first
        assert analyzer.hits == 1

    def test_expired_entries_evicted(self):
        clock = FakeClock()
        analyzer = PatternAnalyzer(ttl_seconds=60, clock=clock)
        analyzer.database_for(KEY, [])
        analyzer.database_for(RaceKey("SAR", "20240815", 6), [])
        clock.now += 61
        analyzer.database_for(RaceKey("SAR", "20240816", 1), [])
        assert analyzer.stats()["cached_races"] == 1
        assert set(analyzer._locks) == {RaceKey("SAR", "20240816", 1)}

    def test_single_build_under_concurrency(self, monkeypatch):
        analyzer = PatternAnalyzer()
        calls = []
        barrier = threading.Barrier(8)
        real_build = engine.build_pattern_database

        def slow_build(*args, **kwargs):
            calls.append(1)
            return real_build(*args, **kwargs)

        monkeypatch.setattr(engine, "build_pattern_database", slow_build)
        results = []

        def worker():
            barrier.wait()
            results.append(analyzer.database_for(KEY, []))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(calls) == 1
        assert all(r is results[0] for r in results)

    def test_clear(self):
        analyzer = PatternAnalyzer()
        analyzer.database_for(KEY, [])
        analyzer.clear()
        assert analyzer.stats()["cached_races"] == 0
        assert analyzer.builds == 0

    def test_shared_analyzer_uses_settings_ttl(self, monkeypatch):
        monkeypatch.setattr(engine, "_default_analyzer", None)
        monkeypatch.setenv("FURLONG_PATTERN_CACHE_TTL_SECONDS", "120")
        assert get_analyzer().ttl_seconds == 120
        assert get_analyzer() is get_analyzer()
        get_analyzer().database_for(KEY, [])
        assert pattern_cache_stats()["builds"] == 1


class TestSummaries:
    def test_make_result(self):
        row = _make_result("trainer", "LAURIN", 20, 5, 10)
        assert row["hit_rate"] == 25.0
        assert row["itm_rate"] == 50.0
        assert row["insight_text"] == "LAURIN: 25.0% SR (5/20), 50.0% ITM"

    def test_make_result_zero_starts(self):
        assert _make_result("jockey", "X", 0, 0)["hit_rate"] == 0.0

    def test_summarize_database(self):
        horses = [
            HorseEntry(past_performances=_pps(10, 4)),
            HorseEntry(past_performances=_pps(6, 1, trainer="Allen Jerkens", jockey="Angel Cordero")),
            HorseEntry(past_performances=_pps(3, 3, trainer="Woody Stephens", jockey="")),
        ]
        rows = summarize_database(build_pattern_database(KEY, horses))
        keys = [(r["dimension"], r["key"]) for r in rows]
        assert ("trainer", "WOODY STEPHENS") not in keys  # under the minimum sample
        assert rows[0]["hit_rate"] == 40.0
        assert ("partnership", "ALLEN JERKENS / ANGEL CORDERO") in keys
        assert rows == sorted(rows, key=lambda r: (-r["hit_rate"], -r["sample_count"], r["key"]))

    def test_rates_rounded(self):
        row = _make_result("trainer", "X", 3, 1)
        assert row["hit_rate"] == pytest.approx(33.3)
