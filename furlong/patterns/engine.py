"""Trainer, jockey and partnership pattern analysis.

Mines the past performances of every horse in a race for trainer/jockey
records (overall and by track, surface and distance category) and supplies
sample-gated win-rate evidence to the scoring engine.

Databases are built per race key, cached with a time-to-live, and built at
most once per key even with concurrent callers (per-key lock).
"""

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol

from furlong.models import HorseEntry, RaceKey, StatsRecord
from furlong.parser.domain import distance_category

logger = logging.getLogger(__name__)

MIN_SAMPLE = 5  # minimum starts per group to include in summaries

# Sample gates: below these, evidence is "insufficient" whatever the rate
TRAINER_MIN_STARTS = 15
JOCKEY_MIN_STARTS = 20
PARTNERSHIP_MIN_STARTS = 5
PARTNERSHIP_ELITE_MIN_STARTS = 8

DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60

# (tier, minimum win %) highest first
TRAINER_TIERS = [
    ("elite", 25.0),
    ("strong", 20.0),
    ("above_average", 15.0),
    ("average", 10.0),
    ("below_average", 0.0),
]
JOCKEY_TIERS = [
    ("elite", 20.0),
    ("strong", 15.0),
    ("average", 10.0),
    ("below_average", 0.0),
]
PARTNERSHIP_TIERS = [
    ("elite", 30.0),
    ("strong", 25.0),
    ("good", 20.0),
    ("regular", 15.0),
]

# Situational-pattern credit by sample size: (min starts, credit)
PATTERN_CREDIT_TIERS = [(15, 1.0), (10, 0.7), (5, 0.4)]

_NAME_PUNCT = re.compile(r"[^A-Z0-9 ]+")
_NAME_SPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Upper-case, punctuation-free, single-spaced name for matching."""
    cleaned = _NAME_PUNCT.sub(" ", (name or "").upper())
    return _NAME_SPACE.sub(" ", cleaned).strip()


def _pct(wins: int, starts: int) -> float:
    return round(wins / starts * 100, 1) if starts > 0 else 0.0


def _tier_for(win_rate: float, tiers: list[tuple[str, float]], default: str) -> str:
    for tier, min_rate in tiers:
        if win_rate >= min_rate:
            return tier
    return default


def classify_trainer_pattern(starts: int, win_rate: float) -> str:
    """Trainer tier; anything under 15 starts is "insufficient"."""
    if starts < TRAINER_MIN_STARTS:
        return "insufficient"
    return _tier_for(win_rate, TRAINER_TIERS, "below_average")


def classify_jockey_pattern(starts: int, win_rate: float) -> str:
    """Jockey tier; anything under 20 starts is "insufficient"."""
    if starts < JOCKEY_MIN_STARTS:
        return "insufficient"
    return _tier_for(win_rate, JOCKEY_TIERS, "below_average")


def classify_partnership(starts: int, win_rate: float) -> str:
    if starts < PARTNERSHIP_MIN_STARTS:
        return "insufficient"
    tier = _tier_for(win_rate, PARTNERSHIP_TIERS, "none")
    if tier == "elite" and starts < PARTNERSHIP_ELITE_MIN_STARTS:
        return "strong"
    return tier


def pattern_credit(starts: int) -> float:
    """Share of a situational pattern's points earned at this sample size."""
    for min_starts, credit in PATTERN_CREDIT_TIERS:
        if starts >= min_starts:
            return credit
    return 0.0


# ──────────────────────────────────────────────
# Evidence types
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class WinRateEvidence:
    """Win-rate evidence for one connection, with its sample size."""

    starts: int = 0
    wins: int = 0
    places: int = 0
    tier: str = "insufficient"
    source: str = "none"  # context the numbers came from, e.g. "track:SAR", "meet"

    @property
    def win_rate(self) -> float:
        return _pct(self.wins, self.starts)

    @property
    def is_credible(self) -> bool:
        return self.tier != "insufficient"


@dataclass(frozen=True)
class ConnectionEvidence:
    trainer: WinRateEvidence = field(default_factory=WinRateEvidence)
    jockey: WinRateEvidence = field(default_factory=WinRateEvidence)
    partnership: WinRateEvidence = field(default_factory=WinRateEvidence)


class EvidenceProvider(Protocol):
    """Anything that can answer connection-evidence queries for a race."""

    def evidence(self, trainer: str, jockey: str, track: str, surface: str,
                 distance_category: str) -> ConnectionEvidence: ...


class NullEvidence:
    """Provider with no data: every connection is "insufficient"."""

    def evidence(self, trainer, jockey, track, surface, distance_category) -> ConnectionEvidence:
        return ConnectionEvidence()


# ──────────────────────────────────────────────
# Database
# ──────────────────────────────────────────────

@dataclass
class _Tally:
    starts: int = 0
    wins: int = 0
    places: int = 0

    def add(self, finish: int) -> None:
        self.starts += 1
        if finish == 1:
            self.wins += 1
        if 1 <= finish <= 3:
            self.places += 1


@dataclass
class PatternDatabase:
    race_key: RaceKey
    built_at: float = 0.0
    horses_processed: int = 0
    pps_analyzed: int = 0
    trainers: dict[str, dict[str, _Tally]] = field(default_factory=dict)
    jockeys: dict[str, dict[str, _Tally]] = field(default_factory=dict)
    partnerships: dict[tuple[str, str], _Tally] = field(default_factory=dict)
    trainer_meet: dict[str, StatsRecord] = field(default_factory=dict)
    jockey_meet: dict[str, StatsRecord] = field(default_factory=dict)


def _contexts(track: str, surface: str, dist_cat: str) -> list[str]:
    return [f"track:{track}", f"surface:{surface}", f"distance:{dist_cat}", "overall"]


def _record(profiles: dict[str, dict[str, _Tally]], name: str, contexts: Iterable[str], finish: int) -> None:
    profile = profiles.setdefault(name, {})
    for ctx in contexts:
        profile.setdefault(ctx, _Tally()).add(finish)


def _keep_larger(book: dict[str, StatsRecord], name: str, record: StatsRecord) -> None:
    if name and record.starts > 0 and record.starts > book.get(name, StatsRecord()).starts:
        book[name] = record


def build_pattern_database(race_key: RaceKey, horses: list[HorseEntry], built_at: float = 0.0) -> PatternDatabase:
    """Tally trainer/jockey/partnership results from every horse's PPs."""
    db = PatternDatabase(race_key=race_key, built_at=built_at)
    for horse in horses:
        db.horses_processed += 1
        _keep_larger(db.trainer_meet, normalize_name(horse.trainer_name), horse.trainer_meet)
        _keep_larger(db.jockey_meet, normalize_name(horse.jockey_name), horse.jockey_meet)

        for pp in horse.past_performances:
            if pp.finish_position < 1 or pp.finish_position > 40:
                continue
            db.pps_analyzed += 1
            ctx = _contexts(pp.track, pp.surface, distance_category(pp.distance_furlongs))
            trainer = normalize_name(pp.trainer)
            jockey = normalize_name(pp.jockey)
            if trainer:
                _record(db.trainers, trainer, ctx, pp.finish_position)
            if jockey:
                _record(db.jockeys, jockey, ctx, pp.finish_position)
            if trainer and jockey:
                db.partnerships.setdefault((trainer, jockey), _Tally()).add(pp.finish_position)
    return db


class RaceEvidence:
    """Evidence provider bound to one race's pattern database."""

    def __init__(self, db: PatternDatabase):
        self.db = db

    def _best(self, profile: dict[str, _Tally], contexts: list[str], meet: Optional[StatsRecord],
              classify: Callable[[int, float], str]) -> WinRateEvidence:
        # Most specific credible context first
        for ctx in contexts:
            tally = profile.get(ctx)
            if tally and classify(tally.starts, _pct(tally.wins, tally.starts)) != "insufficient":
                return WinRateEvidence(tally.starts, tally.wins, tally.places,
                                       classify(tally.starts, _pct(tally.wins, tally.starts)), ctx)
        if meet and meet.starts > 0:
            rate = _pct(meet.wins, meet.starts)
            overall = profile.get("overall")
            if not overall or meet.starts >= overall.starts:
                return WinRateEvidence(meet.starts, meet.wins, meet.places + meet.shows,
                                       classify(meet.starts, rate), "meet")
        overall = profile.get("overall")
        if overall:
            return WinRateEvidence(overall.starts, overall.wins, overall.places,
                                   classify(overall.starts, _pct(overall.wins, overall.starts)), "overall")
        return WinRateEvidence()

    def evidence(self, trainer: str, jockey: str, track: str, surface: str,
                 distance_category: str) -> ConnectionEvidence:
        t_name, j_name = normalize_name(trainer), normalize_name(jockey)
        contexts = _contexts(track, surface, distance_category)
        trainer_ev = self._best(self.db.trainers.get(t_name, {}), contexts,
                                self.db.trainer_meet.get(t_name), classify_trainer_pattern)
        jockey_ev = self._best(self.db.jockeys.get(j_name, {}), contexts,
                               self.db.jockey_meet.get(j_name), classify_jockey_pattern)
        pair = self.db.partnerships.get((t_name, j_name))
        if pair:
            partnership = WinRateEvidence(pair.starts, pair.wins, pair.places,
                                          classify_partnership(pair.starts, _pct(pair.wins, pair.starts)),
                                          "partnership")
        else:
            partnership = WinRateEvidence()
        return ConnectionEvidence(trainer_ev, jockey_ev, partnership)


# ──────────────────────────────────────────────
# Cached analyzer
# ──────────────────────────────────────────────

def _record_key(record: Optional[StatsRecord]) -> Optional[tuple]:
    if record is None:
        return None
    return (record.starts, record.wins, record.places, record.shows)


def field_fingerprint(horses: Iterable[HorseEntry]) -> tuple:
    """Hashable view of everything build_pattern_database reads from a field."""
    return tuple(
        (
            h.horse_name, h.trainer_name, h.jockey_name,
            _record_key(h.trainer_meet), _record_key(h.jockey_meet),
            tuple(
                (pp.date, pp.track, pp.surface, pp.distance_furlongs, pp.finish_position, pp.trainer, pp.jockey)
                for pp in h.past_performances
            ),
        )
        for h in horses
    )


class PatternAnalyzer:
    """Builds and caches one PatternDatabase per race key.

    A cached database is reused only while it is younger than the TTL and was
    built from the same field; a changed field (a corrected card, a second
    file for the same race) rebuilds it. Expired entries are evicted whenever
    a new database is stored.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = DEFAULT_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._cache: dict[RaceKey, tuple[tuple, PatternDatabase]] = {}
        self._locks: dict[RaceKey, threading.Lock] = {}
        self._guard = threading.Lock()
        self.builds = 0
        self.hits = 0

    def database_for(self, race_key: RaceKey, horses: list[HorseEntry]) -> PatternDatabase:
        fingerprint = field_fingerprint(horses)
        with self._guard:
            lock = self._locks.setdefault(race_key, threading.Lock())
        with lock:
            cached = self._cache.get(race_key)
            now = self._clock()
            if cached is not None:
                cached_fingerprint, db = cached
                if cached_fingerprint == fingerprint and now - db.built_at < self.ttl_seconds:
                    self.hits += 1
                    return db
            db = build_pattern_database(race_key, horses, built_at=now)
            with self._guard:
                self._cache[race_key] = (fingerprint, db)
                self._prune(now)
            self.builds += 1
            logger.debug("Built pattern database for %s: %d horses, %d PPs",
                         race_key, db.horses_processed, db.pps_analyzed)
            return db

    def _prune(self, now: float) -> None:
        # Caller holds _guard; keys mid-build keep their lock
        for key in list(self._locks):
            lock = self._locks[key]
            if lock.locked():
                continue
            cached = self._cache.get(key)
            if cached is None or now - cached[1].built_at >= self.ttl_seconds:
                self._cache.pop(key, None)
                del self._locks[key]

    def for_race(self, race_key: RaceKey, horses: list[HorseEntry]) -> RaceEvidence:
        return RaceEvidence(self.database_for(race_key, horses))

    def clear(self) -> None:
        with self._guard:
            self._cache.clear()
            self._locks.clear()
            self.builds = 0
            self.hits = 0

    def stats(self) -> dict:
        return {"cached_races": len(self._cache), "builds": self.builds, "hits": self.hits,
                "ttl_seconds": self.ttl_seconds}


_default_analyzer: Optional[PatternAnalyzer] = None


def get_analyzer() -> PatternAnalyzer:
    """Process-wide analyzer, created on first use."""
    global _default_analyzer
    if _default_analyzer is None:
        from furlong.config import get_settings
        _default_analyzer = PatternAnalyzer(ttl_seconds=get_settings().pattern_cache_ttl_seconds)
    return _default_analyzer


def clear_pattern_caches() -> None:
    if _default_analyzer is not None:
        _default_analyzer.clear()


def pattern_cache_stats() -> dict:
    if _default_analyzer is None:
        return {"cached_races": 0, "builds": 0, "hits": 0}
    return _default_analyzer.stats()


# ──────────────────────────────────────────────
# Summaries
# ──────────────────────────────────────────────

def _make_result(dimension: str, key: str, starts: int, wins: int, places: int = 0) -> dict:
    """Build a standardised result dict."""
    sr = _pct(wins, starts)
    itm = _pct(places, starts)
    return {
        "dimension": dimension,
        "key": key,
        "sample_count": starts,
        "winners": wins,
        "hit_rate": sr,
        "itm_rate": itm,
        "insight_text": f"{key}: {sr}% SR ({wins}/{starts}), {itm}% ITM",
    }


def summarize_database(db: PatternDatabase) -> list[dict]:
    """Overall trainer, jockey and partnership rows with at least MIN_SAMPLE starts."""
    rows = []
    for name, profile in db.trainers.items():
        tally = profile.get("overall")
        if tally and tally.starts >= MIN_SAMPLE:
            rows.append(_make_result("trainer", name, tally.starts, tally.wins, tally.places))
    for name, profile in db.jockeys.items():
        tally = profile.get("overall")
        if tally and tally.starts >= MIN_SAMPLE:
            rows.append(_make_result("jockey", name, tally.starts, tally.wins, tally.places))
    for (trainer, jockey), tally in db.partnerships.items():
        if tally.starts >= MIN_SAMPLE:
            rows.append(_make_result("partnership", f"{trainer} / {jockey}", tally.starts,
                                     tally.wins, tally.places))
    return sorted(rows, key=lambda r: (-r["hit_rate"], -r["sample_count"], r["key"]))
