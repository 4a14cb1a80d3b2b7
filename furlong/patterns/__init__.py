"""Trainer, jockey and partnership pattern evidence."""

from furlong.patterns.engine import (
    NullEvidence,
    PatternAnalyzer,
    clear_pattern_caches,
    get_analyzer,
    pattern_cache_stats,
)

__all__ = [
    "NullEvidence",
    "PatternAnalyzer",
    "clear_pattern_caches",
    "get_analyzer",
    "pattern_cache_stats",
]
