"""Indicator pattern analysis."""

from trade_verifier.patterns.analyzer import (
    PatternAnalysis,
    PatternRecord,
    analyze_patterns,
    two_by_two_p_value,
)
from trade_verifier.patterns.conditions import Condition, build_conditions

__all__ = [
    "Condition",
    "PatternAnalysis",
    "PatternRecord",
    "analyze_patterns",
    "build_conditions",
    "two_by_two_p_value",
]
