"""Data-quality scoring for a price series over a verification window."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from trade_verifier.models import PriceBar
from trade_verifier.models.signal import RESOLUTION_SECONDS

# Component weights of the overall score
COMPLETENESS_WEIGHT = 0.6
VALIDITY_WEIGHT = 0.3
CONSISTENCY_WEIGHT = 0.1


@dataclass
class GapInfo:
    start: datetime
    end: datetime
    duration_s: float
    missed_points: int


@dataclass
class QualityReport:
    """Completeness, validity and consistency of a bar series, each 0-100."""

    overall_score: float = 0.0
    completeness: float = 0.0
    validity_score: float = 0.0
    consistency_score: float = 0.0
    total_points: int = 0
    expected_points: int = 0
    gaps: list[GapInfo] = field(default_factory=list)
    ohlc_violations: list[str] = field(default_factory=list)
    suspicious_moves: list[str] = field(default_factory=list)

    @property
    def recommendation(self) -> str:
        if self.overall_score >= 90:
            return "excellent"
        if self.overall_score >= 70:
            return "good"
        if self.overall_score >= 50:
            return "acceptable"
        return "poor"

    def warnings(self) -> list[str]:
        """Human-readable notes stored alongside a trade result."""
        notes = [
            f"Data gap: {g.duration_s / 60:.0f} minutes between "
            f"{g.start.isoformat()} and {g.end.isoformat()}"
            for g in self.gaps
        ]
        notes.extend(f"OHLC violation: {v}" for v in self.ohlc_violations)
        notes.extend(f"Suspicious move: {m}" for m in self.suspicious_moves)
        return notes


def expected_points(start: datetime, end: datetime, resolution: str) -> int:
    """Number of bars a complete series at *resolution* would hold."""
    interval = RESOLUTION_SECONDS.get(resolution, 60)
    span = (end - start).total_seconds()
    return max(1, int(span // interval))


def _ohlc_violations(bars: Sequence[PriceBar]) -> list[str]:
    found = []
    for bar in bars:
        if not bar.is_ohlc:
            continue
        high, low, close = bar.high, bar.low, bar.close
        issues = []
        if high < low:
            issues.append(f"high {high} < low {low}")
        if high < close:
            issues.append(f"high {high} < close {close}")
        if low > close:
            issues.append(f"low {low} > close {close}")
        if bar.open is not None:
            if high < bar.open:
                issues.append(f"high {high} < open {bar.open}")
            if low > bar.open:
                issues.append(f"low {low} > open {bar.open}")
        if issues:
            found.append(f"{bar.timestamp.isoformat()}: " + "; ".join(issues))
    return found


def _suspicious_moves(bars: Sequence[PriceBar], max_change_pct: float) -> list[str]:
    found = []
    limit = Decimal(str(max_change_pct))
    for prev, curr in zip(bars, bars[1:]):
        if prev.close == 0:
            continue
        to_price = curr.open if curr.open is not None else curr.close
        change = abs((to_price - prev.close) / prev.close * 100)
        if change > limit:
            found.append(f"{curr.timestamp.isoformat()}: {change:.2f}% ({prev.close} -> {to_price})")
    return found


def _gaps(bars: Sequence[PriceBar], resolution: str, tolerance: float) -> list[GapInfo]:
    interval = RESOLUTION_SECONDS.get(resolution, 60)
    max_gap = interval * tolerance
    gaps = []
    for prev, curr in zip(bars, bars[1:]):
        duration = (curr.timestamp - prev.timestamp).total_seconds()
        if duration > max_gap:
            gaps.append(GapInfo(
                start=prev.timestamp,
                end=curr.timestamp,
                duration_s=duration,
                missed_points=int(duration // interval) - 1,
            ))
    return gaps


def assess_quality(
    bars: Sequence[PriceBar],
    start: datetime,
    end: datetime,
    resolution: str,
    *,
    max_change_pct: float = 50.0,
    gap_tolerance: float = 1.5,
) -> QualityReport:
    """Score *bars* covering ``[start, end]`` at the given candle resolution.

    completeness = bars / expected bars (capped at 100)
    validity     = 100 - (OHLC violations / bars * 100 + spikes / bars * 50)
    consistency  = 100 - missed bars inside gaps / bars * 100
    overall      = 0.6 * completeness + 0.3 * validity + 0.1 * consistency
    """
    expected = expected_points(start, end, resolution)
    if not bars:
        return QualityReport(expected_points=expected)

    ordered = sorted(bars, key=lambda b: b.timestamp)
    n = len(ordered)

    gaps = _gaps(ordered, resolution, gap_tolerance)
    violations = _ohlc_violations(ordered)
    moves = _suspicious_moves(ordered, max_change_pct)

    completeness = min(100.0, n / expected * 100)
    penalty = min(100.0, len(violations) / n * 100 + len(moves) / n * 50)
    validity = max(0.0, 100.0 - penalty)
    missed = sum(g.missed_points for g in gaps)
    consistency = max(0.0, 100.0 - missed / n * 100)

    overall = (
        completeness * COMPLETENESS_WEIGHT
        + validity * VALIDITY_WEIGHT
        + consistency * CONSISTENCY_WEIGHT
    )

    return QualityReport(
        overall_score=round(max(0.0, min(100.0, overall)), 2),
        completeness=completeness,
        validity_score=validity,
        consistency_score=consistency,
        total_points=n,
        expected_points=expected,
        gaps=gaps,
        ohlc_violations=violations,
        suspicious_moves=moves,
    )
