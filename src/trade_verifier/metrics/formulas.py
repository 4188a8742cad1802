"""Pure metric computation functions. No DB, no SQLAlchemy.

Every function accepts an explicit input collection and returns ``None``
(or ``math.inf`` for profit factor) instead of raising when the population
cannot support the statistic.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

import numpy as np


def success_rate(successes: int, failures: int) -> float | None:
    """Success rate as a percentage 0-100, ``None`` with no decided trades."""
    decided = successes + failures
    if decided <= 0:
        return None
    return successes / decided * 100


def profit_factor(gross_profit: float, gross_loss: float) -> float | None:
    """Gross profit / gross loss.  *gross_loss* should be a positive number.

    ``math.inf`` when there are profits but no losses, ``None`` when neither.
    """
    if gross_loss <= 0:
        return math.inf if gross_profit > 0 else None
    return gross_profit / gross_loss


def expectancy(pnls: Sequence[float]) -> float | None:
    """Mean P&L per completed trade."""
    if len(pnls) == 0:
        return None
    return float(np.mean(np.asarray(pnls, dtype=np.float64)))


def sharpe_ratio(returns: Sequence[float]) -> float | None:
    """Per-trade Sharpe ratio using sample std (ddof=1), not annualised."""
    if len(returns) < 2:
        return None
    arr = np.asarray(returns, dtype=np.float64)
    std = np.std(arr, ddof=1)
    if std == 0:
        return None
    return float(np.mean(arr) / std)


@dataclass
class Drawdown:
    """Largest peak-to-trough decline of an equity curve."""

    percentage: float = 0.0
    amount: float = 0.0
    start: datetime | None = None
    end: datetime | None = None
    recovered_at: datetime | None = None

    @property
    def recovery_days(self) -> float | None:
        """Days from the trough back to the prior peak, ``None`` if never recovered."""
        if self.end is None or self.recovered_at is None:
            return None
        return (self.recovered_at - self.end).total_seconds() / 86400


def max_drawdown(equity: Sequence[float], timestamps: Sequence[datetime]) -> Drawdown:
    """Maximum drawdown of *equity* (percentage of the running peak).

    ``start`` is when the peak was set, ``end`` the trough. ``amount`` is the
    largest currency decline from a running peak, which can belong to a
    different episode than the largest percentage one.
    """
    if len(equity) < 2:
        return Drawdown()
    arr = np.asarray(equity, dtype=np.float64)
    peak = np.maximum.accumulate(arr)
    # Avoid division by zero where peak is 0
    safe_peak = np.where(peak == 0, 1.0, peak)
    drawdowns = (peak - arr) / safe_peak
    trough = int(np.argmax(drawdowns))
    if drawdowns[trough] <= 0:
        return Drawdown()

    peak_idx = int(np.flatnonzero(arr[: trough + 1] == peak[trough])[-1])
    recovered = np.flatnonzero(arr[trough:] >= peak[trough])
    return Drawdown(
        percentage=float(drawdowns[trough] * 100),
        amount=float(np.max(peak - arr)),
        start=timestamps[peak_idx],
        end=timestamps[trough],
        recovered_at=timestamps[trough + int(recovered[0])] if recovered.size else None,
    )


def recovery_factor(net_pnl: float, drawdown_amount: float) -> float | None:
    """Net P&L / max drawdown in currency; ``math.inf`` for a profitable curve with no drawdown."""
    if drawdown_amount <= 0:
        return math.inf if net_pnl > 0 else None
    return net_pnl / drawdown_amount


@dataclass
class Streaks:
    longest_win: int = 0
    longest_loss: int = 0
    current_type: str | None = None
    current_count: int = 0


def streaks(outcomes: Sequence[bool]) -> Streaks:
    """Win/loss runs over completion-ordered outcomes (True = win)."""
    result = Streaks()
    run_type: bool | None = None
    run = 0
    for won in outcomes:
        if won == run_type:
            run += 1
        else:
            run_type, run = won, 1
        if won:
            result.longest_win = max(result.longest_win, run)
        else:
            result.longest_loss = max(result.longest_loss, run)
    if run_type is not None:
        result.current_type = "win" if run_type else "loss"
        result.current_count = run
    return result


def pearson(x: Sequence[float], y: Sequence[float]) -> float | None:
    """Pearson correlation coefficient, ``None`` when either side has no variance."""
    if len(x) != len(y) or len(x) < 2:
        return None
    xa = np.asarray(x, dtype=np.float64)
    ya = np.asarray(y, dtype=np.float64)
    if np.std(xa) == 0 or np.std(ya) == 0:
        return None
    return float(np.corrcoef(xa, ya)[0, 1])


def correlation_strength(coefficient: float | None) -> str | None:
    if coefficient is None:
        return None
    magnitude = abs(coefficient)
    if magnitude >= 0.5:
        return "strong"
    if magnitude >= 0.3:
        return "moderate"
    return "weak"


def sharpe_label(value: float | None) -> str | None:
    if value is None:
        return None
    if value >= 3:
        return "Excellent"
    if value >= 2:
        return "Very Good"
    if value >= 1:
        return "Good"
    if value >= 0:
        return "Acceptable"
    return "Poor"


def profit_factor_label(value: float | None) -> str | None:
    if value is None:
        return None
    if value >= 2:
        return "Excellent"
    if value >= 1.5:
        return "Good"
    if value >= 1:
        return "Profitable"
    return "Unprofitable"
