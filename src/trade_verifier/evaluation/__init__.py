"""Target evaluation, P&L, data quality, and the trade lifecycle."""

from trade_verifier.evaluation.pnl import PnLBreakdown, compute_pnl
from trade_verifier.evaluation.quality import QualityReport, assess_quality
from trade_verifier.evaluation.targets import TargetEvaluation, evaluate_targets

__all__ = [
    "PnLBreakdown",
    "QualityReport",
    "TargetEvaluation",
    "assess_quality",
    "compute_pnl",
    "evaluate_targets",
]
