"""
Reconciliation and scoring engines.
"""

from procure_recon.engine.matching import MatchedLine, MatchResult, match_lines
from procure_recon.engine.discrepancy import classify
from procure_recon.engine.reconciliation import ReconcileOptions, contest, reconcile, resolve
from procure_recon.engine.scoring import (
    ScoringOptions,
    build_risk_map,
    composite_score,
    compute_supplier_score,
    rank_suppliers,
    recalculate_all,
)
from procure_recon.engine.reporting import summarize_discrepancies

__all__ = [
    "MatchedLine",
    "MatchResult",
    "match_lines",
    "classify",
    "ReconcileOptions",
    "contest",
    "reconcile",
    "resolve",
    "ScoringOptions",
    "build_risk_map",
    "composite_score",
    "compute_supplier_score",
    "rank_suppliers",
    "recalculate_all",
    "summarize_discrepancies",
]
