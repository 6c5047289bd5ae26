"""
Procurement three-way reconciliation and supplier scoring engine
"""

__version__ = "1.0.0"
__description__ = "Three-way invoice reconciliation and supplier performance scoring"

from procure_recon.engine.reconciliation import ReconcileOptions, contest, reconcile, resolve
from procure_recon.engine.scoring import compute_supplier_score
from procure_recon.errors import InvalidReconciliationInput, ParseError
from procure_recon.schemas.reconciliation import Reconciliation
from procure_recon.schemas.score import DataRange, SupplierScore

__all__ = [
    "ReconcileOptions",
    "contest",
    "reconcile",
    "resolve",
    "compute_supplier_score",
    "InvalidReconciliationInput",
    "ParseError",
    "Reconciliation",
    "DataRange",
    "SupplierScore",
]
