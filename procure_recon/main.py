"""
Batch entry points for the reconciliation engine.
"""

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from procure_recon.engine.reconciliation import ReconcileOptions, reconcile
from procure_recon.engine.scoring import compute_supplier_score
from procure_recon.errors import InvalidReconciliationInput, ParseError
from procure_recon.repository import InMemoryHistoryProvider, VatRateLookup
from procure_recon.schemas.order import Order
from procure_recon.schemas.receiving import ReceivingRecord
from procure_recon.schemas.reconciliation import Reconciliation
from procure_recon.schemas.score import DataRange, SupplierScore
from procure_recon.utils import dict_to_json_string
from procure_recon.utils.logging import setup_logging
from procure_recon.config import get_config


logger = setup_logging(__name__)
config = get_config()


class ReconciliationJob(BaseModel):
    """Snapshot of the documents for one reconciliation, as loaded by the caller."""
    order: Optional[Dict[str, Any]] = None
    receiving: Optional[Dict[str, Any]] = None
    invoice: Optional[Dict[str, Any]] = None
    previous: Optional[Reconciliation] = None


class BatchReconciliationResult(BaseModel):
    results: List[Reconciliation] = Field(default_factory=list)
    failures: List[Dict[str, str]] = Field(default_factory=list)


def reconcile_batch(
    jobs: Iterable[ReconciliationJob],
    options: Optional[ReconcileOptions] = None,
    vat_rate_lookup: Optional[VatRateLookup] = None,
) -> BatchReconciliationResult:
    """
    Reconcile many invoices.

    A ParseError or InvalidReconciliationInput fails only its own job; the
    failure is recorded and the batch continues.
    """
    batch = BatchReconciliationResult()
    jobs = list(jobs)

    for idx, job in enumerate(jobs, 1):
        invoice_id = (job.invoice or {}).get("id")
        try:
            logger.info(f"Reconciling job {idx}/{len(jobs)} (invoice {invoice_id})")
            batch.results.append(reconcile(
                job.order,
                job.receiving,
                job.invoice,
                options,
                previous=job.previous,
                vat_rate_lookup=vat_rate_lookup,
            ))
        except (ParseError, InvalidReconciliationInput) as e:
            logger.error(f"Reconciliation failed for invoice {invoice_id}: {e}")
            batch.failures.append({
                "invoice_id": str(invoice_id),
                "error": type(e).__name__,
                "message": str(e),
            })

    logger.info(f"Batch reconciliation complete. Reconciled {len(batch.results)}/{len(jobs)} jobs.")
    return batch


def load_history(payload: Mapping[str, Any]) -> InMemoryHistoryProvider:
    """Build an in-memory history provider from an exported JSON payload."""
    return InMemoryHistoryProvider(
        orders=[Order.model_validate(o) for o in payload.get("orders", [])],
        receivings=[ReceivingRecord.model_validate(r) for r in payload.get("receivings", [])],
        catalogue=payload.get("catalogue", {}),
    )


def score_from_payload(payload: Mapping[str, Any]) -> SupplierScore:
    """Score the supplier named in an exported history payload."""
    data_range = DataRange.model_validate(payload["data_range"]) if payload.get("data_range") else None
    return compute_supplier_score(payload["supplier_id"], data_range, load_history(payload))


def format_output_json(model: BaseModel) -> str:
    """Format a result model as a JSON string."""
    return dict_to_json_string(model.model_dump(mode="json", by_alias=True))


if __name__ == "__main__":
    import sys

    if len(sys.argv) == 3 and sys.argv[1] in ("reconcile", "score"):
        with open(sys.argv[2], "r") as f:
            payload = json.load(f)

        if sys.argv[1] == "reconcile":
            jobs = payload if isinstance(payload, list) else [payload]
            output = reconcile_batch(ReconciliationJob.model_validate(job) for job in jobs)
        else:
            output = score_from_payload(payload)
        print(format_output_json(output))
    else:
        print("Usage: python -m procure_recon.main reconcile|score <payload.json>")
