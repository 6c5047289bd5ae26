"""
Discrepancy reporting over stored reconciliations, grouped by supplier.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional
from pydantic import BaseModel, Field

from procure_recon.schemas.reconciliation import Reconciliation
from procure_recon.utils.money import ZERO, percentage, quantize_money


class SupplierDiscrepancySummary(BaseModel):
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    total_reconciliations: int = 0
    matched_count: int = 0
    discrepancy_count: int = 0
    total_discrepancy: Decimal = ZERO
    total_invoiced: Decimal = ZERO
    total_ordered: Decimal = ZERO
    discrepancy_rate: Decimal = ZERO  # percent of invoiced


class DiscrepancyReport(BaseModel):
    total_discrepancy: Decimal = ZERO
    total_invoiced: Decimal = ZERO
    total_ordered: Decimal = ZERO
    discrepancy_rate: Decimal = ZERO
    by_supplier: List[SupplierDiscrepancySummary] = Field(default_factory=list)


def _rate(discrepancy: Decimal, invoiced: Decimal) -> Decimal:
    rate = percentage(discrepancy, invoiced)
    return quantize_money(rate) if rate is not None else ZERO


def summarize_discrepancies(
    reconciliations: Iterable[Reconciliation],
    *,
    supplier_names: Optional[Mapping[str, str]] = None,
) -> DiscrepancyReport:
    """
    Aggregate reconciliations per supplier.

    The caller selects the period; discrepancy totals use absolute detail
    amounts so overcharges and undercharges do not cancel out.
    """
    supplier_names = supplier_names or {}
    groups: Dict[Optional[str], SupplierDiscrepancySummary] = {}

    for rec in reconciliations:
        summary = groups.get(rec.supplier_id)
        if summary is None:
            summary = SupplierDiscrepancySummary(
                supplier_id=rec.supplier_id,
                supplier_name=supplier_names.get(rec.supplier_id) if rec.supplier_id else None,
            )
            groups[rec.supplier_id] = summary

        summary.total_reconciliations += 1
        if rec.status == "matched":
            summary.matched_count += 1
        elif rec.status == "discrepancy":
            summary.discrepancy_count += 1
        summary.total_discrepancy += sum((abs(d.amount) for d in rec.discrepancy_details), ZERO)
        summary.total_invoiced += rec.total_invoiced_amount
        summary.total_ordered += rec.total_order_amount

    report = DiscrepancyReport()
    for summary in groups.values():
        summary.discrepancy_rate = _rate(summary.total_discrepancy, summary.total_invoiced)
        report.total_discrepancy += summary.total_discrepancy
        report.total_invoiced += summary.total_invoiced
        report.total_ordered += summary.total_ordered
        report.by_supplier.append(summary)

    report.discrepancy_rate = _rate(report.total_discrepancy, report.total_invoiced)
    return report
