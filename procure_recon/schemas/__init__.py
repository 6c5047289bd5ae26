"""
Record types shared by the engines.
"""

from procure_recon.schemas.order import Order, OrderLine, OrderStatus
from procure_recon.schemas.receiving import NonConformity, ReceivingLine, ReceivingRecord
from procure_recon.schemas.invoice import Invoice, InvoiceLine
from procure_recon.schemas.reconciliation import (
    DiscrepancyDetail,
    OverchargeDetail,
    QuantityMismatchDetail,
    Reconciliation,
    UnauthorizedItemDetail,
    VatErrorDetail,
)
from procure_recon.schemas.score import DataRange, ScoreDimension, SupplierScore

__all__ = [
    "Order",
    "OrderLine",
    "OrderStatus",
    "NonConformity",
    "ReceivingLine",
    "ReceivingRecord",
    "Invoice",
    "InvoiceLine",
    "DiscrepancyDetail",
    "OverchargeDetail",
    "QuantityMismatchDetail",
    "Reconciliation",
    "UnauthorizedItemDetail",
    "VatErrorDetail",
    "DataRange",
    "ScoreDimension",
    "SupplierScore",
]
