"""
Reconciliation Aggregator
Three-way match of a purchase order, its goods receipt and a supplier invoice.

FLOW:
1. Validate the three documents (raw repository rows are parsed here)
2. Match lines (order lines first, then unmatched invoice lines)
3. Classify every matched triple
4. Sum totals and details into one reconciliation record

The record contains no timestamps of its own: reconciling unchanged inputs
twice yields equal records. Contested/resolved decisions taken by users are
carried over a re-computation unless it surfaces a new discrepancy.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Literal, Mapping, Optional, Type, TypeVar, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from procure_recon.engine.discrepancy import classify
from procure_recon.engine.matching import MatchResult, match_lines
from procure_recon.errors import InvalidReconciliationInput, InvalidStatusTransition
from procure_recon.repository import VatRateLookup
from procure_recon.schemas.invoice import Invoice
from procure_recon.schemas.order import Order
from procure_recon.schemas.receiving import ReceivingRecord
from procure_recon.schemas.reconciliation import DiscrepancyDetail, Reconciliation
from procure_recon.utils.logging import setup_logging, log_discrepancy
from procure_recon.utils.money import sum_decimals
from procure_recon.config import get_config


logger = setup_logging(__name__)
config = get_config()

T = TypeVar("T", bound=BaseModel)


class ReconcileOptions(BaseModel):
    """Tolerances and policies for one reconcile() call."""
    model_config = ConfigDict(frozen=True)

    price_tolerance: Decimal = Field(default_factory=lambda: config.PRICE_TOLERANCE, ge=0)
    quantity_tolerance: Decimal = Field(default_factory=lambda: config.QUANTITY_TOLERANCE, ge=0)
    expected_quantity_source: Literal["received", "ordered"] = Field(default_factory=lambda: config.EXPECTED_QUANTITY_SOURCE)
    ambiguity_threshold: float = Field(default_factory=lambda: config.AMBIGUITY_SIMILARITY_THRESHOLD)


def _coerce(value: Union[T, Mapping[str, Any], None], model: Type[T], label: str) -> Optional[T]:
    """Accept a model instance or a raw row; ParseError propagates untouched."""
    if value is None or isinstance(value, model):
        return value
    if not isinstance(value, Mapping):
        raise InvalidReconciliationInput(
            f"{label} must be a {model.__name__} or a mapping, got {type(value).__name__}"
        )
    try:
        return model.model_validate(dict(value))
    except ValidationError as e:
        raise InvalidReconciliationInput(f"Invalid {label}: {e}") from e


def _carry_user_decision(
    computed: Reconciliation,
    previous: Optional[Reconciliation],
) -> Reconciliation:
    """
    Keep a contested/resolved status across re-computation unless the new run
    found a discrepancy the user has not seen.
    """
    if previous is None or previous.status not in ("contested", "resolved"):
        return computed

    seen = list(previous.discrepancy_details)
    new_details = [d for d in computed.discrepancy_details if d not in seen]

    if new_details:
        logger.info(
            f"[Reconciliation] Invoice {computed.invoice_id}: {len(new_details)} new discrepancies, "
            f"'{previous.status}' reset to 'discrepancy'"
        )
        return computed.model_copy(update={"status": "discrepancy", "notes": previous.notes})

    return computed.model_copy(update={
        "status": previous.status,
        "notes": previous.notes,
        "resolved_by": previous.resolved_by,
        "resolved_at": previous.resolved_at,
    })


def reconcile(
    order: Union[Order, Mapping[str, Any], None],
    receiving: Union[ReceivingRecord, Mapping[str, Any], None],
    invoice: Union[Invoice, Mapping[str, Any], None],
    options: Optional[ReconcileOptions] = None,
    *,
    previous: Optional[Reconciliation] = None,
    vat_rate_lookup: Optional[VatRateLookup] = None,
) -> Reconciliation:
    """
    Three-way reconcile one invoice against its order and receiving record.

    Args:
        order: Purchase order (model or raw row), may be None
        receiving: Receiving record for the order, may be None
        invoice: Supplier invoice, may be None
        options: Tolerances and policies (defaults from config)
        previous: Reconciliation currently stored for the same triple
        vat_rate_lookup: product_id -> expected VAT rate

    Returns:
        Reconciliation with totals, status and ordered discrepancy details

    Raises:
        ParseError: a monetary or quantity field is malformed
        InvalidReconciliationInput: no order and no invoice, or inconsistent documents
    """
    options = options or ReconcileOptions()

    order = _coerce(order, Order, "order")
    receiving = _coerce(receiving, ReceivingRecord, "receiving")
    invoice = _coerce(invoice, Invoice, "invoice")

    if order is None and invoice is None:
        raise InvalidReconciliationInput("Reconciliation needs at least an order or an invoice")

    if receiving is not None:
        if order is None:
            raise InvalidReconciliationInput(
                f"Receiving {receiving.id} given without its order {receiving.order_id}"
            )
        if receiving.order_id != order.id:
            raise InvalidReconciliationInput(
                f"Receiving {receiving.id} belongs to order {receiving.order_id}, not {order.id}"
            )

    order_lines = order.lines if order else []
    receiving_lines = receiving.lines if receiving else []
    invoice_lines = invoice.lines if invoice else []

    match: MatchResult = match_lines(
        order_lines,
        receiving_lines,
        invoice_lines,
        ambiguity_threshold=options.ambiguity_threshold,
    )

    details: List[DiscrepancyDetail] = []
    for triple in match.triples:
        details.extend(classify(
            triple,
            price_tolerance=options.price_tolerance,
            quantity_tolerance=options.quantity_tolerance,
            expected_quantity_source=options.expected_quantity_source,
            vat_rate_lookup=vat_rate_lookup,
        ))

    total_received = sum_decimals(
        t.received_quantity * t.order_line.unit_price
        for t in match.triples
        if t.order_line is not None and t.received_quantity is not None
    )

    supplier_id = None
    if invoice is not None and invoice.supplier_id:
        supplier_id = invoice.supplier_id
    elif order is not None:
        supplier_id = order.supplier_id

    computed = Reconciliation(
        invoice_id=invoice.id if invoice else None,
        order_id=order.id if order else None,
        receiving_id=receiving.id if receiving else None,
        supplier_id=supplier_id,
        status="discrepancy" if details else "matched",
        total_order_amount=order.total if order else Decimal("0"),
        total_received_amount=total_received,
        total_invoiced_amount=invoice.total if invoice else Decimal("0"),
        discrepancy_amount=sum_decimals(d.amount for d in details),
        discrepancy_details=details,
    )

    for detail in details:
        log_discrepancy(logger, detail, computed.invoice_id)

    logger.info(
        f"[Reconciliation] Invoice {computed.invoice_id} vs order {computed.order_id}: "
        f"{computed.status}, {len(details)} discrepancies, net {computed.discrepancy_amount}"
    )

    return _carry_user_decision(computed, previous)


def contest(reconciliation: Reconciliation, notes: str) -> Reconciliation:
    """Mark a reconciliation as contested with the supplier."""
    if reconciliation.status != "discrepancy":
        raise InvalidStatusTransition("contest", reconciliation.status)

    logger.info(f"[Reconciliation] Invoice {reconciliation.invoice_id} contested")
    return reconciliation.model_copy(update={"status": "contested", "notes": notes})


def resolve(
    reconciliation: Reconciliation,
    resolved_by: str,
    *,
    notes: Optional[str] = None,
    resolved_at: Optional[datetime] = None,
) -> Reconciliation:
    """Close a discrepancy or a contest after human review."""
    if reconciliation.status not in ("discrepancy", "contested"):
        raise InvalidStatusTransition("resolve", reconciliation.status)

    logger.info(f"[Reconciliation] Invoice {reconciliation.invoice_id} resolved by {resolved_by}")
    return reconciliation.model_copy(update={
        "status": "resolved",
        "resolved_by": resolved_by,
        "resolved_at": resolved_at or datetime.now(timezone.utc),
        "notes": notes if notes is not None else reconciliation.notes,
    })
