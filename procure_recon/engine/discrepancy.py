"""
Discrepancy Classifier
Turns one matched triple into zero or more typed discrepancy details.

RULES (evaluated in this order, a triple may emit several details):
1. unauthorized_item - invoice line with no order line; full line total
2. quantity_mismatch - invoiced quantity differs from expected quantity
3. overcharge        - invoiced unit price above ordered unit price
4. vat_error         - invoice VAT rate differs from the product's rate,
                       also on unauthorized lines

All comparisons are exact Decimal comparisons against the configured
tolerance. A detail whose amount is zero is never emitted.
"""

from decimal import Decimal
from typing import List, Optional

from procure_recon.engine.matching import MatchedLine
from procure_recon.repository import VatRateLookup
from procure_recon.schemas.reconciliation import (
    DiscrepancyDetail,
    OverchargeDetail,
    QuantityMismatchDetail,
    UnauthorizedItemDetail,
    VatErrorDetail,
)
from procure_recon.utils.logging import setup_logging
from procure_recon.utils.money import HUNDRED, ZERO
from procure_recon.config import get_config


logger = setup_logging(__name__)
config = get_config()


def expected_quantity(triple: MatchedLine, source: str = "received") -> Decimal:
    """
    Quantity the invoice should carry.

    With the "received" policy, a receiving line with a recorded quantity
    wins over the ordered quantity: suppliers bill what was delivered.
    """
    if source == "received":
        received = triple.received_quantity
        if received is not None:
            return received
    return triple.order_line.quantity


def detect_unauthorized_item(triple: MatchedLine) -> List[DiscrepancyDetail]:
    """Rule 1: invoiced line that was never ordered."""
    if triple.order_line is not None or not triple.has_invoice:
        return []

    details: List[DiscrepancyDetail] = []
    for line in triple.invoice_lines:
        details.append(UnauthorizedItemDetail(
            invoice_line_id=line.id,
            actual=line.line_total,
            amount=line.line_total,
        ))
    return details


def detect_quantity_mismatch(
    triple: MatchedLine,
    tolerance: Decimal = ZERO,
    source: str = "received",
) -> List[DiscrepancyDetail]:
    """Rule 2: invoiced quantity differs from received/ordered quantity."""
    if triple.order_line is None or not triple.has_invoice:
        return []

    expected = expected_quantity(triple, source)
    actual = triple.invoice_quantity
    difference = actual - expected

    if abs(difference) <= tolerance:
        return []

    return [QuantityMismatchDetail(
        invoice_line_id=triple.invoice_line_id,
        order_line_id=triple.order_line.id,
        receiving_line_id=triple.receiving_line_id,
        expected=expected,
        actual=actual,
        difference=difference,
        amount=difference * triple.invoice_unit_price,
    )]


def detect_overcharge(
    triple: MatchedLine,
    tolerance: Decimal = ZERO,
) -> List[DiscrepancyDetail]:
    """Rule 3: invoiced unit price strictly above the ordered price plus tolerance."""
    if triple.order_line is None or not triple.has_invoice:
        return []

    expected = triple.order_line.unit_price
    actual = triple.invoice_unit_price
    difference = actual - expected

    if difference <= tolerance:
        return []

    return [OverchargeDetail(
        invoice_line_id=triple.invoice_line_id,
        order_line_id=triple.order_line.id,
        receiving_line_id=triple.receiving_line_id,
        expected=expected,
        actual=actual,
        difference=difference,
        amount=difference * triple.invoice_quantity,
    )]


def detect_vat_errors(
    triple: MatchedLine,
    vat_rate_lookup: Optional[VatRateLookup] = None,
) -> List[DiscrepancyDetail]:
    """Rule 4: per invoice line, VAT rate differs from the product's configured rate."""
    if vat_rate_lookup is None:
        return []

    order_line = triple.order_line

    details: List[DiscrepancyDetail] = []
    for line in triple.invoice_lines:
        product_id = line.product_id or (order_line.product_id if order_line else None)
        if product_id is None or line.vat_rate is None:
            continue
        expected_rate = vat_rate_lookup(product_id)
        if expected_rate is None or expected_rate == line.vat_rate:
            continue
        difference = line.vat_rate - expected_rate
        details.append(VatErrorDetail(
            invoice_line_id=line.id,
            order_line_id=order_line.id if order_line else None,
            receiving_line_id=triple.receiving_line_id,
            expected=expected_rate,
            actual=line.vat_rate,
            difference=difference,
            amount=difference * line.line_total / HUNDRED,
        ))
    return details


def classify(
    triple: MatchedLine,
    *,
    price_tolerance: Optional[Decimal] = None,
    quantity_tolerance: Optional[Decimal] = None,
    expected_quantity_source: Optional[str] = None,
    vat_rate_lookup: Optional[VatRateLookup] = None,
) -> List[DiscrepancyDetail]:
    """
    Classify one matched triple.

    Without an order line only the unauthorized-item and VAT rules apply:
    quantity and price have nothing to be compared against.
    """
    if price_tolerance is None:
        price_tolerance = config.PRICE_TOLERANCE
    if quantity_tolerance is None:
        quantity_tolerance = config.QUANTITY_TOLERANCE
    if expected_quantity_source is None:
        expected_quantity_source = config.EXPECTED_QUANTITY_SOURCE

    if triple.order_line is None:
        details = detect_unauthorized_item(triple)
    else:
        details = []
        details.extend(detect_quantity_mismatch(triple, quantity_tolerance, expected_quantity_source))
        details.extend(detect_overcharge(triple, price_tolerance))
    details.extend(detect_vat_errors(triple, vat_rate_lookup))

    # Degenerate details (e.g. quantity change on a zero-priced line)
    return [d for d in details if d.amount != 0]
