"""
Line Matcher
Pairs order lines, receiving lines and invoice lines for one order.

MATCHING RULES:
1. orderLine.product_id is authoritative
2. Receiving lines attach through order_line_id (summed when duplicated)
3. Invoice lines attach through product_id (summed when split over several lines)
4. Invoice lines without product_id: case-insensitive exact description match
   against the order line's product name, never a fuzzy one
5. Anything that cannot be attached without guessing stays unmatched
"""

from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
from pydantic import BaseModel, ConfigDict, Field
from rapidfuzz import fuzz

from procure_recon.errors import AmbiguousMatchWarning, DataIntegrityWarning, EngineWarning
from procure_recon.schemas.invoice import InvoiceLine
from procure_recon.schemas.order import OrderLine
from procure_recon.schemas.receiving import ReceivingLine
from procure_recon.utils.logging import setup_logging, log_warning
from procure_recon.utils.money import sum_decimals
from procure_recon.config import get_config


logger = setup_logging(__name__)
config = get_config()


class MatchedLine(BaseModel):
    """
    One matched triple. Any side may be missing, but an unmatched invoice
    line always comes with order_line=None and no receiving lines.
    """
    model_config = ConfigDict(frozen=True)

    order_line: Optional[OrderLine] = None
    receiving_lines: List[ReceivingLine] = Field(default_factory=list)
    invoice_lines: List[InvoiceLine] = Field(default_factory=list)
    match_method: Optional[str] = None  # product, description, mixed

    @property
    def has_invoice(self) -> bool:
        return bool(self.invoice_lines)

    @property
    def has_receiving(self) -> bool:
        return bool(self.receiving_lines)

    @property
    def received_quantity(self) -> Optional[Decimal]:
        """Sum of recorded received quantities, None if nothing was counted yet."""
        recorded = [r.quantity_received for r in self.receiving_lines if r.quantity_received is not None]
        if not recorded:
            return None
        return sum_decimals(recorded)

    @property
    def receiving_line_id(self) -> Optional[str]:
        return self.receiving_lines[0].id if self.receiving_lines else None

    @property
    def invoice_line_id(self) -> Optional[str]:
        return self.invoice_lines[0].id if self.invoice_lines else None

    @property
    def invoice_quantity(self) -> Decimal:
        return sum_decimals(line.quantity for line in self.invoice_lines)

    @property
    def invoice_line_total(self) -> Decimal:
        return sum_decimals(line.line_total for line in self.invoice_lines)

    @property
    def invoice_unit_price(self) -> Decimal:
        """Common unit price of the invoice lines, or the quantity-weighted price."""
        prices = {line.unit_price for line in self.invoice_lines}
        if len(prices) == 1:
            return prices.pop()
        quantity = self.invoice_quantity
        if quantity == 0:
            return self.invoice_lines[0].unit_price
        return self.invoice_line_total / quantity


class MatchResult(BaseModel):
    """Matched triples in deterministic order plus non-fatal warnings."""
    triples: List[MatchedLine] = Field(default_factory=list)
    warnings: List[EngineWarning] = Field(default_factory=list)

    @property
    def unmatched_invoice_lines(self) -> List[InvoiceLine]:
        return [line for t in self.triples if t.order_line is None for line in t.invoice_lines]


def _normalize_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = " ".join(value.split()).casefold()
    return normalized or None


def index_receiving_lines(
    receiving_lines: Sequence[ReceivingLine],
    order_line_ids: Sequence[str],
    warnings: List[EngineWarning],
) -> Dict[str, List[ReceivingLine]]:
    """Group receiving lines by order_line_id, reporting duplicates and orphans."""
    known = set(order_line_ids)
    index: Dict[str, List[ReceivingLine]] = {}
    orphans: List[str] = []

    for line in receiving_lines:
        if line.order_line_id not in known:
            orphans.append(line.id)
            continue
        index.setdefault(line.order_line_id, []).append(line)

    for order_line_id, lines in index.items():
        if len(lines) > 1:
            warnings.append(DataIntegrityWarning(
                message=(
                    f"Order line {order_line_id} has {len(lines)} receiving lines; "
                    f"received quantities are summed"
                ),
                line_ids=[line.id for line in lines],
            ))

    if orphans:
        warnings.append(DataIntegrityWarning(
            message=f"{len(orphans)} receiving line(s) reference no line of this order and are ignored",
            line_ids=orphans,
        ))

    return index


def match_by_description(
    invoice_line: InvoiceLine,
    order_lines: Sequence[OrderLine],
    ambiguity_threshold: Optional[float] = None,
) -> Tuple[Optional[OrderLine], Optional[AmbiguousMatchWarning]]:
    """
    Fallback for invoice lines without product_id.

    Exactly one order line whose product name equals the description
    (case-insensitive, whitespace-normalized) is a match. Several equal names,
    or a close but not exact name, produce a warning and no match.
    """
    description = _normalize_name(invoice_line.description)
    if description is None:
        return None, None

    candidates = [ol for ol in order_lines if _normalize_name(ol.product_name) == description]

    if len(candidates) == 1:
        return candidates[0], None

    if len(candidates) > 1:
        return None, AmbiguousMatchWarning(
            message=(
                f"Invoice line {invoice_line.id} description '{invoice_line.description}' "
                f"matches {len(candidates)} order lines; left unmatched"
            ),
            invoice_line_id=invoice_line.id,
            description=invoice_line.description,
            candidate_order_line_ids=[ol.id for ol in candidates],
        )

    if ambiguity_threshold is None:
        return None, None

    near_misses = []
    for ol in order_lines:
        name = _normalize_name(ol.product_name)
        if name is None:
            continue
        similarity = fuzz.token_set_ratio(description, name)
        if similarity >= ambiguity_threshold:
            near_misses.append(ol)

    if near_misses:
        return None, AmbiguousMatchWarning(
            message=(
                f"Invoice line {invoice_line.id} description '{invoice_line.description}' "
                f"resembles {len(near_misses)} order line(s) but matches none exactly; left unmatched"
            ),
            invoice_line_id=invoice_line.id,
            description=invoice_line.description,
            candidate_order_line_ids=[ol.id for ol in near_misses],
        )

    return None, None


def match_lines(
    order_lines: Sequence[OrderLine],
    receiving_lines: Sequence[ReceivingLine],
    invoice_lines: Sequence[InvoiceLine],
    *,
    ambiguity_threshold: Optional[float] = None,
) -> MatchResult:
    """
    Build matched triples: one per order line (in order sequence), then one
    per unmatched invoice line (in invoice sequence).
    """
    if ambiguity_threshold is None:
        ambiguity_threshold = config.AMBIGUITY_SIMILARITY_THRESHOLD

    warnings: List[EngineWarning] = []
    receiving_index = index_receiving_lines(
        receiving_lines, [ol.id for ol in order_lines], warnings
    )

    # First order line per product wins; duplicates are reported, not merged
    order_line_by_product: Dict[str, OrderLine] = {}
    for ol in order_lines:
        if ol.product_id is None:
            continue
        if ol.product_id in order_line_by_product:
            first = order_line_by_product[ol.product_id]
            warnings.append(DataIntegrityWarning(
                message=(
                    f"Product {ol.product_id} is ordered on lines {first.id} and {ol.id}; "
                    f"invoice lines attach to {first.id}"
                ),
                line_ids=[first.id, ol.id],
            ))
            continue
        order_line_by_product[ol.product_id] = ol

    attached: Dict[str, List[Tuple[InvoiceLine, str]]] = {}
    unmatched: List[InvoiceLine] = []

    for il in invoice_lines:
        if il.product_id is not None:
            target = order_line_by_product.get(il.product_id)
            method = "product"
        else:
            target, warning = match_by_description(il, order_lines, ambiguity_threshold)
            method = "description"
            if warning is not None:
                warnings.append(warning)

        if target is None:
            unmatched.append(il)
        else:
            attached.setdefault(target.id, []).append((il, method))

    triples: List[MatchedLine] = []
    for ol in order_lines:
        pairs = attached.get(ol.id, [])
        methods = {method for _, method in pairs}
        triples.append(MatchedLine(
            order_line=ol,
            receiving_lines=receiving_index.get(ol.id, []),
            invoice_lines=[il for il, _ in pairs],
            match_method=(methods.pop() if len(methods) == 1 else "mixed") if methods else None,
        ))

    for il in unmatched:
        triples.append(MatchedLine(invoice_lines=[il]))

    for warning in warnings:
        log_warning(logger, warning)

    logger.debug(
        f"[LineMatcher] {len(order_lines)} order lines, {len(invoice_lines)} invoice lines, "
        f"{len(unmatched)} unmatched"
    )

    return MatchResult(triples=triples, warnings=warnings)
