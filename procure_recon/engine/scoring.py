"""
Supplier Scoring Engine
Derives supplier performance scores from order, receiving and catalogue history.

DIMENSIONS:
- Punctuality: completed receivings delivered by the deadline
- Conformity: conforming receiving lines over all received lines
- Price competitiveness: mean deviation of catalogue prices from peer average
- Reliability: orders that reached received/closed over all non-draft orders

A dimension without samples scores None. None dimensions are left out of
the composite; they never count as zero.
"""

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple
from pydantic import BaseModel, ConfigDict, Field

from procure_recon.errors import InsufficientDataWarning, ReconciliationError
from procure_recon.repository import HistoryProvider, PeerPrice
from procure_recon.schemas.order import Order
from procure_recon.schemas.receiving import ReceivingRecord
from procure_recon.schemas.score import (
    CategoryRisk,
    DataRange,
    ScoreDimension,
    SupplierRanking,
    SupplierScore,
)
from procure_recon.utils.dates import to_utc
from procure_recon.utils.logging import setup_logging, log_warning
from procure_recon.utils.money import HUNDRED, ZERO, percentage, quantize_money, round_score, sum_decimals
from procure_recon.config import get_config


logger = setup_logging(__name__)
config = get_config()

DIMENSIONS = ("punctuality", "conformity", "price_competitiveness", "reliability")

COMPLETED_ORDER_STATUSES = {"received", "closed"}


class ScoringOptions(BaseModel):
    """Grace periods, peer-price policy and composite weights."""
    model_config = ConfigDict(frozen=True)

    delivery_grace_days: int = Field(default_factory=lambda: config.PUNCTUALITY_DELIVERY_GRACE_DAYS, ge=0)
    sent_grace_days: int = Field(default_factory=lambda: config.PUNCTUALITY_SENT_GRACE_DAYS, ge=0)
    peer_price_policy: Literal["auto", "exclude_self", "include_self"] = Field(default_factory=lambda: config.PEER_PRICE_POLICY)
    weights: Dict[str, Decimal] = Field(default_factory=lambda: dict(config.SCORE_WEIGHTS))


def _dimension(numerator: int, denominator: int, **details: Any) -> ScoreDimension:
    value = percentage(Decimal(numerator), Decimal(denominator))
    return ScoreDimension(
        score=round_score(value) if value is not None else None,
        numerator=numerator,
        denominator=denominator,
        details=details,
    )


def delivery_deadline(order: Order, options: ScoringOptions) -> Optional[datetime]:
    """
    Latest on-time delivery moment for an order.

    Expected delivery date counts until the end of that UTC day (plus grace);
    without one, the order's sent_at plus the sent grace period is used.
    """
    if order.expected_delivery_date is not None:
        last_day = order.expected_delivery_date + timedelta(days=options.delivery_grace_days)
        return datetime.combine(last_day, time.max, tzinfo=timezone.utc)
    if order.sent_at is not None:
        return order.sent_at + timedelta(days=options.sent_grace_days)
    return None


def _in_range_receivings(receivings: Iterable[ReceivingRecord], data_range: DataRange) -> List[ReceivingRecord]:
    return [r for r in receivings if r.is_completed and data_range.contains(r.received_at)]


def score_punctuality(
    orders: Sequence[Order],
    receivings: Sequence[ReceivingRecord],
    data_range: DataRange,
    options: ScoringOptions,
) -> ScoreDimension:
    """Completed receivings at or before their deadline."""
    orders_by_id = {o.id: o for o in orders}
    on_time = 0
    total = 0
    unknown = 0

    for receiving in _in_range_receivings(receivings, data_range):
        order = orders_by_id.get(receiving.order_id)
        deadline = delivery_deadline(order, options) if order else None
        if deadline is None:
            unknown += 1
            continue
        total += 1
        if receiving.received_at <= deadline:
            on_time += 1

    return _dimension(on_time, total, on_time=on_time, late=total - on_time, without_deadline=unknown)


def score_conformity(
    receivings: Sequence[ReceivingRecord],
    data_range: DataRange,
) -> ScoreDimension:
    """Conforming receiving lines over all lines of completed receivings."""
    conforming = 0
    total = 0
    by_type: Dict[str, int] = {}

    for receiving in _in_range_receivings(receivings, data_range):
        for line in receiving.lines:
            total += 1
            if line.is_conforming:
                conforming += 1
            elif line.non_conformity is not None:
                by_type[line.non_conformity.type] = by_type.get(line.non_conformity.type, 0) + 1

    return _dimension(conforming, total, non_conforming_by_type=by_type)


def peer_average(
    supplier_id: str,
    peers: Sequence[PeerPrice],
    policy: str = "auto",
) -> Optional[Decimal]:
    """
    Mean peer price for one product.

    auto: exclude the supplier itself when at least two other suppliers
    offer the product, otherwise include it.
    """
    others = [p for p in peers if p.supplier_id != supplier_id]

    if policy == "exclude_self":
        pool = others
    elif policy == "include_self":
        pool = list(peers)
    elif policy == "auto":
        pool = others if len(others) >= 2 else list(peers)
    else:
        raise ValueError(f"Unknown peer price policy: {policy}")

    if not pool:
        return None
    return sum_decimals(p.price for p in pool) / Decimal(len(pool))


def score_price_competitiveness(
    supplier_id: str,
    provider: HistoryProvider,
    options: ScoringOptions,
) -> ScoreDimension:
    """
    clamp(100 - max(0, mean deviation %), 0, 100) over the products that
    have a peer average. Deviations are signed; a negative mean scores 100.
    """
    deviations: List[Decimal] = []
    at_or_below = 0

    for offer in provider.supplier_prices(supplier_id):
        average = peer_average(supplier_id, provider.peer_prices(offer.product_id), options.peer_price_policy)
        if average is None or average == 0:
            continue
        deviation = (offer.price - average) / average * HUNDRED
        deviations.append(deviation)
        if deviation <= 0:
            at_or_below += 1

    compared = len(deviations)
    if compared == 0:
        return ScoreDimension(score=None, numerator=0, denominator=0)

    average_deviation = sum_decimals(deviations) / Decimal(compared)
    raw = HUNDRED - max(ZERO, average_deviation)
    score = round_score(min(HUNDRED, max(ZERO, raw)))

    return ScoreDimension(
        score=score,
        numerator=at_or_below,
        denominator=compared,
        details={"average_deviation_pct": str(quantize_money(average_deviation))},
    )


def score_reliability(orders: Sequence[Order], data_range: DataRange) -> ScoreDimension:
    """Orders that reached received/closed over all non-draft orders in range."""
    in_range = [
        o for o in orders
        if o.status != "draft" and data_range.contains(o.created_at or o.sent_at)
    ]
    completed = sum(1 for o in in_range if o.status in COMPLETED_ORDER_STATUSES)
    cancelled = sum(1 for o in in_range if o.status == "cancelled")
    return _dimension(completed, len(in_range), cancelled=cancelled)


def composite_score(
    dimensions: Mapping[str, ScoreDimension],
    weights: Optional[Mapping[str, Decimal]] = None,
) -> Optional[Decimal]:
    """
    Weighted mean of the dimensions that have a score.

    Missing weights default to 1, so without configuration this is the plain
    mean of the non-null scores. Returns None when every score is None.
    """
    weights = weights or {}
    scored = [
        (Decimal(dim.score), Decimal(weights.get(name, 1)))
        for name, dim in dimensions.items()
        if dim.score is not None
    ]
    total_weight = sum_decimals(w for _, w in scored)
    if not scored or total_weight == 0:
        return None

    weighted = sum_decimals(score * weight for score, weight in scored)
    return quantize_money(weighted / total_weight)


def compute_supplier_score(
    supplier_id: str,
    data_range: Optional[DataRange],
    history_provider: HistoryProvider,
    *,
    options: Optional[ScoringOptions] = None,
    now: Optional[datetime] = None,
) -> SupplierScore:
    """
    Score one supplier over a data range.

    Args:
        supplier_id: Supplier to score
        data_range: Window to score over (trailing SCORE_WINDOW_MONTHS if None)
        history_provider: Injected read interface for the supplier's history
        options: Grace periods, peer policy and weights (defaults from config)
        now: Timestamp recorded as calculated_at

    Returns:
        SupplierScore with four dimensions and the composite
    """
    options = options or ScoringOptions()
    now = to_utc(now) or datetime.now(timezone.utc)
    if data_range is None:
        data_range = DataRange.trailing(config.SCORE_WINDOW_MONTHS, now=now)

    orders = history_provider.orders(supplier_id, data_range)
    receivings = history_provider.receivings(supplier_id, data_range)

    dimensions = {
        "punctuality": score_punctuality(orders, receivings, data_range, options),
        "conformity": score_conformity(receivings, data_range),
        "price_competitiveness": score_price_competitiveness(supplier_id, history_provider, options),
        "reliability": score_reliability(orders, data_range),
    }

    warnings: List[InsufficientDataWarning] = []
    for name, dim in dimensions.items():
        if dim.score is None:
            warning = InsufficientDataWarning(
                message=f"Supplier {supplier_id} has no {name} data in range; dimension excluded",
                supplier_id=supplier_id,
                dimension=name,
            )
            log_warning(logger, warning)
            warnings.append(warning)

    composite = composite_score(dimensions, options.weights)

    logger.info(f"[SupplierScoring] Supplier {supplier_id}: composite {composite}")

    return SupplierScore(
        supplier_id=supplier_id,
        composite=composite,
        calculated_at=now,
        data_range=data_range,
        warnings=warnings,
        **dimensions,
    )


class BatchScoreResult(BaseModel):
    """Outcome of re-scoring many suppliers."""
    results: List[SupplierScore] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)

    @property
    def suppliers_processed(self) -> int:
        return len(self.results)


def recalculate_all(
    supplier_ids: Iterable[str],
    data_range: Optional[DataRange],
    history_provider: HistoryProvider,
    *,
    options: Optional[ScoringOptions] = None,
    now: Optional[datetime] = None,
) -> BatchScoreResult:
    """Score every supplier; bad data for one supplier does not stop the batch."""
    batch = BatchScoreResult()
    for supplier_id in supplier_ids:
        try:
            batch.results.append(compute_supplier_score(
                supplier_id, data_range, history_provider, options=options, now=now,
            ))
        except ReconciliationError as e:
            logger.error(f"[SupplierScoring] Supplier {supplier_id} failed: {e}")
            batch.failures[supplier_id] = str(e)

    logger.info(
        f"[SupplierScoring] Batch complete: {batch.suppliers_processed} scored, "
        f"{len(batch.failures)} failed"
    )
    return batch


def rank_suppliers(
    scores: Iterable[SupplierScore],
    sort_by: str = "composite",
    *,
    names: Optional[Mapping[str, str]] = None,
    categories: Optional[Mapping[str, str]] = None,
    category: Optional[str] = None,
) -> List[SupplierRanking]:
    """Rank suppliers by composite or one dimension, best first, unscored last."""
    if sort_by != "composite" and sort_by not in DIMENSIONS:
        raise ValueError(f"Unknown sort key: {sort_by}")

    names = names or {}
    categories = categories or {}

    def sort_value(score: SupplierScore) -> Optional[Decimal]:
        if sort_by == "composite":
            return score.composite
        value = getattr(score, sort_by).score
        return Decimal(value) if value is not None else None

    selected = [
        s for s in scores
        if category is None or categories.get(s.supplier_id) == category
    ]

    # Nulls last; ties keep the input order
    ordered = sorted(
        selected,
        key=lambda s: (sort_value(s) is None, -(sort_value(s) or ZERO)),
    )

    return [
        SupplierRanking(
            rank=index,
            supplier_id=s.supplier_id,
            supplier_name=names.get(s.supplier_id),
            category=categories.get(s.supplier_id),
            composite=s.composite,
            punctuality=s.punctuality.score,
            conformity=s.conformity.score,
            price_competitiveness=s.price_competitiveness.score,
            reliability=s.reliability.score,
            calculated_at=s.calculated_at,
        )
        for index, s in enumerate(ordered, 1)
    ]


def classify_risk(supplier_count: int, average: Optional[Decimal]) -> str:
    """Risk level of a category from its supplier count and average composite."""
    if supplier_count <= 1 and (average is None or average < 40):
        return "critical"
    if (average is not None and average < 60) or supplier_count <= 1:
        return "high"
    if average is not None and average < 75:
        return "medium"
    if average is None and supplier_count <= 2:
        return "high"
    return "low"


RISK_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def build_risk_map(entries: Iterable[Tuple[Optional[str], Optional[SupplierScore]]]) -> List[CategoryRisk]:
    """
    Per-category supply risk.

    Args:
        entries: (category, score) per supplier; score may be None for
            suppliers never scored, category None means uncategorized

    Returns:
        Categories sorted from critical to low risk
    """
    groups: Dict[str, List[Optional[Decimal]]] = {}
    for category, score in entries:
        key = category or "uncategorized"
        groups.setdefault(key, []).append(score.composite if score is not None else None)

    risk_map: List[CategoryRisk] = []
    for category, composites in groups.items():
        scored = [c for c in composites if c is not None]
        average = quantize_money(sum_decimals(scored) / Decimal(len(scored))) if scored else None
        risk_map.append(CategoryRisk(
            category=category,
            supplier_count=len(composites),
            average_score=average,
            scored_supplier_count=len(scored),
            single_supplier_risk=len(composites) <= 1,
            risk_level=classify_risk(len(composites), average),
        ))

    risk_map.sort(key=lambda r: RISK_ORDER[r.risk_level])
    return risk_map
