"""
Read-side interfaces the engines depend on.

The engines never fetch data themselves. Callers load a consistent snapshot
(one transaction / snapshot read) and hand it over through these interfaces.
"""

from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from procure_recon.schemas.order import Order
from procure_recon.schemas.receiving import ReceivingRecord
from procure_recon.schemas.score import DataRange
from procure_recon.utils.money import decimal_fields


# product_id -> expected VAT rate in percent, or None when unknown
VatRateLookup = Callable[[str], Optional[Decimal]]


class SupplierPrice(BaseModel):
    """Current catalogue price of one product from one supplier."""
    model_config = ConfigDict(frozen=True)

    product_id: str
    price: Decimal

    parse_amounts = decimal_fields("price")


class PeerPrice(BaseModel):
    """A supplier's price for a product, as returned by the catalogue."""
    model_config = ConfigDict(frozen=True)

    supplier_id: str
    price: Decimal

    parse_amounts = decimal_fields("price")


class HistoryProvider(Protocol):
    """History needed to score one supplier over a data range."""

    def orders(self, supplier_id: str, data_range: DataRange) -> List[Order]:
        ...

    def receivings(self, supplier_id: str, data_range: DataRange) -> List[ReceivingRecord]:
        ...

    def supplier_prices(self, supplier_id: str) -> List[SupplierPrice]:
        ...

    def peer_prices(self, product_id: str) -> List[PeerPrice]:
        ...


class InMemoryHistoryProvider:
    """HistoryProvider over already-loaded rows. Used by batch jobs and tests."""

    def __init__(
        self,
        orders: Iterable[Order] = (),
        receivings: Iterable[ReceivingRecord] = (),
        catalogue: Optional[Dict[str, Dict[str, Decimal]]] = None,
    ) -> None:
        # catalogue: supplier_id -> {product_id: current price}
        self._orders = list(orders)
        self._receivings = list(receivings)
        self._catalogue = catalogue or {}

    def orders(self, supplier_id: str, data_range: DataRange) -> List[Order]:
        return [o for o in self._orders if o.supplier_id == supplier_id]

    def receivings(self, supplier_id: str, data_range: DataRange) -> List[ReceivingRecord]:
        order_ids = {o.id for o in self._orders if o.supplier_id == supplier_id}
        return [
            r for r in self._receivings
            if r.supplier_id == supplier_id or (r.supplier_id is None and r.order_id in order_ids)
        ]

    def supplier_prices(self, supplier_id: str) -> List[SupplierPrice]:
        prices = self._catalogue.get(supplier_id, {})
        return [SupplierPrice(product_id=pid, price=price) for pid, price in prices.items()]

    def peer_prices(self, product_id: str) -> List[PeerPrice]:
        return [
            PeerPrice(supplier_id=sid, price=prices[product_id])
            for sid, prices in self._catalogue.items()
            if product_id in prices
        ]
