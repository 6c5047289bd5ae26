"""
Purchase Order schema and data models.
Represents orders as supplied by the repository layer.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from procure_recon.utils.dates import utc_fields
from procure_recon.utils.money import decimal_fields, sum_decimals


OrderStatus = Literal[
    "draft",
    "pending_approval",
    "approved",
    "sent",
    "confirmed",
    "in_delivery",
    "partially_received",
    "received",
    "closed",
    "cancelled",
]


class OrderLine(BaseModel):
    """A single line in a Purchase Order."""
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: Optional[str] = None  # None for ad-hoc lines
    product_name: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal

    parse_amounts = decimal_fields("quantity", "unit_price")

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


class Order(BaseModel):
    """A Purchase Order record."""
    model_config = ConfigDict(frozen=True)

    id: str
    supplier_id: str
    status: OrderStatus = "sent"
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    expected_delivery_date: Optional[date] = None
    lines: List[OrderLine] = Field(default_factory=list)

    normalize_timestamps = utc_fields("created_at", "sent_at")

    @property
    def total(self) -> Decimal:
        return sum_decimals(line.line_total for line in self.lines)
