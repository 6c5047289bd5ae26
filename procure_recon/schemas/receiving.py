"""
Goods-receiving schema and data models.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from procure_recon.utils.dates import utc_fields
from procure_recon.utils.money import decimal_fields


ReceivingStatus = Literal["in_progress", "completed"]

NonConformityType = Literal[
    "wrong_quantity",
    "wrong_product",
    "temperature",
    "quality",
    "packaging",
    "expired",
]

NonConformitySeverity = Literal["low", "medium", "high", "critical"]


class NonConformity(BaseModel):
    """Why a received line was flagged as non-conforming."""
    model_config = ConfigDict(frozen=True)

    type: NonConformityType
    severity: NonConformitySeverity = "medium"
    notes: Optional[str] = None


class ReceivingLine(BaseModel):
    """A received line, always recorded against one order line."""
    model_config = ConfigDict(frozen=True)

    id: str
    order_line_id: str
    product_id: Optional[str] = None
    quantity_received: Optional[Decimal] = None  # None until counted
    is_conforming: bool = True
    non_conformity: Optional[NonConformity] = None

    parse_amounts = decimal_fields("quantity_received", allow_none=True)


class ReceivingRecord(BaseModel):
    """A goods-receiving record for one order."""
    model_config = ConfigDict(frozen=True)

    id: str
    order_id: str
    supplier_id: Optional[str] = None
    status: ReceivingStatus = "completed"
    received_at: Optional[datetime] = None
    lines: List[ReceivingLine] = Field(default_factory=list)

    normalize_timestamps = utc_fields("received_at")

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"
