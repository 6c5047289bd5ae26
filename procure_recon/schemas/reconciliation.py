"""
Output schemas for reconciliation results.
Defines the exact shape of the persisted reconciliation row and of its
discrepancy_details JSON array.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ReconciliationStatus = Literal["matched", "discrepancy", "contested", "resolved"]

DiscrepancyType = Literal["overcharge", "quantity_mismatch", "unauthorized_item", "vat_error"]


class _DetailBase(BaseModel):
    """Fields shared by every discrepancy kind. Serialized in camelCase."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    invoice_line_id: str
    order_line_id: Optional[str] = None
    receiving_line_id: Optional[str] = None
    expected: Optional[Decimal] = None
    actual: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    amount: Decimal


class OverchargeDetail(_DetailBase):
    """Invoice unit price above the ordered unit price."""
    type: Literal["overcharge"] = "overcharge"
    expected: Decimal
    actual: Decimal
    difference: Decimal


class QuantityMismatchDetail(_DetailBase):
    """Invoiced quantity differs from the received (or ordered) quantity."""
    type: Literal["quantity_mismatch"] = "quantity_mismatch"
    expected: Decimal
    actual: Decimal
    difference: Decimal


class UnauthorizedItemDetail(_DetailBase):
    """Invoice line with no corresponding order line."""
    type: Literal["unauthorized_item"] = "unauthorized_item"


class VatErrorDetail(_DetailBase):
    """Invoice VAT rate differs from the product's configured rate."""
    type: Literal["vat_error"] = "vat_error"
    expected: Decimal
    actual: Decimal
    difference: Decimal


DiscrepancyDetail = Annotated[
    Union[OverchargeDetail, QuantityMismatchDetail, UnauthorizedItemDetail, VatErrorDetail],
    Field(discriminator="type"),
]


class Reconciliation(BaseModel):
    """One reconciliation per invoice x order x receiving triple."""
    model_config = ConfigDict(frozen=True)

    invoice_id: Optional[str] = None
    order_id: Optional[str] = None
    receiving_id: Optional[str] = None
    supplier_id: Optional[str] = None
    status: ReconciliationStatus
    total_order_amount: Decimal = Decimal("0")
    total_received_amount: Decimal = Decimal("0")
    total_invoiced_amount: Decimal = Decimal("0")
    discrepancy_amount: Decimal = Decimal("0")
    discrepancy_details: List[DiscrepancyDetail] = Field(default_factory=list)
    notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def discrepancy_count(self) -> int:
        return len(self.discrepancy_details)

    def to_row(self) -> Dict[str, Any]:
        """Row for the reconciliations table; decimals rendered as strings."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Reconciliation":
        return cls.model_validate(row)
