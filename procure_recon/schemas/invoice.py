"""
Invoice schema and data models.
Represents supplier invoices after upload or OCR ingestion.
"""

from datetime import date
from decimal import Decimal
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from procure_recon.utils.money import decimal_fields, parse_decimal, sum_decimals


class InvoiceLine(BaseModel):
    """A single line item from an invoice."""
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: Optional[str] = None
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    vat_rate: Optional[Decimal] = None  # percent, e.g. 22 or 10

    parse_amounts = decimal_fields("quantity", "unit_price", "line_total")
    parse_vat = decimal_fields("vat_rate", allow_none=True)

    @model_validator(mode="before")
    @classmethod
    def default_line_total(cls, data: Any) -> Any:
        """OCR output often omits the line total; derive it from quantity and price."""
        if isinstance(data, dict) and data.get("line_total") in (None, ""):
            quantity = parse_decimal(data.get("quantity"), "quantity")
            unit_price = parse_decimal(data.get("unit_price"), "unit_price")
            data = {**data, "line_total": quantity * unit_price}
        return data


class Invoice(BaseModel):
    """A supplier invoice."""
    model_config = ConfigDict(frozen=True)

    id: str
    supplier_id: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    lines: List[InvoiceLine] = Field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum_decimals(line.line_total for line in self.lines)
