"""
Shared fixtures for the engine tests.
"""

import os

os.environ.setdefault("ENV", "test")

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from procure_recon.schemas.invoice import Invoice, InvoiceLine
from procure_recon.schemas.order import Order, OrderLine
from procure_recon.schemas.receiving import ReceivingLine, ReceivingRecord


@pytest.fixture
def sample_order():
    """Order for two products: 5 x P at 10.00 and 20 x Q at 2.50."""
    return Order(
        id="ORD-1",
        supplier_id="SUP-1",
        status="received",
        created_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
        sent_at=datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc),
        expected_delivery_date=date(2026, 3, 4),
        lines=[
            OrderLine(id="OL-1", product_id="P", product_name="Olive Oil 1L", quantity="5", unit_price="10.00"),
            OrderLine(id="OL-2", product_id="Q", product_name="Flour 00", quantity="20", unit_price="2.50"),
        ],
    )


@pytest.fixture
def sample_receiving():
    """Complete, conforming receipt of the sample order."""
    return ReceivingRecord(
        id="RCV-1",
        order_id="ORD-1",
        supplier_id="SUP-1",
        received_at=datetime(2026, 3, 3, 8, 30, tzinfo=timezone.utc),
        lines=[
            ReceivingLine(id="RL-1", order_line_id="OL-1", product_id="P", quantity_received="5"),
            ReceivingLine(id="RL-2", order_line_id="OL-2", product_id="Q", quantity_received="20"),
        ],
    )


@pytest.fixture
def sample_invoice():
    """Invoice that matches the sample order exactly."""
    return Invoice(
        id="INV-1",
        supplier_id="SUP-1",
        invoice_number="2026/118",
        lines=[
            InvoiceLine(id="IL-1", product_id="P", description="Olive Oil 1L", quantity="5", unit_price="10.00", vat_rate="22"),
            InvoiceLine(id="IL-2", product_id="Q", description="Flour 00", quantity="20", unit_price="2.50", vat_rate="4"),
        ],
    )


@pytest.fixture
def vat_rates():
    """Configured VAT rates per product."""
    rates = {"P": Decimal("22"), "Q": Decimal("4")}
    return rates.get
