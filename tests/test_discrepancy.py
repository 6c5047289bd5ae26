"""
Tests for the discrepancy classifier.
"""

import pytest
from decimal import Decimal

from procure_recon.engine.discrepancy import (
    classify,
    detect_overcharge,
    detect_vat_errors,
    expected_quantity,
)
from procure_recon.engine.matching import MatchedLine
from procure_recon.schemas.invoice import InvoiceLine
from procure_recon.schemas.order import OrderLine
from procure_recon.schemas.receiving import ReceivingLine


@pytest.fixture
def order_line():
    """Ordered: 10 units at 4.00."""
    return OrderLine(id="OL-1", product_id="P", product_name="Tomatoes", quantity="10", unit_price="4.00")


def triple(order_line=None, received=None, invoiced=None):
    receiving_lines = []
    if received is not None:
        receiving_lines = [ReceivingLine(id="RL-1", order_line_id="OL-1", quantity_received=received)]
    return MatchedLine(order_line=order_line, receiving_lines=receiving_lines, invoice_lines=list(invoiced or []))


def test_exact_match_has_no_discrepancy(order_line):
    """Same quantity and price produce nothing."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.00")
    assert classify(triple(order_line, "10", [invoice])) == []


def test_unauthorized_item_uses_full_line_total():
    """An invoice line without an order line is billed in full."""
    invoice = InvoiceLine(id="IL-9", product_id="Q", quantity="3", unit_price="15.00", line_total="45.00")
    details = classify(triple(invoiced=[invoice]))

    assert len(details) == 1
    assert details[0].type == "unauthorized_item"
    assert details[0].amount == Decimal("45.00")
    assert details[0].expected is None
    assert details[0].order_line_id is None


def test_overcharge_amount_is_price_difference_times_quantity(order_line):
    """4.50 billed against 4.00 ordered on 10 units."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.50")
    details = classify(triple(order_line, "10", [invoice]))

    assert [d.type for d in details] == ["overcharge"]
    assert details[0].expected == Decimal("4.00")
    assert details[0].actual == Decimal("4.50")
    assert details[0].difference == Decimal("0.50")
    assert details[0].amount == Decimal("5.00")
    assert details[0].receiving_line_id == "RL-1"


def test_undercharge_is_not_an_overcharge(order_line):
    """A lower invoice price is never flagged."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="3.90")
    assert detect_overcharge(triple(order_line, "10", [invoice])) == []


def test_price_tolerance_is_inclusive(order_line):
    """A difference equal to the tolerance is accepted."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.05")
    t = triple(order_line, "10", [invoice])
    assert classify(t, price_tolerance=Decimal("0.05")) == []
    assert len(classify(t, price_tolerance=Decimal("0.04"))) == 1


def test_quantity_mismatch_against_received_quantity(order_line):
    """Billing 10 when 8 arrived: 2 x 4.00 overbilled."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.00")
    details = classify(triple(order_line, "8", [invoice]), expected_quantity_source="received")

    assert [d.type for d in details] == ["quantity_mismatch"]
    assert details[0].expected == Decimal("8")
    assert details[0].actual == Decimal("10")
    assert details[0].difference == Decimal("2")
    assert details[0].amount == Decimal("8.00")


def test_quantity_compared_to_ordered_when_configured(order_line):
    """With the ordered policy a short delivery billed in full is fine."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.00")
    assert classify(triple(order_line, "8", [invoice]), expected_quantity_source="ordered") == []


def test_expected_quantity_falls_back_to_ordered(order_line):
    """No receiving count yet: the ordered quantity is expected."""
    t = triple(order_line, None, [])
    assert expected_quantity(t, "received") == Decimal("10")


def test_underbilling_yields_negative_amount(order_line):
    """Invoicing fewer units than received is a negative discrepancy."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="7", unit_price="4.00")
    details = classify(triple(order_line, "10", [invoice]))
    assert details[0].difference == Decimal("-3")
    assert details[0].amount == Decimal("-12.00")


def test_quantity_tolerance_with_tiny_difference(order_line):
    """10.0000001 against 10 is a mismatch at zero tolerance only."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10.0000001", unit_price="4.00")
    t = triple(order_line, "10", [invoice])
    assert len(classify(t, quantity_tolerance=Decimal("0"))) == 1
    assert classify(t, quantity_tolerance=Decimal("0.001")) == []


def test_zero_amount_details_are_dropped(order_line):
    """A quantity mismatch on a free line carries no amount and is filtered."""
    free_line = OrderLine(id="OL-1", product_id="P", quantity="10", unit_price="0")
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="12", unit_price="0")
    assert classify(triple(free_line, "10", [invoice])) == []


def test_both_quantity_and_price_rules_can_fire(order_line):
    """Rules are evaluated in order and accumulate."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="12", unit_price="5.00")
    details = classify(triple(order_line, "10", [invoice]))
    assert [d.type for d in details] == ["quantity_mismatch", "overcharge"]
    assert details[0].amount == Decimal("10.00")  # 2 x 5.00
    assert details[1].amount == Decimal("12.00")  # 1.00 x 12


def test_vat_error_against_configured_rate(order_line):
    """22% billed where 10% applies on a 40.00 line."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.00", vat_rate="22")
    details = detect_vat_errors(triple(order_line, "10", [invoice]), {"P": Decimal("10")}.get)

    assert len(details) == 1
    assert details[0].type == "vat_error"
    assert details[0].expected == Decimal("10")
    assert details[0].actual == Decimal("22")
    assert details[0].amount == Decimal("4.8")


def test_vat_skipped_without_rate_or_lookup(order_line):
    """Unknown rates are not checked."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.00", vat_rate="22")
    t = triple(order_line, "10", [invoice])
    assert detect_vat_errors(t, None) == []
    assert detect_vat_errors(t, {}.get) == []


def test_vat_checked_on_unauthorized_lines():
    """An unordered line billed at the wrong rate emits both details."""
    invoice = InvoiceLine(id="IL-9", product_id="Q", quantity="3", unit_price="15.00", vat_rate="22")
    details = classify(triple(invoiced=[invoice]), vat_rate_lookup={"Q": Decimal("10")}.get)

    assert [d.type for d in details] == ["unauthorized_item", "vat_error"]
    vat = details[1]
    assert vat.order_line_id is None
    assert vat.expected == Decimal("10")
    assert vat.actual == Decimal("22")
    assert vat.amount == Decimal("5.4")  # 12% of 45.00


def test_details_serialize_with_camel_case_keys(order_line):
    """Stored detail objects use camelCase keys and string decimals."""
    invoice = InvoiceLine(id="IL-1", product_id="P", quantity="10", unit_price="4.50")
    detail = classify(triple(order_line, "10", [invoice]))[0]
    row = detail.model_dump(mode="json", by_alias=True)

    assert row["type"] == "overcharge"
    assert row["invoiceLineId"] == "IL-1"
    assert row["orderLineId"] == "OL-1"
    assert row["amount"] == "5.00"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
