"""
Tests for line matching.
"""

import pytest
from decimal import Decimal

from procure_recon.engine.matching import match_by_description, match_lines
from procure_recon.errors import AmbiguousMatchWarning, DataIntegrityWarning
from procure_recon.schemas.invoice import InvoiceLine
from procure_recon.schemas.order import OrderLine
from procure_recon.schemas.receiving import ReceivingLine


def test_order_lines_first_then_unmatched_invoice_lines(sample_order, sample_receiving):
    """Triples follow order sequence, then invoice sequence for unmatched lines."""
    invoice_lines = [
        InvoiceLine(id="IL-X", product_id="X", quantity="1", unit_price="9"),
        InvoiceLine(id="IL-2", product_id="Q", quantity="20", unit_price="2.50"),
        InvoiceLine(id="IL-Y", product_id="Y", quantity="2", unit_price="3"),
    ]
    result = match_lines(sample_order.lines, sample_receiving.lines, invoice_lines)

    assert [t.order_line.id if t.order_line else None for t in result.triples] == ["OL-1", "OL-2", None, None]
    assert result.triples[0].invoice_lines == []  # ordered, received, not billed yet
    assert result.triples[1].invoice_line_id == "IL-2"
    assert result.triples[1].receiving_line_id == "RL-2"
    assert [line.id for line in result.unmatched_invoice_lines] == ["IL-X", "IL-Y"]


def test_unmatched_invoice_line_has_no_order_or_receiving(sample_order):
    """An invoice product absent from the order yields an order-less triple."""
    result = match_lines(
        sample_order.lines, [], [InvoiceLine(id="IL-Z", product_id="Z", quantity="3", unit_price="15")]
    )
    unmatched = result.triples[-1]
    assert unmatched.order_line is None
    assert unmatched.receiving_lines == []
    assert unmatched.invoice_line_total == Decimal("45")


def test_split_invoice_lines_are_summed(sample_order):
    """Two invoice lines for the same product are combined."""
    invoice_lines = [
        InvoiceLine(id="IL-1a", product_id="P", quantity="2", unit_price="10.00"),
        InvoiceLine(id="IL-1b", product_id="P", quantity="3", unit_price="10.00"),
    ]
    triple = match_lines(sample_order.lines, [], invoice_lines).triples[0]
    assert triple.invoice_quantity == Decimal("5")
    assert triple.invoice_line_total == Decimal("50.00")
    assert triple.invoice_unit_price == Decimal("10.00")
    assert triple.invoice_line_id == "IL-1a"


def test_split_invoice_lines_with_different_prices_use_weighted_price(sample_order):
    """Differing unit prices collapse to total / quantity."""
    invoice_lines = [
        InvoiceLine(id="IL-1a", product_id="P", quantity="2", unit_price="10"),
        InvoiceLine(id="IL-1b", product_id="P", quantity="2", unit_price="12"),
    ]
    triple = match_lines(sample_order.lines, [], invoice_lines).triples[0]
    assert triple.invoice_unit_price == Decimal("11")


def test_duplicate_receiving_lines_summed_with_warning(sample_order):
    """Two receiving lines for one order line are a warning, not an error."""
    receiving_lines = [
        ReceivingLine(id="RL-1a", order_line_id="OL-1", quantity_received="2"),
        ReceivingLine(id="RL-1b", order_line_id="OL-1", quantity_received="3"),
    ]
    result = match_lines(sample_order.lines, receiving_lines, [])
    assert result.triples[0].received_quantity == Decimal("5")
    assert any(isinstance(w, DataIntegrityWarning) for w in result.warnings)


def test_received_quantity_none_until_recorded(sample_order):
    """A receiving line without a count yields no received quantity."""
    result = match_lines(sample_order.lines, [ReceivingLine(id="RL-1", order_line_id="OL-1")], [])
    assert result.triples[0].has_receiving
    assert result.triples[0].received_quantity is None


def test_orphan_receiving_lines_are_ignored(sample_order):
    """Receiving lines pointing at another order are reported and skipped."""
    result = match_lines(
        sample_order.lines, [ReceivingLine(id="RL-9", order_line_id="OL-999", quantity_received="1")], []
    )
    assert all(not t.receiving_lines for t in result.triples)
    assert result.warnings[0].line_ids == ["RL-9"]


def test_description_fallback_is_case_insensitive_exact(sample_order):
    """Lines without product_id match on exact product name, ignoring case."""
    invoice_line = InvoiceLine(id="IL-9", description="  olive OIL 1l ", quantity="5", unit_price="10")
    result = match_lines(sample_order.lines, [], [invoice_line])
    assert result.triples[0].invoice_line_id == "IL-9"
    assert result.triples[0].match_method == "description"
    assert result.unmatched_invoice_lines == []


def test_description_fallback_collapses_inner_whitespace(sample_order):
    """Runs of spaces inside a name compare as one space; characters do not change."""
    spaced = InvoiceLine(id="IL-9", description="Olive   Oil\t1L", quantity="5", unit_price="10")
    assert match_by_description(spaced, sample_order.lines)[0].id == "OL-1"

    split = InvoiceLine(id="IL-8", description="Olive Oil 1 L", quantity="5", unit_price="10")
    assert match_by_description(split, sample_order.lines)[0] is None


def test_description_fallback_never_fuzzy_matches(sample_order):
    """A near-miss description stays unmatched and raises an ambiguity warning."""
    invoice_line = InvoiceLine(id="IL-9", description="Olive Oil 1 L", quantity="5", unit_price="10")
    result = match_lines(sample_order.lines, [], [invoice_line], ambiguity_threshold=80)

    assert [line.id for line in result.unmatched_invoice_lines] == ["IL-9"]
    warnings = [w for w in result.warnings if isinstance(w, AmbiguousMatchWarning)]
    assert len(warnings) == 1
    assert warnings[0].candidate_order_line_ids == ["OL-1"]


def test_description_matching_several_order_lines_is_ambiguous():
    """Two order lines with the same name: no guess is made."""
    order_lines = [
        OrderLine(id="OL-1", product_id="A", product_name="Tomatoes", quantity="1", unit_price="1"),
        OrderLine(id="OL-2", product_id="B", product_name="tomatoes", quantity="1", unit_price="1"),
    ]
    invoice_line = InvoiceLine(id="IL-1", description="TOMATOES", quantity="1", unit_price="1")

    target, warning = match_by_description(invoice_line, order_lines)
    assert target is None
    assert warning.candidate_order_line_ids == ["OL-1", "OL-2"]


def test_description_without_text_is_unmatched(sample_order):
    """No product_id and no description: unmatched, no warning."""
    target, warning = match_by_description(
        InvoiceLine(id="IL-1", quantity="1", unit_price="1"), sample_order.lines, 80
    )
    assert target is None
    assert warning is None


def test_duplicate_product_on_order_attaches_to_first_line():
    """Invoice lines go to the first order line carrying the product."""
    order_lines = [
        OrderLine(id="OL-1", product_id="A", quantity="1", unit_price="1"),
        OrderLine(id="OL-2", product_id="A", quantity="2", unit_price="1"),
    ]
    result = match_lines(order_lines, [], [InvoiceLine(id="IL-1", product_id="A", quantity="1", unit_price="1")])
    assert result.triples[0].invoice_line_id == "IL-1"
    assert result.triples[1].invoice_lines == []
    assert any(isinstance(w, DataIntegrityWarning) for w in result.warnings)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
