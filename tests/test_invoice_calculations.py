"""Invoice arithmetic: totals, rounding, payment status and unit conversion."""
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.services.invoice_calculations import (
    InvoiceConfig,
    LineItem,
    calculate_totals,
    resolve_status,
    to_decimal,
    to_metric_tons,
)


CONFIG = InvoiceConfig(cgst_rate=Decimal("9"), sgst_rate=Decimal("9"))


def test_single_line_with_default_rates():
    totals = calculate_totals([LineItem(quantity=Decimal("10"), rate=Decimal("100"))], CONFIG)

    assert totals.subtotal == Decimal("1000.00")
    assert totals.cgst == Decimal("90.00")
    assert totals.sgst == Decimal("90.00")
    assert totals.grand_total == Decimal("1180.00")


def test_line_amount_overrides_quantity_times_rate():
    totals = calculate_totals(
        [LineItem(quantity=Decimal("3"), rate=Decimal("100"), amount=Decimal("250"))],
        CONFIG,
    )
    assert totals.line_amounts == [Decimal("250.00")]
    assert totals.subtotal == Decimal("250.00")


def test_explicit_subtotal_replaces_line_sum():
    totals = calculate_totals(
        [LineItem(quantity=Decimal("1"), rate=Decimal("100"))],
        CONFIG,
        subtotal=Decimal("2000"),
    )
    assert totals.subtotal == Decimal("2000.00")
    assert totals.grand_total == Decimal("2360.00")


def test_additional_charges_are_added_after_tax():
    totals = calculate_totals(
        [LineItem(quantity=Decimal("10"), rate=Decimal("100"))],
        CONFIG,
        additional_charges=Decimal("150"),
    )
    assert totals.cgst == Decimal("90.00")
    assert totals.additional_charges == Decimal("150.00")
    assert totals.grand_total == Decimal("1330.00")


def test_per_invoice_rate_overrides():
    totals = calculate_totals(
        [LineItem(quantity=Decimal("1"), rate=Decimal("1000"))],
        CONFIG,
        cgst_rate=Decimal("6"),
        sgst_rate=Decimal("0"),
    )
    assert totals.cgst == Decimal("60.00")
    assert totals.sgst == Decimal("0.00")
    assert totals.grand_total == Decimal("1060.00")


def test_taxes_round_half_up_independently():
    # 0.25 * 9% = 0.0225 -> 0.02 each
    totals = calculate_totals([LineItem(quantity=Decimal("1"), rate=Decimal("0.25"))], CONFIG)
    assert totals.cgst == Decimal("0.02")
    assert totals.sgst == Decimal("0.02")
    assert totals.grand_total == Decimal("0.29")

    # 0.50 * 9% = 0.045 -> 0.05 each
    totals = calculate_totals([LineItem(quantity=Decimal("1"), rate=Decimal("0.5"))], CONFIG)
    assert totals.cgst == Decimal("0.05")
    assert totals.grand_total == Decimal("0.60")


def test_each_line_is_rounded_before_summing():
    lines = [LineItem(quantity=Decimal("0.333"), rate=Decimal("10")) for _ in range(3)]
    totals = calculate_totals(lines, CONFIG)
    assert totals.line_amounts == [Decimal("3.33")] * 3
    assert totals.subtotal == Decimal("9.99")


def test_float_inputs_do_not_drift():
    totals = calculate_totals([LineItem(quantity=0.1, rate=3)], CONFIG)
    assert totals.subtotal == Decimal("0.30")


def test_empty_invoice_totals_zero():
    totals = calculate_totals([], CONFIG)
    assert totals.subtotal == Decimal("0.00")
    assert totals.grand_total == Decimal("0.00")


@pytest.mark.parametrize("bad", ["abc", None, True, "-5", float("nan"), "Infinity"])
def test_to_decimal_rejects_bad_values(bad):
    with pytest.raises(ValidationError):
        to_decimal(bad, "quantity")


def test_negative_line_rate_is_rejected():
    with pytest.raises(ValidationError) as exc:
        calculate_totals([LineItem(quantity=Decimal("1"), rate=Decimal("-1"))], CONFIG)
    assert exc.value.details == {"field": "lines[0].rate"}


@pytest.mark.parametrize(
    "total, received, expected",
    [
        ("1180", "0", "pending"),
        ("1180", "500", "partial"),
        ("1180", "1179.99", "paid"),
        ("1180", "1180", "paid"),
        ("1180", "1500", "paid"),
        ("0", "0", "pending"),
    ],
)
def test_resolve_status(total, received, expected):
    assert resolve_status(Decimal(total), Decimal(received)) == expected


@pytest.mark.parametrize(
    "quantity, unit, expected",
    [
        ("2500", "Kg", "2.5"),
        ("3", "MT", "3"),
        ("4", "KL", "4"),
        ("4", "kl", "4"),
        ("7", "Bags", "0"),
        (None, "MT", "0"),
    ],
)
def test_to_metric_tons(quantity, unit, expected):
    value = Decimal(quantity) if quantity is not None else None
    assert to_metric_tons(value, unit) == Decimal(expected)
