"""
Invoice arithmetic: GST totals, payment status and unit conversion.

Everything here is pure. Money is Decimal end to end and rounded with
ROUND_HALF_UP to 2 places; CGST and SGST are rounded independently before
they are summed into the grand total.

    totals = calculate_totals(
        [LineItem(quantity=Decimal("10"), rate=Decimal("100"))],
        InvoiceConfig(cgst_rate=Decimal("9"), sgst_rate=Decimal("9")),
    )
    # totals.grand_total == Decimal("1180.00")
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, List, Optional, Sequence

from app.core.exceptions import ValidationError
from app.models.invoice import PaymentStatus, MaterialUnit


TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
PAYMENT_EPSILON = Decimal("0.01")
KG_PER_MT = Decimal("1000")


@dataclass(frozen=True)
class InvoiceConfig:
    """Snapshot of the business settings an invoice write depends on."""
    cgst_rate: Decimal = Decimal("9")
    sgst_rate: Decimal = Decimal("9")
    number_format: str = "INV-YYYYMM"


@dataclass
class LineItem:
    """A priced line; amount overrides quantity x rate when given."""
    quantity: Any = ZERO
    rate: Any = ZERO
    amount: Any = None


@dataclass
class InvoiceTotals:
    line_amounts: List[Decimal] = field(default_factory=list)
    subtotal: Decimal = ZERO
    cgst_rate: Decimal = ZERO
    sgst_rate: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    additional_charges: Decimal = ZERO
    grand_total: Decimal = ZERO


def round2(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def as_money(value: Any) -> Decimal:
    """Aggregate from the store (Decimal, float or None) as a 2-place Decimal."""
    return round2(Decimal(str(value or 0)))


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """
    Coerce a request value to a non-negative finite Decimal.

    Accepts Decimal, int, float and numeric strings. Floats go through str()
    so 0.1 stays 0.1. Raises ValidationError for anything else.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", {"field": field_name})

    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field_name} must be a number", {"field": field_name})

    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number", {"field": field_name})
    if result < 0:
        raise ValidationError(f"{field_name} cannot be negative", {"field": field_name})
    return result


def line_amount(line: LineItem, index: int = 0) -> Decimal:
    if line.amount is not None:
        return round2(to_decimal(line.amount, f"lines[{index}].amount"))
    quantity = to_decimal(line.quantity, f"lines[{index}].quantity")
    rate = to_decimal(line.rate, f"lines[{index}].rate")
    return round2(quantity * rate)


def calculate_totals(
    lines: Sequence[LineItem],
    config: InvoiceConfig,
    subtotal: Any = None,
    additional_charges: Any = ZERO,
    cgst_rate: Any = None,
    sgst_rate: Any = None,
) -> InvoiceTotals:
    """
    Compute subtotal, CGST, SGST and grand total.

    Args:
        lines: material lines (additional charges excluded)
        config: settings snapshot supplying default tax rates
        subtotal: explicit subtotal; replaces the sum of line amounts
        additional_charges: flat untaxed amount added after tax
        cgst_rate, sgst_rate: per-invoice overrides in percent
    """
    amounts = [line_amount(line, i) for i, line in enumerate(lines)]

    if subtotal is not None:
        base = round2(to_decimal(subtotal, "subtotal"))
    else:
        base = round2(sum(amounts, ZERO))

    cgst_pct = to_decimal(config.cgst_rate if cgst_rate is None else cgst_rate, "cgst_rate")
    sgst_pct = to_decimal(config.sgst_rate if sgst_rate is None else sgst_rate, "sgst_rate")
    extra = round2(to_decimal(additional_charges if additional_charges is not None else ZERO,
                              "additional_charges"))

    cgst = round2(base * cgst_pct / 100)
    sgst = round2(base * sgst_pct / 100)

    return InvoiceTotals(
        line_amounts=amounts,
        subtotal=base,
        cgst_rate=cgst_pct,
        sgst_rate=sgst_pct,
        cgst=cgst,
        sgst=sgst,
        additional_charges=extra,
        grand_total=round2(base + cgst + sgst + extra),
    )


def resolve_status(
    grand_total: Any,
    payment_received: Any,
    epsilon: Decimal = PAYMENT_EPSILON,
) -> str:
    """
    Derive payment status from totals.

    Nothing received is pending; within epsilon of the total is paid;
    anything in between is partial. Status may move in either direction.
    """
    total = Decimal(str(grand_total))
    received = Decimal(str(payment_received))

    if received <= 0:
        return PaymentStatus.PENDING.value
    if received >= total - epsilon:
        return PaymentStatus.PAID.value
    return PaymentStatus.PARTIAL.value


def to_metric_tons(quantity: Optional[Decimal], unit: Optional[str]) -> Decimal:
    """
    Normalise a quantity to metric tons for reporting.

    Kg is divided by 1000. KL is counted as MT one-for-one; this is an
    approximation kept so reports match the figures users already have.
    """
    if quantity is None:
        return ZERO
    amount = Decimal(str(quantity))
    unit = (unit or "").strip().lower()
    if unit == MaterialUnit.KG.value.lower():
        return amount / KG_PER_MT
    if unit in (MaterialUnit.MT.value.lower(), MaterialUnit.KL.value.lower()):
        return amount
    # unknown units are left out of tonnage reports
    return ZERO
