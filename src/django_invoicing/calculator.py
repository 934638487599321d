"""Line and document totals.

Rounding happens per line (HT, then TVA on the rounded HT) and the
document totals are plain sums of the rounded line amounts. Summing raw
amounts and rounding once would give different results on documents with
many fractional lines, so the order must not change.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Tuple

from django_invoicing.money import round2, to_decimal


ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineAmounts:
    """Computed amounts for one line item."""

    ht: Decimal
    tva: Decimal
    total: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    """Aggregated amounts for a document, with the per-line breakdown."""

    subtotal: Decimal
    tax_total: Decimal
    total: Decimal
    lines: Tuple[LineAmounts, ...] = ()


def compute_line(quantity, unit_price, tax_rate=0) -> LineAmounts:
    """Compute HT, TVA and total for a single line.

    Args:
        quantity: Strictly positive quantity
        unit_price: Non-negative unit price
        tax_rate: Tax rate as a percentage (18 = 18%), 0-100

    Raises:
        ValueError: If any input is out of range (values are never clamped)
    """
    quantity = to_decimal(quantity)
    unit_price = to_decimal(unit_price)
    tax_rate = to_decimal(tax_rate)

    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")
    if unit_price < 0:
        raise ValueError(f"unit_price cannot be negative, got {unit_price}")
    if not ZERO <= tax_rate <= HUNDRED:
        raise ValueError(f"tax_rate must be between 0 and 100, got {tax_rate}")

    ht = round2(quantity * unit_price)
    tva = round2(ht * tax_rate / HUNDRED)
    return LineAmounts(ht=ht, tva=tva, total=round2(ht + tva))


def compute_document(lines: Iterable) -> DocumentTotals:
    """Compute document totals from line inputs.

    Each element is either an object with ``quantity``, ``unit_price`` and
    ``tax_rate`` attributes or a ``(quantity, unit_price, tax_rate)`` tuple.
    """
    computed: List[LineAmounts] = []
    for line in lines:
        if isinstance(line, tuple):
            computed.append(compute_line(*line))
        else:
            computed.append(compute_line(line.quantity, line.unit_price, line.tax_rate))

    return DocumentTotals(
        subtotal=sum((line.ht for line in computed), ZERO),
        tax_total=sum((line.tva for line in computed), ZERO),
        total=sum((line.total for line in computed), ZERO),
        lines=tuple(computed),
    )
