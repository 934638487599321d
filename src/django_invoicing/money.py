"""Money value object and invoice rounding."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django_invoicing.exceptions import CurrencyMismatchError


CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Normalize int/float/str to Decimal (floats go through str)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    """
    Round to 2 decimal places, half away from zero.

    Every document amount (line HT, line TVA, line total, payment) is
    rounded with this function, whatever the currency.
    """
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Immutable money value object.

    Usage:
        total = Money(Decimal("590000"), "XOF")
        paid = Money(Decimal("295000"), "XOF")
        remaining = total - paid  # Money(Decimal("295000"), "XOF")
    """
    amount: Decimal
    currency: str

    def __post_init__(self):
        """Normalize amount to Decimal."""
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", to_decimal(self.amount))

    def _check_currency(self, other: "Money", verb: str):
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"Cannot {verb} {self.currency} and {other.currency}"
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __str__(self):
        return f"{self.amount:.2f} {self.currency}"

