"""Amount utilities for money arithmetic in the settlement currency."""

from decimal import ROUND_HALF_UP, Decimal

# Minor unit of NGN-like currencies (kobo): 2 decimal places
MONEY_QUANTUM = Decimal("0.01")

# Tolerance for rounding differences when comparing debit/credit sums
BALANCE_TOLERANCE = Decimal("0.01")

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert a number to Decimal without float artefacts.

    Example: 0.1 -> Decimal('0.1') rather than Decimal('0.1000000000000000055...')
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round to the currency's minor unit, half up.

    Example: 806.249 -> 806.25, 100.005 -> 100.01
    """
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate_percent: Decimal) -> Decimal:
    """Compute ``amount * rate_percent / 100`` rounded to the minor unit."""
    return round_money(to_decimal(amount) * to_decimal(rate_percent) / Decimal("100"))


def amounts_match(left: Decimal, right: Decimal) -> bool:
    """Whether two amounts are equal within the balance tolerance."""
    return abs(to_decimal(left) - to_decimal(right)) <= BALANCE_TOLERANCE
