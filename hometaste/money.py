from decimal import ROUND_HALF_UP, Decimal

from hometaste.config import settings

CENTS = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize to cents, half-up, the way totals are displayed."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def commission(total_price: Decimal, rate: Decimal | None = None) -> Decimal:
    """Courier share of one order total, unrounded. Round sums with to_money, never the terms."""
    if rate is None:
        rate = settings.delivery_commission_rate
    return total_price * rate
