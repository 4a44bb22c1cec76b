"""Redondeo de montos: 2 decimales, half-up sobre centavos."""
from decimal import ROUND_HALF_UP, Decimal

_CENTS = Decimal("0.01")


def round_money(value: float | int | Decimal | None) -> float:
    if value is None:
        return 0.0
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    return float(d.quantize(_CENTS, rounding=ROUND_HALF_UP))


def format_money(value: float | int | None) -> str:
    """50000 -> '$50,000'; 1234.5 -> '$1,234.50'."""
    amount = round_money(value)
    if amount == int(amount):
        return f"${int(amount):,}"
    return f"${amount:,.2f}"
