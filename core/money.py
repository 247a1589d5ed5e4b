"""
Money helpers. Amounts live as integer cents everywhere in core/;
conversion happens only at the edges (seed files, user input, display).

    to_cents("12.345")         -> 1235
    format_money(-47100)       -> "-$471.00"
    format_money(150000, "EUR") -> "1,500.00 EUR"
"""
from decimal import Decimal, ROUND_HALF_UP

_CURRENCY_PREFIX = {
    "USD": "$",
}

_CENT = Decimal("0.01")


def to_cents(amount) -> int:
    """Convert int / float / Decimal / str to integer cents, half-up."""
    if isinstance(amount, float):
        amount = repr(amount)
    value = Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(_CENT)


def format_money(cents: int, currency: str = "USD") -> str:
    sign = "-" if cents < 0 else ""
    body = f"{abs(from_cents(cents)):,.2f}"
    prefix = _CURRENCY_PREFIX.get(currency)
    if prefix:
        return f"{sign}{prefix}{body}"
    return f"{sign}{body} {currency}"
