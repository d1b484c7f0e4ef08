"""USD amounts: Decimal at the edges, integer cents in storage."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
CRYPTO_QUANTUM = Decimal("0.00000001")


def to_cents(amount: Decimal | int | str) -> int:
    """Convert a USD amount to integer cents (half-up to the cent)."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def format_usd(cents: int) -> str:
    """Render cents as a plain decimal string, e.g. 1250 -> '12.50'."""
    return str(from_cents(cents))


def crypto_amount(amount_cents: int, rate_usd: Decimal) -> Decimal:
    """Units of an asset worth amount_cents at rate_usd per unit, 8 dp."""
    if rate_usd <= 0:
        raise ValueError("Rate must be positive")
    return (from_cents(amount_cents) / rate_usd).quantize(CRYPTO_QUANTUM, rounding=ROUND_HALF_UP)
