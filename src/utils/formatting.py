from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_idr(value: Decimal) -> str:
    """Rupiah without decimals, Indonesian grouping: ``Rp 450.200.000``."""
    rounded = value.quantize(Decimal(1), rounding=ROUND_HALF_UP)
    grouped = f"{abs(rounded):,.0f}".replace(",", ".")
    sign = "-" if rounded < 0 else ""
    return f"{sign}Rp {grouped}"


def format_crypto_amount(value: Decimal, max_decimals: int = 8) -> str:
    """Two decimals from 1 upward; below that up to ``max_decimals``, trailing zeros trimmed to two."""
    if value == 0:
        return "0"
    if abs(value) >= 1:
        return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,.2f}"

    text = f"{value.quantize(Decimal(1).scaleb(-max_decimals), rounding=ROUND_HALF_UP):.{max_decimals}f}"
    whole, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0").ljust(2, "0")
    return f"{whole}.{fraction}"
