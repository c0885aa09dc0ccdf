from __future__ import annotations

from domain.pricing import PriceEntry
from domain.valuation import PortfolioValuation

from .formatting import format_crypto_amount, format_decimal, format_idr


def _render_table(headers: tuple[str, ...], rows: list[tuple[str, ...]], *, right_from: int = 1) -> list[str]:
    widths = [max(len(header), max((len(row[i]) for row in rows), default=0)) for i, header in enumerate(headers)]

    def _line(cells: tuple[str, ...]) -> str:
        return " ".join(
            f"{cell:<{widths[i]}}" if i < right_from else f"{cell:>{widths[i]}}" for i, cell in enumerate(cells)
        )

    header = _line(headers)
    return [header, "-" * len(header), *(_line(row) for row in rows), "-" * len(header)]


def render_portfolio(valuation: PortfolioValuation) -> None:
    print("Wallets:")
    if not valuation.wallets:
        print("  (empty)")
        return

    rows = [
        (item.name, format_decimal(item.balance), format_idr(item.value) if item.priced else "n/a")
        for item in valuation.wallets
    ]
    lines = _render_table(("Wallet", "Balance", "Value IDR"), rows)
    lines.append(f"Total: {format_idr(valuation.total)}")
    if valuation.is_partial:
        lines.append(f"Missing prices: {', '.join(sorted(valuation.missing_prices))}")
    print("\n".join(lines))


def render_prices(prices: dict[str, PriceEntry]) -> None:
    print("Prices:")
    if not prices:
        print("  (empty)")
        return

    rows = [
        (
            entry.symbol,
            format_idr(entry.price),
            f"{format_crypto_amount(entry.change_24h_pct)}%",
            entry.last_updated.strftime("%Y-%m-%d %H:%M"),
        )
        for _, entry in sorted(prices.items())
    ]
    print("\n".join(_render_table(("Coin", "Price IDR", "24h", "Updated"), rows)))
