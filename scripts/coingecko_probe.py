# flake8: noqa E402
# Bypasses the price cache and prints what CoinGecko returns right now, e.g.:
# python scripts/coingecko_probe.py bitcoin ethereum --vs idr
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Ensure the src directory is importable when the script is invoked directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import config
from services.coingecko_client import CoinGeckoClient


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch live CoinGecko prices without touching the cache.")
    parser.add_argument("coin_ids", nargs="*", default=["bitcoin"], help="CoinGecko coin ids.")
    parser.add_argument("--vs", default=None, help="Quote currency (default: configured vs_currency).")
    parser.add_argument("--markets", action="store_true", help="Also print the first page of /coins/markets.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = config()
    client = CoinGeckoClient(base_url=settings.coingecko_base_url, timeout=settings.request_timeout_seconds)
    vs_currency = args.vs or settings.vs_currency

    prices = client.get_simple_prices(args.coin_ids, vs_currency=vs_currency)
    snapshot = {
        coin_id: {"price": str(quote.price), "change_24h_pct": str(quote.change_24h_pct)}
        for coin_id, quote in sorted(prices.items())
    }
    missing = sorted(set(args.coin_ids) - set(prices))
    print(json.dumps({"vs_currency": vs_currency, "prices": snapshot, "missing": missing}, indent=2))

    if args.markets:
        for coin in client.get_markets(vs_currency=vs_currency, per_page=10):
            print(f"{coin.symbol:<8} {coin.name} ({coin.coin_id})")


if __name__ == "__main__":
    main()
