from __future__ import annotations

import argparse
import logging
import threading
from datetime import timedelta
from pathlib import Path
from typing import Sequence

from config import config
from db.db import init_db
from db.repositories import WalletRepository
from domain.base_types import CoinId, UserId
from services.price_fetcher import PriceFetcher, build_default_fetcher
from services.refresh_scheduler import PriceRefreshScheduler
from services.valuation_service import ValuationService
from utils.portfolio_summary import render_portfolio, render_prices


def show_prices(fetcher: PriceFetcher, coin_ids: Sequence[str]) -> None:
    render_prices(fetcher.fetch_prices(CoinId(coin_id) for coin_id in coin_ids))


def show_coins(fetcher: PriceFetcher, query: str | None) -> None:
    coins = fetcher.search_coins(query) if query else fetcher.fetch_catalog()
    for coin in coins:
        print(f"{coin.symbol:<8} {coin.name} ({coin.coin_id})")
    print(f"{len(coins)} coins")


def show_total(fetcher: PriceFetcher, user_id: UserId, records_db: Path) -> None:
    session = init_db(db_file=records_db)
    service = ValuationService(WalletRepository(session), fetcher)
    render_portfolio(service.portfolio(user_id))


def watch(fetcher: PriceFetcher, coin_ids: Sequence[str], interval: timedelta) -> None:
    scheduler = PriceRefreshScheduler(fetcher, interval=interval)
    subscription = scheduler.subscribe([CoinId(coin_id) for coin_id in coin_ids], render_prices)
    scheduler.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        subscription.cancel()
        scheduler.stop()


def main(argv: Sequence[str] | None = None) -> None:
    settings = config()
    parser = argparse.ArgumentParser(description="Wallet tracker: crypto prices and wallet valuation.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log fetches and fallbacks to stderr.")
    parser.add_argument("--cache-db", type=Path, default=settings.local_cache_db_file)
    subparsers = parser.add_subparsers(dest="command", required=True)

    prices = subparsers.add_parser("prices", help="Show current prices for coin ids.")
    prices.add_argument("coin_ids", nargs="+")

    coins = subparsers.add_parser("coins", help="List the top coins by market cap.")
    coins.add_argument("--search", default=None)

    total = subparsers.add_parser("total", help="Value every wallet of a user.")
    total.add_argument("--user", required=True)
    total.add_argument("--records-db", type=Path, default=settings.records_db_file)

    watch_parser = subparsers.add_parser("watch", help="Keep printing prices until interrupted.")
    watch_parser.add_argument("coin_ids", nargs="+")
    watch_parser.add_argument("--interval", type=int, default=settings.refresh_interval_seconds, help="Seconds.")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    fetcher = build_default_fetcher(args.cache_db)
    if args.command == "prices":
        show_prices(fetcher, args.coin_ids)
    elif args.command == "coins":
        show_coins(fetcher, args.search)
    elif args.command == "total":
        show_total(fetcher, UserId(args.user), args.records_db)
    elif args.command == "watch":
        watch(fetcher, args.coin_ids, timedelta(seconds=args.interval))


if __name__ == "__main__":
    main()
