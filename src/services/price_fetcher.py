from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Protocol

from config import config
from db.local_cache import LocalCacheRepository, init_local_cache_db
from domain.base_types import CoinId
from domain.errors import PriceError
from domain.pricing import CoinCatalogEntry, PriceEntry, PriceProvider

from .coingecko_client import CoinGeckoClient, SimplePrice
from .price_cache import PriceCache

logger = logging.getLogger(__name__)


class PriceClient(Protocol):
    def get_simple_prices(
        self, coin_ids: Iterable[str], *, vs_currency: str, include_24h_change: bool = True
    ) -> dict[CoinId, SimplePrice]: ...

    def get_markets(self, *, vs_currency: str, per_page: int = 100, page: int = 1) -> list[CoinCatalogEntry]: ...


class PriceFetcher(PriceProvider):
    """Cache-first price lookups with one batched request per refresh.

    Network and parsing failures never reach the caller: they resolve to
    whatever the cache holds, stale or empty.
    """

    def __init__(
        self,
        client: PriceClient,
        cache: PriceCache,
        *,
        vs_currency: str = "idr",
        catalog_size: int = 100,
    ) -> None:
        self.client = client
        self.cache = cache
        self.vs_currency = vs_currency
        self.catalog_size = catalog_size

    def fetch_prices(self, coin_ids: Iterable[CoinId]) -> dict[CoinId, PriceEntry]:
        wanted = {coin_id for coin_id in coin_ids if coin_id}
        if not wanted:
            return {}

        cached = self.cache.get_cached(wanted)
        needs_update = self.cache.stale_ids(wanted)
        if not needs_update:
            return cached

        logger.info("Fetching %d of %d prices (%s)", len(needs_update), len(wanted), ",".join(sorted(needs_update)))
        try:
            fetched = self.client.get_simple_prices(needs_update, vs_currency=self.vs_currency)
        except PriceError as exc:
            logger.warning("Price fetch failed, serving %d cached entries: %s", len(cached), exc)
            return cached

        now = self.cache.clock()
        updated: list[PriceEntry] = []
        for coin_id in sorted(needs_update):
            quote = fetched.get(coin_id)
            if quote is None and coin_id in cached:
                # Keep the stale entry rather than replacing it with a zero.
                logger.warning("No price returned for %s, keeping cached entry", coin_id)
                continue
            if quote is None:
                logger.warning("No price returned for %s, storing zero placeholder", coin_id)
            updated.append(
                PriceEntry(
                    coin_id=coin_id,
                    symbol=coin_id.upper(),
                    name=coin_id,
                    price=quote.price if quote is not None else Decimal(0),
                    change_24h_pct=quote.change_24h_pct if quote is not None else Decimal(0),
                    last_updated=now,
                    placeholder=quote is None,
                )
            )

        self.cache.put(updated)
        merged = dict(cached)
        merged.update({entry.coin_id: entry for entry in updated})
        return merged

    def fetch_price(self, coin_id: CoinId) -> PriceEntry | None:
        return self.fetch_prices([coin_id]).get(coin_id)

    def fetch_catalog(self) -> list[CoinCatalogEntry]:
        cached = self.cache.get_catalog()
        if cached is not None:
            return cached

        try:
            coins = self.client.get_markets(vs_currency=self.vs_currency, per_page=self.catalog_size, page=1)
        except PriceError as exc:
            fallback = self.cache.get_catalog(allow_expired=True) or []
            logger.warning("Coin catalog fetch failed, serving %d cached coins: %s", len(fallback), exc)
            return fallback

        self.cache.put_catalog(coins)
        logger.info("Fetched coin catalog with %d coins", len(coins))
        return coins

    def search_coins(self, query: str) -> list[CoinCatalogEntry]:
        needle = query.strip().lower()
        coins = self.fetch_catalog()
        if not needle:
            return coins
        return [coin for coin in coins if needle in coin.name.lower() or needle in coin.symbol.lower()]


def build_default_fetcher(cache_db: Path | None = None) -> PriceFetcher:
    settings = config()
    session = init_local_cache_db(db_file=cache_db or settings.local_cache_db_file)
    cache = PriceCache(
        LocalCacheRepository(session),
        price_ttl=timedelta(seconds=settings.price_ttl_seconds),
        catalog_ttl=timedelta(seconds=settings.catalog_ttl_seconds),
    )
    cache.init()
    client = CoinGeckoClient(
        base_url=settings.coingecko_base_url,
        timeout=settings.request_timeout_seconds,
        retry_attempts=settings.retry_attempts,
        retry_backoff_seconds=settings.retry_backoff_seconds,
    )
    return PriceFetcher(client, cache, vs_currency=settings.vs_currency, catalog_size=settings.catalog_size)


__all__ = ["PriceClient", "PriceFetcher", "build_default_fetcher"]
