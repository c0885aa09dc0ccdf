from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Protocol

from domain.base_types import CoinId
from domain.errors import SerializationError
from domain.pricing import CATALOG_TTL, PRICE_TTL, CoinCatalogEntry, PriceEntry

logger = logging.getLogger(__name__)

PRICES_KEY = "crypto_prices"
CATALOG_KEY = "top_100_coins"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PriceCache:
    """Process-wide last-known prices and coin catalog.

    The whole price map is persisted as one JSON record under ``PRICES_KEY``;
    the catalog lives under ``CATALOG_KEY`` with its own freshness window.
    Entries are only overwritten, never evicted: a stale entry stays available
    as a fallback until a refresh replaces it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
        price_ttl: timedelta = PRICE_TTL,
        catalog_ttl: timedelta = CATALOG_TTL,
    ) -> None:
        self.store = store
        self.clock = clock
        self.price_ttl = price_ttl
        self.catalog_ttl = catalog_ttl
        self._prices: dict[CoinId, PriceEntry] = {}
        self._loaded = False
        self._lock = threading.RLock()

    def init(self) -> None:
        with self._lock:
            raw = self.store.get(PRICES_KEY)
            try:
                self._prices = self._decode_prices(raw) if raw else {}
            except SerializationError as exc:
                logger.warning("Ignoring malformed price cache record %s: %s", exc.key, exc)
                self._prices = {}
            self._loaded = True
            logger.debug("Price cache loaded with %d entries", len(self._prices))

    def get_cached(self, coin_ids: Iterable[CoinId] | None = None) -> dict[CoinId, PriceEntry]:
        """Cached entries for ``coin_ids`` (all entries when None), fresh or stale."""
        with self._lock:
            self._ensure_loaded()
            if coin_ids is None:
                return dict(self._prices)
            return {coin_id: self._prices[coin_id] for coin_id in coin_ids if coin_id in self._prices}

    def is_fresh(self, entry: PriceEntry) -> bool:
        return entry.is_fresh(self.clock(), self.price_ttl)

    def stale_ids(self, coin_ids: Iterable[CoinId]) -> set[CoinId]:
        """Ids that are missing from the cache or whose entry has outlived the TTL."""
        wanted = set(coin_ids)
        cached = self.get_cached(wanted)
        return {coin_id for coin_id in wanted if coin_id not in cached or not self.is_fresh(cached[coin_id])}

    def put(self, entries: Iterable[PriceEntry]) -> None:
        with self._lock:
            self._ensure_loaded()
            for entry in entries:
                self._prices[entry.coin_id] = entry
            self.store.set(PRICES_KEY, self._encode_prices(self._prices))

    def clear(self) -> None:
        with self._lock:
            self._prices = {}
            self._loaded = True
            self.store.delete(PRICES_KEY)
            self.store.delete(CATALOG_KEY)

    def get_catalog(self, *, allow_expired: bool = False) -> list[CoinCatalogEntry] | None:
        """Cached catalog, or None when absent, malformed or (unless allowed) expired."""
        with self._lock:
            raw = self.store.get(CATALOG_KEY)
        if not raw:
            return None
        try:
            coins, stored_at = self._decode_catalog(raw)
        except SerializationError as exc:
            logger.warning("Ignoring malformed coin catalog record %s: %s", exc.key, exc)
            return None
        if not allow_expired and self.clock() - stored_at >= self.catalog_ttl:
            return None
        return coins

    def put_catalog(self, coins: Iterable[CoinCatalogEntry]) -> None:
        record = {
            "data": [
                {"id": coin.coin_id, "symbol": coin.symbol, "name": coin.name, "image": coin.image} for coin in coins
            ],
            "timestamp": self.clock().isoformat(),
        }
        with self._lock:
            self.store.set(CATALOG_KEY, json.dumps(record))

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.init()

    @staticmethod
    def _encode_prices(prices: dict[CoinId, PriceEntry]) -> str:
        record = {
            coin_id: {
                "id": entry.coin_id,
                "symbol": entry.symbol,
                "name": entry.name,
                "price": str(entry.price),
                "change_24h_pct": str(entry.change_24h_pct),
                "last_updated": entry.last_updated.isoformat(),
                "placeholder": entry.placeholder,
            }
            for coin_id, entry in sorted(prices.items())
        }
        return json.dumps(record)

    @staticmethod
    def _decode_prices(raw: str) -> dict[CoinId, PriceEntry]:
        try:
            record = json.loads(raw)
            if not isinstance(record, dict):
                raise TypeError("price record must be a JSON object")
            prices: dict[CoinId, PriceEntry] = {}
            for coin_id_raw, item in record.items():
                coin_id = CoinId(str(coin_id_raw))
                prices[coin_id] = PriceEntry(
                    coin_id=coin_id,
                    symbol=str(item["symbol"]),
                    name=str(item["name"]),
                    price=Decimal(str(item["price"])),
                    change_24h_pct=Decimal(str(item.get("change_24h_pct", "0"))),
                    last_updated=_parse_timestamp(item["last_updated"]),
                    placeholder=bool(item.get("placeholder", False)),
                )
            return prices
        except (ValueError, TypeError, KeyError, AttributeError, InvalidOperation) as exc:
            raise SerializationError(str(exc), key=PRICES_KEY) from exc

    @staticmethod
    def _decode_catalog(raw: str) -> tuple[list[CoinCatalogEntry], datetime]:
        try:
            record: Any = json.loads(raw)
            stored_at = _parse_timestamp(record["timestamp"])
            coins = [
                CoinCatalogEntry(
                    coin_id=CoinId(str(item["id"])),
                    symbol=str(item["symbol"]),
                    name=str(item["name"]),
                    image=str(item.get("image", "")),
                )
                for item in record["data"]
            ]
            return coins, stored_at
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise SerializationError(str(exc), key=CATALOG_KEY) from exc


def _parse_timestamp(value: Any) -> datetime:
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = ["CATALOG_KEY", "KeyValueStore", "PRICES_KEY", "PriceCache"]
