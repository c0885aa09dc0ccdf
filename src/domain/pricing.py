from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Protocol

from .base_types import CoinId

PRICE_TTL = timedelta(minutes=5)
CATALOG_TTL = timedelta(hours=24)


@dataclass(frozen=True)
class PriceEntry:
    """Home-currency price of one coin unit as of ``last_updated``.

    ``placeholder`` marks a zero price stored because the provider returned
    nothing for the coin; it is not a real quote.
    """

    coin_id: CoinId
    symbol: str
    name: str
    price: Decimal
    change_24h_pct: Decimal
    last_updated: datetime
    placeholder: bool = False

    def is_fresh(self, now: datetime, ttl: timedelta = PRICE_TTL) -> bool:
        return now - self.last_updated < ttl


@dataclass(frozen=True)
class CoinCatalogEntry:
    coin_id: CoinId
    symbol: str
    name: str
    image: str


PriceMap = Mapping[CoinId, PriceEntry]


class PriceProvider(Protocol):
    """Lookup interface for coin→home-currency prices."""

    def fetch_prices(self, coin_ids: Iterable[CoinId]) -> dict[CoinId, PriceEntry]: ...


__all__ = ["CATALOG_TTL", "CoinCatalogEntry", "PRICE_TTL", "PriceEntry", "PriceMap", "PriceProvider"]
