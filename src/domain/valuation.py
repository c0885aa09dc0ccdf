from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from .base_types import CoinId, WalletId
from .pricing import PriceMap
from .wallet import Wallet


def crypto_ids_for(wallets: Iterable[Wallet]) -> set[CoinId]:
    """Deduplicated coin ids that must be priced to value ``wallets``."""
    return {wallet.crypto_id for wallet in wallets if wallet.is_crypto and wallet.crypto_id}


def value_of(wallet: Wallet, prices: PriceMap) -> Decimal:
    """Home-currency value of a wallet.

    Crypto wallets without a real price in ``prices`` are valued at 0 so totals stay
    renderable during a partial price outage.
    """
    if not wallet.is_crypto:
        return wallet.balance

    entry = prices.get(wallet.crypto_id) if wallet.crypto_id else None
    if entry is None or entry.placeholder:
        return Decimal(0)
    return wallet.balance * entry.price


def total_value(wallets: Iterable[Wallet], prices: PriceMap) -> Decimal:
    return sum((value_of(wallet, prices) for wallet in wallets), start=Decimal(0))


@dataclass
class WalletValuation:
    wallet_id: WalletId
    name: str
    balance: Decimal
    value: Decimal
    priced: bool


@dataclass
class PortfolioValuation:
    total: Decimal
    wallets: list[WalletValuation] = field(default_factory=list)
    missing_prices: set[CoinId] = field(default_factory=set)

    @property
    def is_partial(self) -> bool:
        return bool(self.missing_prices)


def value_portfolio(wallets: Iterable[Wallet], prices: PriceMap) -> PortfolioValuation:
    wallet_values: list[WalletValuation] = []
    missing: set[CoinId] = set()
    for wallet in wallets:
        entry = prices.get(wallet.crypto_id) if wallet.crypto_id else None
        priced = not wallet.is_crypto or (entry is not None and not entry.placeholder)
        if not priced and wallet.crypto_id is not None:
            missing.add(wallet.crypto_id)
        wallet_values.append(
            WalletValuation(
                wallet_id=wallet.id,
                name=wallet.name,
                balance=wallet.balance,
                value=value_of(wallet, prices),
                priced=priced,
            )
        )

    total = sum((item.value for item in wallet_values), start=Decimal(0))
    return PortfolioValuation(total=total, wallets=wallet_values, missing_prices=missing)


__all__ = [
    "PortfolioValuation",
    "WalletValuation",
    "crypto_ids_for",
    "total_value",
    "value_of",
    "value_portfolio",
]
