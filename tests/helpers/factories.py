from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from itertools import count
from typing import Iterator

from domain.base_types import CoinId, UserId, WalletId, WalletKind
from domain.pricing import PriceEntry
from domain.wallet import Wallet
from tests.constants import ALICE, T0

_WALLET_COUNTER: Iterator[int] = count(1)


def make_wallet(
    *,
    balance: str | Decimal = "0",
    kind: WalletKind = WalletKind.BANK,
    crypto_id: str | None = None,
    user_id: UserId = ALICE,
    name: str | None = None,
    created_at: datetime = T0,
) -> Wallet:
    number = next(_WALLET_COUNTER)
    is_crypto = kind == WalletKind.CRYPTO
    return Wallet(
        id=WalletId(f"wallet-{number}"),
        user_id=user_id,
        name=name or f"Wallet {number}",
        kind=kind,
        balance=Decimal(str(balance)),
        crypto_id=CoinId(crypto_id) if is_crypto and crypto_id else None,
        crypto_symbol=(crypto_id or "").upper()[:3] if is_crypto else None,
        created_at=created_at,
        updated_at=created_at,
    )


def make_price(
    coin_id: str, price: str | Decimal, *, last_updated: datetime = T0, placeholder: bool = False
) -> PriceEntry:
    return PriceEntry(
        coin_id=CoinId(coin_id),
        symbol=coin_id.upper()[:3],
        name=coin_id.title(),
        price=Decimal(str(price)),
        change_24h_pct=Decimal("0"),
        last_updated=last_updated,
        placeholder=placeholder,
    )
