from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, model_validator

from .base_types import CoinId, UserId, WalletId, WalletKind


def _check_crypto_fields(kind: WalletKind, crypto_id: str | None, crypto_symbol: str | None) -> None:
    if kind == WalletKind.CRYPTO:
        if not crypto_id or not crypto_symbol:
            raise ValueError("crypto wallets require crypto_id and crypto_symbol")
    elif crypto_id is not None or crypto_symbol is not None:
        raise ValueError(f"{kind} wallets must not carry crypto_id or crypto_symbol")


class WalletDraft(BaseModel):
    """User supplied wallet fields; identity and timestamps are assigned on create."""

    name: str
    kind: WalletKind
    balance: Decimal = Decimal(0)
    crypto_id: CoinId | None = None
    crypto_symbol: str | None = None
    color: str = ""
    icon: str = ""

    @model_validator(mode="after")
    def _validate_fields(self) -> WalletDraft:
        if not self.name.strip():
            raise ValueError("name must be non-empty")
        _check_crypto_fields(self.kind, self.crypto_id, self.crypto_symbol)
        return self


class WalletPatch(BaseModel):
    """Editable wallet fields; None means unchanged. A balance here is a direct user correction."""

    name: str | None = None
    color: str | None = None
    icon: str | None = None
    balance: Decimal | None = None

    @model_validator(mode="after")
    def _validate_name(self) -> WalletPatch:
        if self.name is not None and not self.name.strip():
            raise ValueError("name must be non-empty")
        return self


class Wallet(BaseModel):
    """A balance holder owned by a single user.

    Balance unit depends on kind:
    - fiat kinds (bank, cash, ewallet) hold a home-currency amount.
    - crypto wallets hold a quantity of the coin named by ``crypto_id``.
    """

    id: WalletId
    user_id: UserId
    name: str
    kind: WalletKind
    balance: Decimal
    crypto_id: CoinId | None = None
    crypto_symbol: str | None = None
    color: str = ""
    icon: str = ""
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _validate_crypto_fields(self) -> Wallet:
        _check_crypto_fields(self.kind, self.crypto_id, self.crypto_symbol)
        return self

    @property
    def is_crypto(self) -> bool:
        return self.kind == WalletKind.CRYPTO


@dataclass(frozen=True)
class WalletPreset:
    name: str
    kind: WalletKind
    icon: str
    color: str


@dataclass(frozen=True)
class CryptoPreset:
    id: CoinId
    symbol: str
    name: str
    color: str


WALLET_PRESETS: tuple[WalletPreset, ...] = (
    WalletPreset("BCA", WalletKind.BANK, "bank", "#0047AB"),
    WalletPreset("BRI", WalletKind.BANK, "bank", "#003d7a"),
    WalletPreset("Mandiri", WalletKind.BANK, "bank", "#ffd700"),
    WalletPreset("BNI", WalletKind.BANK, "bank", "#ff6600"),
    WalletPreset("Cash", WalletKind.CASH, "wallet", "#10b981"),
    WalletPreset("GoPay", WalletKind.EWALLET, "smartphone", "#00AA13"),
    WalletPreset("OVO", WalletKind.EWALLET, "smartphone", "#4c3494"),
    WalletPreset("DANA", WalletKind.EWALLET, "smartphone", "#118EEA"),
)

CRYPTO_PRESETS: tuple[CryptoPreset, ...] = (
    CryptoPreset(CoinId("bitcoin"), "BTC", "Bitcoin", "#f7931a"),
    CryptoPreset(CoinId("ethereum"), "ETH", "Ethereum", "#627eea"),
    CryptoPreset(CoinId("tether"), "USDT", "Tether", "#26a17b"),
    CryptoPreset(CoinId("binancecoin"), "BNB", "BNB", "#f3ba2f"),
    CryptoPreset(CoinId("solana"), "SOL", "Solana", "#9945ff"),
)


def draft_from_crypto_preset(preset: CryptoPreset, *, balance: Decimal = Decimal(0)) -> WalletDraft:
    return WalletDraft(
        name=preset.name,
        kind=WalletKind.CRYPTO,
        balance=balance,
        crypto_id=preset.id,
        crypto_symbol=preset.symbol,
        color=preset.color,
        icon="bitcoin",
    )


__all__ = [
    "CRYPTO_PRESETS",
    "CryptoPreset",
    "WALLET_PRESETS",
    "Wallet",
    "WalletDraft",
    "WalletPatch",
    "WalletPreset",
    "draft_from_crypto_preset",
]
