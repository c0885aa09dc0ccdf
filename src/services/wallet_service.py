from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable
from uuid import uuid4

from db.repositories import WalletRepository
from domain.base_types import UserId, WalletId
from domain.errors import NotFoundError
from domain.wallet import Wallet, WalletDraft, WalletPatch

from .live_sync import Subscription, SubscriptionHub

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WalletService:
    """Wallet CRUD for one record store, publishing the owner's wallets after every change."""

    def __init__(
        self,
        wallets: WalletRepository,
        *,
        hub: SubscriptionHub[Wallet] | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._wallets = wallets
        self.hub: SubscriptionHub[Wallet] = hub or SubscriptionHub("wallets")
        self._clock = clock

    def create_wallet(self, user_id: UserId, draft: WalletDraft) -> Wallet:
        now = self._clock()
        wallet = Wallet(
            id=WalletId(str(uuid4())),
            user_id=user_id,
            name=draft.name.strip(),
            kind=draft.kind,
            balance=draft.balance,
            crypto_id=draft.crypto_id,
            crypto_symbol=draft.crypto_symbol,
            color=draft.color,
            icon=draft.icon,
            created_at=now,
            updated_at=now,
        )
        created = self._wallets.create(wallet)
        logger.info("Created %s wallet %s for user %s", created.kind, created.id, user_id)
        self.publish(user_id)
        return created

    def get_wallets(self, user_id: UserId) -> list[Wallet]:
        return self._wallets.list_for_user(user_id)

    def get_wallet(self, user_id: UserId, wallet_id: WalletId) -> Wallet | None:
        return self._wallets.get(user_id, wallet_id)

    def update_wallet(self, user_id: UserId, wallet_id: WalletId, patch: WalletPatch) -> Wallet:
        existing = self._wallets.get(user_id, wallet_id)
        if existing is None:
            raise NotFoundError(kind="Wallet", record_id=wallet_id, user_id=user_id)

        details = patch.model_dump(exclude_none=True, exclude={"balance"})
        if "name" in details:
            details["name"] = details["name"].strip()
        updated = existing
        if details:
            candidate = existing.model_copy(update={**details, "updated_at": self._clock()})
            updated = self._wallets.update_details(candidate)
        if patch.balance is not None:
            logger.info("Balance of wallet %s set directly to %s", wallet_id, patch.balance)
            updated = self._wallets.set_balance(user_id, wallet_id, patch.balance)

        self.publish(user_id)
        return updated

    def delete_wallet(self, user_id: UserId, wallet_id: WalletId) -> None:
        if not self._wallets.delete(user_id, wallet_id):
            raise NotFoundError(kind="Wallet", record_id=wallet_id, user_id=user_id)
        logger.info("Deleted wallet %s for user %s", wallet_id, user_id)
        self.publish(user_id)

    def total_balance(self, user_id: UserId) -> Decimal:
        """Sum of fiat balances only; crypto quantities are not money until priced."""
        return sum(
            (wallet.balance for wallet in self._wallets.list_for_user(user_id) if not wallet.is_crypto),
            start=Decimal(0),
        )

    def subscribe_to_wallets(self, user_id: UserId, callback: Callable[[list[Wallet]], None]) -> Subscription[Wallet]:
        return self.hub.subscribe(user_id, callback, initial=self.get_wallets(user_id))

    def publish(self, user_id: UserId) -> None:
        self.hub.publish(user_id, self.get_wallets(user_id))


__all__ = ["WalletService"]
