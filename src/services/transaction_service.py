from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from db.repositories import TransactionRepository
from domain.base_types import TransactionId, TransactionType, UserId
from domain.errors import BalanceSyncError
from domain.transaction import Transaction, TransactionDraft, TransactionPatch

from .balance_ledger import BalanceLedger
from .live_sync import Subscription, SubscriptionHub
from .wallet_service import WalletService

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


@dataclass(frozen=True)
class MonthlyStats:
    income: Decimal
    expense: Decimal
    total: Decimal


class TransactionService:
    """Transaction reads and writes for the UI layer.

    Writes go through the ``BalanceLedger``; after a successful write both the
    transaction list and the wallet list of the owner are published, since
    every write may have moved a balance. A write whose transaction was
    stored but whose balance update is still pending publishes too; rejected
    writes publish nothing.
    """

    def __init__(
        self,
        ledger: BalanceLedger,
        transactions: TransactionRepository,
        wallet_service: WalletService,
        *,
        hub: SubscriptionHub[Transaction] | None = None,
    ) -> None:
        self._ledger = ledger
        self._transactions = transactions
        self._wallet_service = wallet_service
        self.hub: SubscriptionHub[Transaction] = hub or SubscriptionHub("transactions")

    def create_transaction(self, user_id: UserId, draft: TransactionDraft) -> Transaction:
        try:
            created = self._ledger.apply_create(user_id, draft)
        except BalanceSyncError:
            self._publish(user_id)
            raise
        self._publish(user_id)
        return created

    def update_transaction(
        self, user_id: UserId, transaction_id: TransactionId, patch: TransactionPatch
    ) -> Transaction:
        try:
            updated = self._ledger.apply_update(user_id, transaction_id, patch)
        except BalanceSyncError:
            self._publish(user_id)
            raise
        self._publish(user_id)
        return updated

    def delete_transaction(self, user_id: UserId, transaction_id: TransactionId) -> None:
        try:
            self._ledger.apply_delete(user_id, transaction_id)
        except BalanceSyncError:
            self._publish(user_id)
            raise
        self._publish(user_id)

    def get_transactions(self, user_id: UserId) -> list[Transaction]:
        """Newest first by occurrence date."""
        return self._transactions.list_for_user(user_id)

    def get_recent_transactions(self, user_id: UserId, limit: int = RECENT_LIMIT) -> list[Transaction]:
        if limit <= 0:
            msg = "limit must be > 0"
            raise ValueError(msg)
        return self.get_transactions(user_id)[:limit]

    def get_monthly_stats(self, user_id: UserId, month: int, year: int) -> MonthlyStats:
        """Income, expense and their difference for ``month`` (1-12) of ``year``."""
        if not 1 <= month <= 12:
            msg = "month must be in 1..12"
            raise ValueError(msg)

        income = Decimal(0)
        expense = Decimal(0)
        for transaction in self.get_transactions(user_id):
            if transaction.date.year != year or transaction.date.month != month:
                continue
            if transaction.type == TransactionType.INCOME:
                income += transaction.amount
            else:
                expense += transaction.amount
        return MonthlyStats(income=income, expense=expense, total=income - expense)

    def subscribe_to_transactions(
        self, user_id: UserId, callback: Callable[[list[Transaction]], None]
    ) -> Subscription[Transaction]:
        return self.hub.subscribe(user_id, callback, initial=self.get_transactions(user_id))

    def _publish(self, user_id: UserId) -> None:
        self.hub.publish(user_id, self.get_transactions(user_id))
        self._wallet_service.publish(user_id)


__all__ = ["MonthlyStats", "RECENT_LIMIT", "TransactionService"]
