from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable
from uuid import uuid4

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from db.repositories import TransactionRepository, WalletRepository
from domain.base_types import OperationId, TransactionId, UserId, WalletId
from domain.errors import BalanceSyncError, NotFoundError, StoreError
from domain.ledger import (
    BalanceOperation,
    check_sufficient_funds,
    create_delta,
    delete_delta,
    update_delta,
    validate_draft,
    validate_patch,
)
from domain.transaction import Transaction, TransactionDraft, TransactionPatch
from domain.wallet import Wallet

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BalanceLedger:
    """Keeps wallet balances consistent with the transactions recorded against them.

    Every mutation writes the transaction together with a pending balance
    operation, then applies that operation's delta to the wallet. A failed
    balance write is retried with the same operation id; if it keeps failing
    the operation stays pending and ``reconcile`` applies it later.
    """

    def __init__(
        self,
        wallets: WalletRepository,
        transactions: TransactionRepository,
        *,
        clock: Callable[[], datetime] = _utc_now,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
    ) -> None:
        if retry_attempts < 1:
            msg = "retry_attempts must be >= 1"
            raise ValueError(msg)
        self._wallets = wallets
        self._transactions = transactions
        self._clock = clock
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds

    def apply_create(self, user_id: UserId, draft: TransactionDraft) -> Transaction:
        validate_draft(draft)
        wallet = self._require_wallet(user_id, draft.wallet_id)
        check_sufficient_funds(wallet, draft.type, draft.amount)

        now = self._clock()
        transaction = Transaction(
            id=TransactionId(str(uuid4())),
            user_id=user_id,
            wallet_id=draft.wallet_id,
            type=draft.type,
            amount=draft.amount,
            category=draft.category,
            description=draft.description.strip(),
            date=draft.date,
            created_at=now,
            updated_at=now,
        )
        operation = self._operation(transaction, create_delta(draft.type, draft.amount), now)
        created = self._transactions.create(transaction, operation)
        self._apply_with_retry(operation)
        logger.info("Recorded %s %s on wallet %s", transaction.type, transaction.amount, transaction.wallet_id)
        return created

    def apply_update(self, user_id: UserId, transaction_id: TransactionId, patch: TransactionPatch) -> Transaction:
        existing = self._require_transaction(user_id, transaction_id)
        validate_patch(existing, patch)
        self._require_wallet(user_id, existing.wallet_id)

        now = self._clock()
        changes = patch.model_dump(exclude_none=True, exclude={"wallet_id"})
        if "description" in changes:
            changes["description"] = changes["description"].strip()
        updated = Transaction.model_validate({**existing.model_dump(), **changes, "updated_at": now})

        delta = update_delta(existing.type, existing.amount, updated.type, updated.amount)
        operation = self._operation(updated, delta, now) if delta != 0 else None
        saved = self._transactions.update(updated, operation)
        if operation is not None:
            self._apply_with_retry(operation)
        return saved

    def apply_delete(self, user_id: UserId, transaction_id: TransactionId) -> None:
        existing = self._require_transaction(user_id, transaction_id)
        self._require_wallet(user_id, existing.wallet_id)

        operation = self._operation(existing, delete_delta(existing.type, existing.amount), self._clock())
        self._transactions.delete(user_id, transaction_id, operation)
        self._apply_with_retry(operation)
        logger.info("Deleted transaction %s from wallet %s", transaction_id, existing.wallet_id)

    def reconcile(self, user_id: UserId) -> list[OperationId]:
        """Apply balance operations left pending by an earlier failure.

        Operations whose wallet no longer exists are marked orphaned and skipped.
        Returns the ids of the operations applied by this call.
        """
        applied: list[OperationId] = []
        for operation in self._transactions.pending_operations(user_id):
            try:
                self._apply_with_retry(operation)
            except NotFoundError as exc:
                logger.warning("Skipping operation %s: %s", operation.id, exc)
                continue
            applied.append(operation.id)
        if applied:
            logger.info("Reconciled %d pending balance operations for user %s", len(applied), user_id)
        return applied

    def _apply_with_retry(self, operation: BalanceOperation) -> Decimal:
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._retry_backoff_seconds, max=10),
            retry=retry_if_exception_type(StoreError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return retrying(self._wallets.apply_delta, operation.id)
        except StoreError as exc:
            raise BalanceSyncError(
                wallet_id=operation.wallet_id, operation_id=operation.id, delta=operation.delta
            ) from exc

    def _require_wallet(self, user_id: UserId, wallet_id: WalletId) -> Wallet:
        wallet = self._wallets.get(user_id, wallet_id)
        if wallet is None:
            raise NotFoundError(kind="Wallet", record_id=wallet_id, user_id=user_id)
        return wallet

    def _require_transaction(self, user_id: UserId, transaction_id: TransactionId) -> Transaction:
        transaction = self._transactions.get(user_id, transaction_id)
        if transaction is None:
            raise NotFoundError(kind="Transaction", record_id=transaction_id, user_id=user_id)
        return transaction

    @staticmethod
    def _operation(transaction: Transaction, delta: Decimal, now: datetime) -> BalanceOperation:
        return BalanceOperation(
            user_id=transaction.user_id,
            wallet_id=transaction.wallet_id,
            transaction_id=transaction.id,
            delta=delta,
            created_at=now,
        )


__all__ = ["BalanceLedger"]
