from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import models
from domain.base_types import CoinId, OperationId, TransactionId, TransactionType, UserId, WalletId, WalletKind
from domain.errors import NotFoundError, StoreError
from domain.ledger import BalanceOperation, OperationStatus
from domain.transaction import Transaction
from domain.wallet import Wallet

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _commit(session: Session, what: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise StoreError(f"Failed to commit {what}") from exc


class WalletRepository:
    def __init__(
        self,
        session: Session,
        *,
        clock: Callable[[], datetime] = _utc_now,
        max_conflicts: int = 5,
    ) -> None:
        self._session = session
        self._clock = clock
        self._max_conflicts = max_conflicts

    def create(self, wallet: Wallet) -> Wallet:
        orm_wallet = models.WalletOrm(
            id=wallet.id,
            user_id=wallet.user_id,
            name=wallet.name,
            kind=wallet.kind.value,
            balance=wallet.balance,
            version=0,
            crypto_id=wallet.crypto_id,
            crypto_symbol=wallet.crypto_symbol,
            color=wallet.color,
            icon=wallet.icon,
            created_at=wallet.created_at,
            updated_at=wallet.updated_at,
        )
        self._session.add(orm_wallet)
        _commit(self._session, f"wallet {wallet.id}")
        self._session.refresh(orm_wallet)
        return self._to_domain(orm_wallet)

    def get(self, user_id: UserId, wallet_id: WalletId) -> Wallet | None:
        orm_wallet = self._load(user_id, wallet_id)
        if orm_wallet is None:
            return None
        return self._to_domain(orm_wallet)

    def list_for_user(self, user_id: UserId) -> list[Wallet]:
        stmt = (
            select(models.WalletOrm)
            .where(models.WalletOrm.user_id == user_id)
            .order_by(models.WalletOrm.created_at.asc(), models.WalletOrm.id.asc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(orm_wallet) for orm_wallet in self._session.scalars(stmt).all()]

    def update_details(self, wallet: Wallet) -> Wallet:
        """Persist every field except the balance, which only changes through
        ``set_balance`` or ``apply_delta``."""
        orm_wallet = self._load(wallet.user_id, wallet.id)
        if orm_wallet is None:
            raise NotFoundError(kind="Wallet", record_id=wallet.id, user_id=wallet.user_id)

        orm_wallet.name = wallet.name
        orm_wallet.kind = wallet.kind.value
        orm_wallet.crypto_id = wallet.crypto_id
        orm_wallet.crypto_symbol = wallet.crypto_symbol
        orm_wallet.color = wallet.color
        orm_wallet.icon = wallet.icon
        orm_wallet.updated_at = wallet.updated_at
        _commit(self._session, f"wallet {wallet.id}")
        self._session.refresh(orm_wallet)
        return self._to_domain(orm_wallet)

    def set_balance(self, user_id: UserId, wallet_id: WalletId, balance: Decimal) -> Wallet:
        """Direct user edit of the balance; overrides any concurrent delta."""
        stmt = (
            update(models.WalletOrm)
            .where(models.WalletOrm.id == wallet_id, models.WalletOrm.user_id == user_id)
            .values(balance=balance, version=models.WalletOrm.version + 1, updated_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        if result.rowcount == 0:
            self._session.rollback()
            raise NotFoundError(kind="Wallet", record_id=wallet_id, user_id=user_id)
        _commit(self._session, f"balance of wallet {wallet_id}")

        wallet = self.get(user_id, wallet_id)
        if wallet is None:
            raise NotFoundError(kind="Wallet", record_id=wallet_id, user_id=user_id)
        return wallet

    def apply_delta(self, operation_id: OperationId) -> Decimal:
        """Apply a recorded balance operation exactly once and return the new balance.

        The balance write is a compare-and-swap on the wallet version, committed
        together with the operation's status change. Re-applying an already
        applied operation is a no-op.
        """
        for _ in range(self._max_conflicts):
            orm_op = self._session.get(models.BalanceOperationOrm, operation_id, populate_existing=True)
            if orm_op is None:
                raise NotFoundError(kind="BalanceOperation", record_id=operation_id)

            row = self._session.execute(
                select(models.WalletOrm.balance, models.WalletOrm.version).where(
                    models.WalletOrm.id == orm_op.wallet_id,
                    models.WalletOrm.user_id == orm_op.user_id,
                )
            ).one_or_none()

            if row is None:
                if orm_op.status == OperationStatus.PENDING:
                    orm_op.status = OperationStatus.ORPHANED.value
                    _commit(self._session, f"operation {operation_id}")
                    logger.warning("Wallet %s vanished before operation %s was applied", orm_op.wallet_id, operation_id)
                raise NotFoundError(kind="Wallet", record_id=orm_op.wallet_id, user_id=orm_op.user_id)

            if orm_op.status != OperationStatus.PENDING:
                return row.balance

            new_balance = row.balance + orm_op.delta
            now = self._clock()
            try:
                result = self._session.execute(
                    update(models.WalletOrm)
                    .where(models.WalletOrm.id == orm_op.wallet_id, models.WalletOrm.version == row.version)
                    .values(balance=new_balance, version=row.version + 1, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
            except SQLAlchemyError as exc:
                self._session.rollback()
                raise StoreError(f"Failed to update balance of wallet {orm_op.wallet_id}") from exc

            if result.rowcount == 1:
                orm_op.status = OperationStatus.APPLIED.value
                orm_op.applied_at = now
                _commit(self._session, f"operation {operation_id}")
                return new_balance

            self._session.rollback()
            logger.info("Balance of wallet %s changed concurrently, retrying %s", orm_op.wallet_id, operation_id)

        raise StoreError(f"Gave up applying operation {operation_id} after {self._max_conflicts} conflicts")

    def delete(self, user_id: UserId, wallet_id: WalletId) -> bool:
        orm_wallet = self._load(user_id, wallet_id)
        if orm_wallet is None:
            return False
        self._session.delete(orm_wallet)
        _commit(self._session, f"deletion of wallet {wallet_id}")
        return True

    def _load(self, user_id: UserId, wallet_id: WalletId) -> models.WalletOrm | None:
        orm_wallet = self._session.get(models.WalletOrm, wallet_id, populate_existing=True)
        if orm_wallet is None or orm_wallet.user_id != user_id:
            return None
        return orm_wallet

    @staticmethod
    def _to_domain(orm_wallet: models.WalletOrm) -> Wallet:
        return Wallet(
            id=WalletId(orm_wallet.id),
            user_id=UserId(orm_wallet.user_id),
            name=orm_wallet.name,
            kind=WalletKind(orm_wallet.kind),
            balance=orm_wallet.balance,
            crypto_id=CoinId(orm_wallet.crypto_id) if orm_wallet.crypto_id is not None else None,
            crypto_symbol=orm_wallet.crypto_symbol,
            color=orm_wallet.color,
            icon=orm_wallet.icon,
            created_at=orm_wallet.created_at,
            updated_at=orm_wallet.updated_at,
        )


class TransactionRepository:
    """Transactions plus the balance operations recorded with them.

    Each write commits the transaction change and its balance operation in one
    go, so the delta owed to the wallet is durable before the balance is touched.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, transaction: Transaction, operation: BalanceOperation | None = None) -> Transaction:
        orm_transaction = models.TransactionOrm(
            id=transaction.id,
            user_id=transaction.user_id,
            wallet_id=transaction.wallet_id,
            type=transaction.type.value,
            amount=transaction.amount,
            category=transaction.category,
            description=transaction.description,
            date=transaction.date,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )
        self._session.add(orm_transaction)
        if operation is not None:
            self._session.add(self._operation_to_orm(operation))
        _commit(self._session, f"transaction {transaction.id}")
        self._session.refresh(orm_transaction)
        return self._to_domain(orm_transaction)

    def get(self, user_id: UserId, transaction_id: TransactionId) -> Transaction | None:
        orm_transaction = self._load(user_id, transaction_id)
        if orm_transaction is None:
            return None
        return self._to_domain(orm_transaction)

    def list_for_user(self, user_id: UserId) -> list[Transaction]:
        """Newest first by occurrence date."""
        stmt = (
            select(models.TransactionOrm)
            .where(models.TransactionOrm.user_id == user_id)
            .order_by(models.TransactionOrm.date.desc(), models.TransactionOrm.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(orm_transaction) for orm_transaction in self._session.scalars(stmt).all()]

    def update(self, transaction: Transaction, operation: BalanceOperation | None = None) -> Transaction:
        orm_transaction = self._load(transaction.user_id, transaction.id)
        if orm_transaction is None:
            raise NotFoundError(kind="Transaction", record_id=transaction.id, user_id=transaction.user_id)

        orm_transaction.type = transaction.type.value
        orm_transaction.amount = transaction.amount
        orm_transaction.category = transaction.category
        orm_transaction.description = transaction.description
        orm_transaction.date = transaction.date
        orm_transaction.updated_at = transaction.updated_at
        if operation is not None:
            self._session.add(self._operation_to_orm(operation))
        _commit(self._session, f"transaction {transaction.id}")
        self._session.refresh(orm_transaction)
        return self._to_domain(orm_transaction)

    def delete(
        self, user_id: UserId, transaction_id: TransactionId, operation: BalanceOperation | None = None
    ) -> None:
        orm_transaction = self._load(user_id, transaction_id)
        if orm_transaction is None:
            raise NotFoundError(kind="Transaction", record_id=transaction_id, user_id=user_id)
        self._session.delete(orm_transaction)
        if operation is not None:
            self._session.add(self._operation_to_orm(operation))
        _commit(self._session, f"deletion of transaction {transaction_id}")

    def get_operation(self, operation_id: OperationId) -> BalanceOperation | None:
        orm_op = self._session.get(models.BalanceOperationOrm, operation_id, populate_existing=True)
        if orm_op is None:
            return None
        return self._operation_to_domain(orm_op)

    def pending_operations(self, user_id: UserId) -> list[BalanceOperation]:
        stmt = (
            select(models.BalanceOperationOrm)
            .where(
                models.BalanceOperationOrm.user_id == user_id,
                models.BalanceOperationOrm.status == OperationStatus.PENDING.value,
            )
            .order_by(models.BalanceOperationOrm.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return [self._operation_to_domain(orm_op) for orm_op in self._session.scalars(stmt).all()]

    def _load(self, user_id: UserId, transaction_id: TransactionId) -> models.TransactionOrm | None:
        orm_transaction = self._session.get(models.TransactionOrm, transaction_id, populate_existing=True)
        if orm_transaction is None or orm_transaction.user_id != user_id:
            return None
        return orm_transaction

    @staticmethod
    def _operation_to_orm(operation: BalanceOperation) -> models.BalanceOperationOrm:
        return models.BalanceOperationOrm(
            id=operation.id,
            user_id=operation.user_id,
            wallet_id=operation.wallet_id,
            transaction_id=operation.transaction_id,
            delta=operation.delta,
            status=operation.status.value,
            created_at=operation.created_at,
        )

    @staticmethod
    def _operation_to_domain(orm_op: models.BalanceOperationOrm) -> BalanceOperation:
        return BalanceOperation(
            id=OperationId(orm_op.id),
            user_id=UserId(orm_op.user_id),
            wallet_id=WalletId(orm_op.wallet_id),
            transaction_id=TransactionId(orm_op.transaction_id),
            delta=orm_op.delta,
            status=OperationStatus(orm_op.status),
            created_at=orm_op.created_at,
        )

    @staticmethod
    def _to_domain(orm_transaction: models.TransactionOrm) -> Transaction:
        return Transaction(
            id=TransactionId(orm_transaction.id),
            user_id=UserId(orm_transaction.user_id),
            wallet_id=WalletId(orm_transaction.wallet_id),
            type=TransactionType(orm_transaction.type),
            amount=orm_transaction.amount,
            category=orm_transaction.category,
            description=orm_transaction.description,
            date=orm_transaction.date,
            created_at=orm_transaction.created_at,
            updated_at=orm_transaction.updated_at,
        )
