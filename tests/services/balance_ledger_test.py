from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from db.repositories import TransactionRepository, WalletRepository
from domain.base_types import OperationId, TransactionType, WalletId, WalletKind
from domain.errors import BalanceSyncError, InsufficientFundsError, NotFoundError, StoreError, ValidationError
from domain.ledger import OperationStatus
from domain.transaction import TransactionDraft, TransactionPatch
from domain.wallet import Wallet
from services.balance_ledger import BalanceLedger
from tests.constants import ALICE, BOB
from tests.helpers.factories import make_wallet

INCOME = TransactionType.INCOME
EXPENSE = TransactionType.EXPENSE


class FlakyWalletRepository(WalletRepository):
    """Fails the first ``failures`` balance writes with a StoreError."""

    def __init__(self, session: Session, *, failures: int) -> None:
        super().__init__(session)
        self.failures = failures
        self.attempts = 0

    def apply_delta(self, operation_id: OperationId) -> Decimal:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StoreError("database is locked")
        return super().apply_delta(operation_id)


def _draft(wallet_id: WalletId, transaction_type: TransactionType, amount: str, category: str = "") -> TransactionDraft:
    return TransactionDraft(
        wallet_id=wallet_id,
        type=transaction_type,
        amount=Decimal(amount),
        category=category or ("salary" if transaction_type == INCOME else "food"),
        description="entry",
        date=datetime(2024, 5, 2, tzinfo=timezone.utc),
    )


def _balance(wallets: WalletRepository, wallet: Wallet) -> Decimal:
    stored = wallets.get(wallet.user_id, wallet.id)
    assert stored is not None
    return stored.balance


@pytest.fixture()
def ledger(wallet_repo: WalletRepository, transaction_repo: TransactionRepository) -> BalanceLedger:
    return BalanceLedger(wallet_repo, transaction_repo)


@pytest.fixture()
def bank(wallet_repo: WalletRepository) -> Wallet:
    return wallet_repo.create(make_wallet(balance="100000", kind=WalletKind.BANK))


def test_expense_reduces_balance_and_overdraft_is_rejected(
    ledger: BalanceLedger, wallet_repo: WalletRepository, transaction_repo: TransactionRepository, bank: Wallet
) -> None:
    ledger.apply_create(ALICE, _draft(bank.id, EXPENSE, "30000"))
    assert _balance(wallet_repo, bank) == Decimal("70000")

    with pytest.raises(InsufficientFundsError):
        ledger.apply_create(ALICE, _draft(bank.id, EXPENSE, "80000"))

    assert _balance(wallet_repo, bank) == Decimal("70000")
    assert len(transaction_repo.list_for_user(ALICE)) == 1


@pytest.mark.parametrize("transaction_type", [INCOME, EXPENSE])
def test_create_then_delete_restores_balance(
    ledger: BalanceLedger, wallet_repo: WalletRepository, bank: Wallet, transaction_type: TransactionType
) -> None:
    created = ledger.apply_create(ALICE, _draft(bank.id, transaction_type, "12345.67"))
    ledger.apply_delete(ALICE, created.id)

    assert _balance(wallet_repo, bank) == Decimal("100000")


@pytest.mark.parametrize(
    ("transaction_type", "expected"),
    [(INCOME, Decimal("115000")), (EXPENSE, Decimal("85000"))],
)
def test_amount_update_moves_balance_by_difference(
    ledger: BalanceLedger,
    wallet_repo: WalletRepository,
    bank: Wallet,
    transaction_type: TransactionType,
    expected: Decimal,
) -> None:
    created = ledger.apply_create(ALICE, _draft(bank.id, transaction_type, "10000"))

    ledger.apply_update(ALICE, created.id, TransactionPatch(amount=Decimal("15000")))

    assert _balance(wallet_repo, bank) == expected


def test_type_change_reverses_old_effect(ledger: BalanceLedger, wallet_repo: WalletRepository, bank: Wallet) -> None:
    created = ledger.apply_create(ALICE, _draft(bank.id, EXPENSE, "10000"))

    updated = ledger.apply_update(ALICE, created.id, TransactionPatch(type=INCOME, category="bonus"))

    assert updated.type == INCOME
    assert _balance(wallet_repo, bank) == Decimal("110000")


def test_update_without_amount_change_records_no_operation(
    ledger: BalanceLedger, transaction_repo: TransactionRepository, bank: Wallet
) -> None:
    created = ledger.apply_create(ALICE, _draft(bank.id, EXPENSE, "10000"))

    updated = ledger.apply_update(ALICE, created.id, TransactionPatch(description="  Dinner  "))

    assert updated.description == "Dinner"
    assert transaction_repo.pending_operations(ALICE) == []


def test_update_cannot_move_transaction_to_another_wallet(
    ledger: BalanceLedger, wallet_repo: WalletRepository, bank: Wallet
) -> None:
    other = wallet_repo.create(make_wallet(balance="0"))
    created = ledger.apply_create(ALICE, _draft(bank.id, EXPENSE, "10000"))

    with pytest.raises(ValidationError):
        ledger.apply_update(ALICE, created.id, TransactionPatch(wallet_id=other.id))

    assert _balance(wallet_repo, other) == Decimal("0")


def test_missing_wallet_raises_without_writing(
    ledger: BalanceLedger, transaction_repo: TransactionRepository
) -> None:
    with pytest.raises(NotFoundError):
        ledger.apply_create(ALICE, _draft(WalletId("missing"), INCOME, "100"))

    assert transaction_repo.list_for_user(ALICE) == []


def test_other_users_wallet_is_not_found(
    ledger: BalanceLedger, wallet_repo: WalletRepository, transaction_repo: TransactionRepository, bank: Wallet
) -> None:
    with pytest.raises(NotFoundError):
        ledger.apply_create(BOB, _draft(bank.id, INCOME, "100"))

    assert _balance(wallet_repo, bank) == Decimal("100000")
    assert transaction_repo.list_for_user(BOB) == []


def test_invalid_amount_is_rejected_before_any_write(
    ledger: BalanceLedger, transaction_repo: TransactionRepository, bank: Wallet
) -> None:
    with pytest.raises(ValidationError):
        ledger.apply_create(ALICE, _draft(bank.id, INCOME, "0"))

    assert transaction_repo.list_for_user(ALICE) == []


def test_unknown_transaction_is_not_found(ledger: BalanceLedger) -> None:
    with pytest.raises(NotFoundError):
        ledger.apply_delete(ALICE, "missing")
    with pytest.raises(NotFoundError):
        ledger.apply_update(ALICE, "missing", TransactionPatch(amount=Decimal("1")))


def test_transient_balance_failure_is_retried_with_same_operation(
    test_session: Session, transaction_repo: TransactionRepository
) -> None:
    wallets = FlakyWalletRepository(test_session, failures=2)
    bank = wallets.create(make_wallet(balance="100000"))
    ledger = BalanceLedger(wallets, transaction_repo, retry_attempts=3, retry_backoff_seconds=0)

    ledger.apply_create(ALICE, _draft(bank.id, EXPENSE, "30000"))

    assert wallets.attempts == 3
    assert _balance(wallets, bank) == Decimal("70000")
    assert transaction_repo.pending_operations(ALICE) == []


def test_exhausted_retries_leave_operation_pending_for_reconcile(
    test_session: Session, transaction_repo: TransactionRepository
) -> None:
    wallets = FlakyWalletRepository(test_session, failures=3)
    bank = wallets.create(make_wallet(balance="100000"))
    ledger = BalanceLedger(wallets, transaction_repo, retry_attempts=3, retry_backoff_seconds=0)

    with pytest.raises(BalanceSyncError) as excinfo:
        ledger.apply_create(ALICE, _draft(bank.id, INCOME, "5000"))

    assert excinfo.value.delta == Decimal("5000")
    assert _balance(wallets, bank) == Decimal("100000")
    pending = transaction_repo.pending_operations(ALICE)
    assert [op.id for op in pending] == [excinfo.value.operation_id]

    assert ledger.reconcile(ALICE) == [excinfo.value.operation_id]
    assert _balance(wallets, bank) == Decimal("105000")
    assert transaction_repo.pending_operations(ALICE) == []
    assert ledger.reconcile(ALICE) == []


def test_reconcile_skips_operations_of_deleted_wallets(
    test_session: Session, transaction_repo: TransactionRepository
) -> None:
    wallets = FlakyWalletRepository(test_session, failures=3)
    bank = wallets.create(make_wallet(balance="100000"))
    ledger = BalanceLedger(wallets, transaction_repo, retry_attempts=3, retry_backoff_seconds=0)
    with pytest.raises(BalanceSyncError) as excinfo:
        ledger.apply_create(ALICE, _draft(bank.id, INCOME, "5000"))
    wallets.delete(ALICE, bank.id)

    assert ledger.reconcile(ALICE) == []

    operation = transaction_repo.get_operation(excinfo.value.operation_id)
    assert operation is not None
    assert operation.status == OperationStatus.ORPHANED
