from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from db.repositories import TransactionRepository, WalletRepository
from domain.base_types import OperationId, TransactionType, WalletId, WalletKind
from domain.errors import BalanceSyncError, InsufficientFundsError, StoreError
from domain.transaction import Transaction, TransactionDraft, TransactionPatch
from domain.wallet import Wallet, WalletDraft
from services.balance_ledger import BalanceLedger
from services.transaction_service import TransactionService
from services.wallet_service import WalletService
from tests.constants import ALICE


def _draft(
    wallet_id: WalletId,
    transaction_type: TransactionType,
    amount: str,
    *,
    day: int = 1,
    month: int = 5,
) -> TransactionDraft:
    return TransactionDraft(
        wallet_id=wallet_id,
        type=transaction_type,
        amount=Decimal(amount),
        category="salary" if transaction_type == TransactionType.INCOME else "food",
        description=f"{transaction_type} {amount}",
        date=datetime(2024, month, day, 9, 0, tzinfo=timezone.utc),
    )


@pytest.fixture()
def wallet_service(wallet_repo: WalletRepository) -> WalletService:
    return WalletService(wallet_repo)


@pytest.fixture()
def service(
    wallet_repo: WalletRepository, transaction_repo: TransactionRepository, wallet_service: WalletService
) -> TransactionService:
    return TransactionService(BalanceLedger(wallet_repo, transaction_repo), transaction_repo, wallet_service)


@pytest.fixture()
def bank(wallet_service: WalletService) -> Wallet:
    return wallet_service.create_wallet(
        ALICE, WalletDraft(name="BCA", kind=WalletKind.BANK, balance=Decimal("1000000"))
    )


def test_transactions_are_sorted_newest_first(service: TransactionService, bank: Wallet) -> None:
    service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "100", day=3))
    service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "200", day=10))
    service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "300", day=1))

    assert [tx.amount for tx in service.get_transactions(ALICE)] == [Decimal("200"), Decimal("100"), Decimal("300")]
    assert [tx.amount for tx in service.get_recent_transactions(ALICE, limit=2)] == [Decimal("200"), Decimal("100")]


def test_recent_transactions_requires_positive_limit(service: TransactionService) -> None:
    with pytest.raises(ValueError):
        service.get_recent_transactions(ALICE, limit=0)


def test_monthly_stats(service: TransactionService, bank: Wallet) -> None:
    service.create_transaction(ALICE, _draft(bank.id, TransactionType.INCOME, "500000", day=1))
    service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "120000", day=15))
    service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "30000", day=28))
    service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "99999", month=6))

    stats = service.get_monthly_stats(ALICE, 5, 2024)

    assert stats.income == Decimal("500000")
    assert stats.expense == Decimal("150000")
    assert stats.total == Decimal("350000")
    assert service.get_monthly_stats(ALICE, 5, 2023).total == Decimal(0)


def test_monthly_stats_rejects_bad_month(service: TransactionService) -> None:
    with pytest.raises(ValueError):
        service.get_monthly_stats(ALICE, 13, 2024)


def test_writes_publish_transactions_and_wallets(
    service: TransactionService, wallet_service: WalletService, bank: Wallet
) -> None:
    transactions: list[list[Transaction]] = []
    wallets: list[list[Wallet]] = []
    service.subscribe_to_transactions(ALICE, transactions.append)
    wallet_service.subscribe_to_wallets(ALICE, wallets.append)

    created = service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "250000"))
    service.update_transaction(ALICE, created.id, TransactionPatch(amount=Decimal("200000")))
    service.delete_transaction(ALICE, created.id)

    assert [len(snapshot) for snapshot in transactions] == [0, 1, 1, 0]
    assert [snapshot[0].balance for snapshot in wallets] == [
        Decimal("1000000"),
        Decimal("750000"),
        Decimal("800000"),
        Decimal("1000000"),
    ]


def test_rejected_write_leaves_state_unchanged(
    service: TransactionService, wallet_service: WalletService, bank: Wallet
) -> None:
    with pytest.raises(InsufficientFundsError):
        service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "2000000"))

    assert service.get_transactions(ALICE) == []
    assert wallet_service.total_balance(ALICE) == Decimal("1000000")


def test_rejected_write_publishes_nothing(
    service: TransactionService, wallet_service: WalletService, bank: Wallet
) -> None:
    transactions: list[list[Transaction]] = []
    wallets: list[list[Wallet]] = []
    service.subscribe_to_transactions(ALICE, transactions.append)
    wallet_service.subscribe_to_wallets(ALICE, wallets.append)

    with pytest.raises(InsufficientFundsError):
        service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "2000000"))

    assert len(transactions) == 1
    assert len(wallets) == 1


def test_stored_write_with_pending_balance_still_publishes(
    wallet_repo: WalletRepository,
    transaction_repo: TransactionRepository,
    wallet_service: WalletService,
    bank: Wallet,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    ledger = BalanceLedger(wallet_repo, transaction_repo, retry_attempts=2, retry_backoff_seconds=0)
    service = TransactionService(ledger, transaction_repo, wallet_service)
    transactions: list[list[Transaction]] = []
    service.subscribe_to_transactions(ALICE, transactions.append)

    def _locked(operation_id: OperationId) -> Decimal:
        raise StoreError("database is locked")

    monkeypatch.setattr(wallet_repo, "apply_delta", _locked)

    with pytest.raises(BalanceSyncError):
        service.create_transaction(ALICE, _draft(bank.id, TransactionType.EXPENSE, "250000"))

    assert [len(snapshot) for snapshot in transactions] == [0, 1]
    assert wallet_service.total_balance(ALICE) == Decimal("1000000")
