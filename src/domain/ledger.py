"""Signed balance deltas for transaction create, update and delete.

Sign convention:
- income adds ``amount`` to the wallet balance.
- expense subtracts ``amount`` from the wallet balance.

Every mutation is expressed as a delta so the storage layer can apply it as an
atomic increment instead of a read-modify-write of the balance.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, Field

from .base_types import OperationId, TransactionId, TransactionType, UserId, WalletId
from .errors import InsufficientFundsError, ValidationError
from .transaction import Transaction, TransactionDraft, TransactionPatch, is_known_category
from .wallet import Wallet


class OperationStatus(StrEnum):
    PENDING = "pending"
    APPLIED = "applied"
    ORPHANED = "orphaned"


class BalanceOperation(BaseModel):
    """A balance delta recorded together with the transaction write that caused it.

    ``id`` doubles as the idempotency key: applying the same operation twice
    changes the wallet balance once.
    """

    id: OperationId = Field(default_factory=lambda: OperationId(str(uuid4())))
    user_id: UserId
    wallet_id: WalletId
    transaction_id: TransactionId
    delta: Decimal
    status: OperationStatus = OperationStatus.PENDING
    created_at: datetime


def sign(transaction_type: TransactionType) -> int:
    return 1 if transaction_type == TransactionType.INCOME else -1


def signed_amount(transaction_type: TransactionType, amount: Decimal) -> Decimal:
    return sign(transaction_type) * amount


def create_delta(transaction_type: TransactionType, amount: Decimal) -> Decimal:
    return signed_amount(transaction_type, amount)


def update_delta(
    old_type: TransactionType,
    old_amount: Decimal,
    new_type: TransactionType,
    new_amount: Decimal,
) -> Decimal:
    return signed_amount(new_type, new_amount) - signed_amount(old_type, old_amount)


def delete_delta(transaction_type: TransactionType, amount: Decimal) -> Decimal:
    return -signed_amount(transaction_type, amount)


def validate_amount(amount: Decimal | None) -> Decimal:
    if amount is None:
        raise ValidationError("amount is required", field="amount")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount must be a positive number", field="amount")
    return amount


def validate_draft(draft: TransactionDraft) -> None:
    validate_amount(draft.amount)
    if not draft.wallet_id:
        raise ValidationError("wallet is required", field="wallet_id")
    if not draft.description.strip():
        raise ValidationError("description is required", field="description")
    if not is_known_category(draft.type, draft.category):
        raise ValidationError(f"unknown {draft.type} category {draft.category!r}", field="category")


def validate_patch(existing: Transaction, patch: TransactionPatch) -> None:
    if patch.amount is not None:
        validate_amount(patch.amount)
    if patch.description is not None and not patch.description.strip():
        raise ValidationError("description is required", field="description")
    if patch.wallet_id is not None and patch.wallet_id != existing.wallet_id:
        raise ValidationError("a transaction cannot be moved to another wallet", field="wallet_id")
    new_type = patch.type or existing.type
    category = patch.category if patch.category is not None else existing.category
    if not is_known_category(new_type, category):
        raise ValidationError(f"unknown {new_type} category {category!r}", field="category")


def check_sufficient_funds(wallet: Wallet, transaction_type: TransactionType, amount: Decimal) -> None:
    """Expense creation must not exceed the wallet's current balance."""
    if transaction_type != TransactionType.EXPENSE:
        return
    if wallet.balance < amount:
        raise InsufficientFundsError(
            wallet_id=wallet.id,
            attempted_amount=amount,
            available_balance=wallet.balance,
        )


__all__ = [
    "BalanceOperation",
    "OperationStatus",
    "check_sufficient_funds",
    "create_delta",
    "delete_delta",
    "sign",
    "signed_amount",
    "update_delta",
    "validate_amount",
    "validate_draft",
    "validate_patch",
]
