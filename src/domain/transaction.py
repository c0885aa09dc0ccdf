from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, model_validator

from .base_types import TransactionId, TransactionType, UserId, WalletId


class TransactionDraft(BaseModel):
    """Raw user input for a transaction. Checked by the ledger before any write."""

    wallet_id: WalletId
    type: TransactionType
    amount: Decimal
    category: str
    description: str
    date: datetime


class TransactionPatch(BaseModel):
    """Editable fields of an existing transaction; None means unchanged."""

    amount: Decimal | None = None
    description: str | None = None
    category: str | None = None
    type: TransactionType | None = None
    date: datetime | None = None
    wallet_id: WalletId | None = None


class Transaction(BaseModel):
    id: TransactionId
    user_id: UserId
    wallet_id: WalletId
    type: TransactionType
    amount: Decimal
    category: str
    description: str
    date: datetime
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _validate_amount(self) -> Transaction:
        if self.amount <= 0:
            raise ValueError("Transaction.amount must be > 0")
        return self


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    icon: str
    type: TransactionType
    color: str


INCOME_CATEGORIES: tuple[Category, ...] = (
    Category("salary", "Gaji", "briefcase", TransactionType.INCOME, "#10b981"),
    Category("bonus", "Bonus", "gift", TransactionType.INCOME, "#8b5cf6"),
    Category("business", "Bisnis", "trending-up", TransactionType.INCOME, "#3b82f6"),
    Category("investment", "Investasi", "line-chart", TransactionType.INCOME, "#f59e0b"),
    Category("gift", "Hadiah", "heart", TransactionType.INCOME, "#ec4899"),
    Category("other", "Lainnya", "more-horizontal", TransactionType.INCOME, "#6366f1"),
)

EXPENSE_CATEGORIES: tuple[Category, ...] = (
    Category("food", "Makanan", "utensils", TransactionType.EXPENSE, "#ef4444"),
    Category("transport", "Transport", "car", TransactionType.EXPENSE, "#f97316"),
    Category("shopping", "Belanja", "shopping-bag", TransactionType.EXPENSE, "#ec4899"),
    Category("bills", "Tagihan", "file-text", TransactionType.EXPENSE, "#8b5cf6"),
    Category("entertainment", "Hiburan", "music", TransactionType.EXPENSE, "#06b6d4"),
    Category("health", "Kesehatan", "heart-pulse", TransactionType.EXPENSE, "#10b981"),
    Category("education", "Pendidikan", "book", TransactionType.EXPENSE, "#3b82f6"),
    Category("other", "Lainnya", "more-horizontal", TransactionType.EXPENSE, "#6366f1"),
)


def categories_for(transaction_type: TransactionType) -> tuple[Category, ...]:
    if transaction_type == TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


def is_known_category(transaction_type: TransactionType, category_id: str) -> bool:
    return any(category.id == category_id for category in categories_for(transaction_type))


__all__ = [
    "Category",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "Transaction",
    "TransactionDraft",
    "TransactionPatch",
    "categories_for",
    "is_known_category",
]
