from __future__ import annotations

from enum import StrEnum
from typing import NewType

UserId = NewType("UserId", str)
WalletId = NewType("WalletId", str)
TransactionId = NewType("TransactionId", str)
CoinId = NewType("CoinId", str)
OperationId = NewType("OperationId", str)


class WalletKind(StrEnum):
    BANK = "bank"
    CASH = "cash"
    EWALLET = "ewallet"
    CRYPTO = "crypto"


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
