"""Error taxonomy shared by the ledger and the price layer.

Ledger errors signal a data-integrity risk and are surfaced to the user.
Price errors are soft degradations: they are recovered locally by falling back
to cached prices and are never raised to valuation callers.
"""

from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    pass


class ValidationError(LedgerError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InsufficientFundsError(ValidationError):
    def __init__(
        self,
        *,
        wallet_id: str,
        attempted_amount: Decimal,
        available_balance: Decimal,
    ) -> None:
        self.wallet_id = wallet_id
        self.attempted_amount = attempted_amount
        self.available_balance = available_balance
        message = (
            f"Insufficient balance for wallet={wallet_id} "
            f"attempted={attempted_amount} available={available_balance}"
        )
        super().__init__(message, field="amount")


class NotFoundError(LedgerError):
    def __init__(self, *, kind: str, record_id: str, user_id: str | None = None) -> None:
        self.kind = kind
        self.record_id = record_id
        self.user_id = user_id
        super().__init__(f"{kind} {record_id} not found")


class StoreError(LedgerError):
    """The record store rejected or failed a write; nothing from that write was committed."""


class BalanceSyncError(LedgerError):
    """Balance delta could not be applied after its transaction was recorded."""

    def __init__(self, *, wallet_id: str, operation_id: str, delta: Decimal) -> None:
        self.wallet_id = wallet_id
        self.operation_id = operation_id
        self.delta = delta
        super().__init__(f"Failed to apply delta={delta} to wallet={wallet_id} (operation={operation_id})")


class PriceError(Exception):
    pass


class NetworkError(PriceError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: object | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class SerializationError(PriceError):
    def __init__(self, message: str, *, key: str) -> None:
        super().__init__(message)
        self.key = key


__all__ = [
    "BalanceSyncError",
    "InsufficientFundsError",
    "LedgerError",
    "NetworkError",
    "NotFoundError",
    "PriceError",
    "SerializationError",
    "StoreError",
    "ValidationError",
]
