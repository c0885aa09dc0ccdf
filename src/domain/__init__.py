"""Domain models and rules for the wallet tracker.

This package contains in-memory (Pydantic) models for wallets and transactions,
price entries, the balance delta rules and the valuation engine. They are
independent from persistence models so that business logic and testing can
evolve without DB coupling.
"""

__all__ = [
    "base_types",
    "errors",
    "ledger",
    "pricing",
    "transaction",
    "valuation",
    "wallet",
]
