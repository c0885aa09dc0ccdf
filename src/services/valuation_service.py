from __future__ import annotations

import logging
from decimal import Decimal

from db.repositories import WalletRepository
from domain.base_types import UserId
from domain.pricing import PriceProvider
from domain.valuation import PortfolioValuation, crypto_ids_for, total_value, value_of, value_portfolio
from domain.wallet import Wallet

logger = logging.getLogger(__name__)


class ValuationService:
    """Values a user's wallets in the home currency using the latest known prices."""

    def __init__(self, wallets: WalletRepository, prices: PriceProvider) -> None:
        self._wallets = wallets
        self._prices = prices

    def total_balance_with_crypto(self, user_id: UserId) -> Decimal:
        wallets = self._wallets.list_for_user(user_id)
        return total_value(wallets, self._prices.fetch_prices(crypto_ids_for(wallets)))

    def wallet_value(self, wallet: Wallet) -> Decimal:
        if not wallet.is_crypto:
            return wallet.balance
        return value_of(wallet, self._prices.fetch_prices(crypto_ids_for([wallet])))

    def portfolio(self, user_id: UserId) -> PortfolioValuation:
        wallets = self._wallets.list_for_user(user_id)
        valuation = value_portfolio(wallets, self._prices.fetch_prices(crypto_ids_for(wallets)))
        if valuation.is_partial:
            logger.warning(
                "Portfolio of user %s valued without prices for %s",
                user_id,
                ",".join(sorted(valuation.missing_prices)),
            )
        return valuation


__all__ = ["ValuationService"]
