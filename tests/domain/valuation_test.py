from decimal import Decimal

from domain.base_types import WalletKind
from domain.valuation import crypto_ids_for, total_value, value_of, value_portfolio
from tests.constants import BITCOIN, ETHEREUM
from tests.helpers.factories import make_price, make_wallet


def test_fiat_wallet_is_valued_at_its_balance() -> None:
    wallet = make_wallet(balance="200000", kind=WalletKind.CASH)

    assert value_of(wallet, {}) == Decimal("200000")


def test_crypto_wallet_is_balance_times_price() -> None:
    wallet = make_wallet(balance="0.5", kind=WalletKind.CRYPTO, crypto_id="bitcoin")

    assert value_of(wallet, {BITCOIN: make_price("bitcoin", "900000000")}) == Decimal("450000000")


def test_crypto_wallet_without_price_is_worth_zero() -> None:
    wallet = make_wallet(balance="0.5", kind=WalletKind.CRYPTO, crypto_id="bitcoin")

    assert value_of(wallet, {ETHEREUM: make_price("ethereum", "50000000")}) == Decimal(0)


def test_total_value_mixes_fiat_and_crypto() -> None:
    wallets = [
        make_wallet(balance="200000", kind=WalletKind.BANK),
        make_wallet(balance="0.5", kind=WalletKind.CRYPTO, crypto_id="bitcoin"),
    ]
    prices = {BITCOIN: make_price("bitcoin", "900000000")}

    assert total_value(wallets, prices) == Decimal("450200000")
    assert total_value(list(reversed(wallets)), prices) == Decimal("450200000")


def test_total_value_of_no_wallets_is_zero() -> None:
    assert total_value([], {}) == Decimal(0)


def test_crypto_ids_for_deduplicates_and_skips_fiat() -> None:
    wallets = [
        make_wallet(balance="1", kind=WalletKind.CRYPTO, crypto_id="bitcoin"),
        make_wallet(balance="2", kind=WalletKind.CRYPTO, crypto_id="bitcoin"),
        make_wallet(balance="3", kind=WalletKind.CRYPTO, crypto_id="ethereum"),
        make_wallet(balance="100", kind=WalletKind.EWALLET),
    ]

    assert crypto_ids_for(wallets) == {BITCOIN, ETHEREUM}


def test_value_portfolio_reports_missing_prices() -> None:
    bank = make_wallet(balance="200000", kind=WalletKind.BANK)
    btc = make_wallet(balance="0.5", kind=WalletKind.CRYPTO, crypto_id="bitcoin")
    eth = make_wallet(balance="2", kind=WalletKind.CRYPTO, crypto_id="ethereum")

    valuation = value_portfolio([bank, btc, eth], {BITCOIN: make_price("bitcoin", "900000000")})

    assert valuation.total == Decimal("450200000")
    assert valuation.missing_prices == {ETHEREUM}
    assert valuation.is_partial
    by_id = {item.wallet_id: item for item in valuation.wallets}
    assert by_id[eth.id].value == Decimal(0)
    assert by_id[eth.id].priced is False
    assert by_id[bank.id].priced is True


def test_value_portfolio_with_all_prices_is_complete() -> None:
    btc = make_wallet(balance="1", kind=WalletKind.CRYPTO, crypto_id="bitcoin")

    valuation = value_portfolio([btc], {BITCOIN: make_price("bitcoin", "10")})

    assert not valuation.is_partial
    assert valuation.total == Decimal("10")


def test_zero_price_placeholder_counts_as_missing() -> None:
    bank = make_wallet(balance="200000", kind=WalletKind.BANK)
    delisted = make_wallet(balance="40", kind=WalletKind.CRYPTO, crypto_id="delisted-coin")
    prices = {"delisted-coin": make_price("delisted-coin", "0", placeholder=True)}

    valuation = value_portfolio([bank, delisted], prices)

    assert valuation.total == Decimal("200000")
    assert valuation.missing_prices == {"delisted-coin"}
    assert valuation.is_partial
    by_id = {item.wallet_id: item for item in valuation.wallets}
    assert by_id[delisted.id].priced is False
    assert value_of(delisted, prices) == Decimal(0)
