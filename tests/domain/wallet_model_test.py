from decimal import Decimal

import pytest
from pydantic import ValidationError

from domain.base_types import CoinId, TransactionType, WalletKind
from domain.transaction import categories_for, is_known_category
from domain.wallet import CRYPTO_PRESETS, WalletDraft, WalletPatch, draft_from_crypto_preset


def test_crypto_draft_requires_coin_fields() -> None:
    with pytest.raises(ValidationError):
        WalletDraft(name="BTC", kind=WalletKind.CRYPTO)


def test_fiat_draft_must_not_carry_coin_fields() -> None:
    with pytest.raises(ValidationError):
        WalletDraft(name="BCA", kind=WalletKind.BANK, crypto_id=CoinId("bitcoin"), crypto_symbol="BTC")


def test_draft_rejects_blank_name() -> None:
    with pytest.raises(ValidationError):
        WalletDraft(name="  ", kind=WalletKind.CASH)


def test_patch_rejects_blank_name() -> None:
    with pytest.raises(ValidationError):
        WalletPatch(name="")


def test_draft_from_crypto_preset() -> None:
    bitcoin = next(preset for preset in CRYPTO_PRESETS if preset.id == "bitcoin")

    draft = draft_from_crypto_preset(bitcoin, balance=Decimal("0.5"))

    assert draft.kind == WalletKind.CRYPTO
    assert draft.crypto_id == "bitcoin"
    assert draft.crypto_symbol == "BTC"
    assert draft.balance == Decimal("0.5")


def test_category_lists_per_type() -> None:
    assert is_known_category(TransactionType.INCOME, "salary")
    assert not is_known_category(TransactionType.EXPENSE, "salary")
    assert is_known_category(TransactionType.EXPENSE, "food")
    assert {category.type for category in categories_for(TransactionType.EXPENSE)} == {TransactionType.EXPENSE}
