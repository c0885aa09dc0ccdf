from decimal import Decimal

import pytest

from utils.formatting import format_crypto_amount, format_decimal, format_idr


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("450200000"), "Rp 450.200.000"),
        (Decimal("999.5"), "Rp 1.000"),
        (Decimal("0"), "Rp 0"),
        (Decimal("-30000"), "-Rp 30.000"),
    ],
)
def test_format_idr(value: Decimal, expected: str) -> None:
    assert format_idr(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("0"), "0"),
        (Decimal("1234.567"), "1,234.57"),
        (Decimal("1"), "1.00"),
        (Decimal("0.5"), "0.50"),
        (Decimal("0.00012345"), "0.00012345"),
        (Decimal("0.123456789"), "0.12345679"),
    ],
)
def test_format_crypto_amount(value: Decimal, expected: str) -> None:
    assert format_crypto_amount(value) == expected


def test_format_decimal_avoids_scientific_notation() -> None:
    assert format_decimal(Decimal("1E+3")) == "1000"
    assert format_decimal(Decimal("0.50")) == "0.5"
