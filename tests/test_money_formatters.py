from datetime import date, datetime
from decimal import Decimal

import pytest

from services.exceptions import InvalidAmount
from services.validation import require_amount
from utils.formatters import (
    difference_label,
    format_currency,
    format_date,
    normalize_search,
    parse_date,
)
from utils.money import from_cents, sum_cents, to_cents, to_decimal


@pytest.mark.parametrize(
    "entrada, esperado",
    [
        ("12,50", Decimal("12.50")),
        ("R$ 1.234,56", Decimal("1234.56")),
        ("1234.5", Decimal("1234.50")),
        (0.1, Decimal("0.10")),
        (7, Decimal("7.00")),
        ("2.005", Decimal("2.01")),
    ],
)
def test_to_decimal(entrada, esperado):
    assert to_decimal(entrada) == esperado


@pytest.mark.parametrize("entrada", [None, True, "abc", "", float("nan"), "inf"])
def test_to_decimal_rejects_garbage(entrada):
    with pytest.raises(ValueError):
        to_decimal(entrada)


def test_cents_are_exact():
    assert sum_cents([0.1, 0.2]) == 30
    assert from_cents(sum_cents(["0.10"] * 10)) == Decimal("1.00")
    assert to_cents("-5,00") == -500


def test_require_amount():
    assert require_amount("0", allow_zero=True) == Decimal("0.00")
    with pytest.raises(InvalidAmount) as exc:
        require_amount("0", "sangria", entidade="caixa", entidade_id=3)
    assert "Sangria" in exc.value.message
    assert exc.value.to_dict() == {
        "code": "INVALID_AMOUNT",
        "message": exc.value.message,
        "entidade": "caixa",
        "entidade_id": 3,
    }


@pytest.mark.parametrize("entrada", ["10.005", "0,001", Decimal("1.999")])
def test_require_amount_rejects_fraction_of_cent(entrada):
    with pytest.raises(InvalidAmount):
        require_amount(entrada)
    assert require_amount("10.50000") == Decimal("10.50")


def test_format_currency():
    assert "1.234,50" in format_currency(Decimal("1234.5"))
    assert "R$" in format_currency(10)
    assert "5,00" in format_currency("-5")


def test_format_and_parse_dates():
    assert format_date(date(2025, 3, 9)) == "09/03/2025"
    assert format_date(datetime(2025, 3, 9, 14, 5)) == "09/03/2025 14:05"
    assert parse_date("09/03/2025") == date(2025, 3, 9)
    assert parse_date("2025-03-09") == date(2025, 3, 9)
    assert parse_date(datetime(2025, 3, 9, 1, 0)) == date(2025, 3, 9)
    with pytest.raises(ValueError):
        parse_date("9 de março")


def test_normalize_search():
    assert normalize_search("Jo ão  Sílva") == "joaosilva"
    assert normalize_search(None) == ""


@pytest.mark.parametrize(
    "diferenca, rotulo",
    [("1.00", "Sobra"), ("-0.01", "Falta"), ("0", "Conferido")],
)
def test_difference_label(diferenca, rotulo):
    assert difference_label(diferenca) == rotulo
