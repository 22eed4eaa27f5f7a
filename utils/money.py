"""
Valores monetários em centavos.
Somas são feitas em inteiros (centavos) e convertidas para Decimal só na saída.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

CENTAVO = Decimal("0.01")


def to_decimal(valor, exato: bool = False) -> Decimal:
    """
    Converte int, float, str ou Decimal para Decimal com 2 casas.
    Aceita vírgula decimal ("12,50"). Levanta ValueError para entradas inválidas
    e, com exato=True, para valores com fração de centavo ("10,005").
    """
    if isinstance(valor, bool) or valor is None:
        raise ValueError(f"Valor monetário inválido: {valor!r}")
    if isinstance(valor, float):
        valor = repr(valor)
    if isinstance(valor, str):
        valor = valor.strip().replace("R$", "").strip()
        if "," in valor:
            valor = valor.replace(".", "").replace(",", ".")
    try:
        dec = Decimal(valor)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Valor monetário inválido: {valor!r}") from exc
    if not dec.is_finite():
        raise ValueError(f"Valor monetário inválido: {valor!r}")
    arredondado = dec.quantize(CENTAVO, rounding=ROUND_HALF_UP)
    if exato and arredondado != dec:
        raise ValueError(f"Valor monetário com mais de duas casas decimais: {valor!r}")
    return arredondado


def to_cents(valor) -> int:
    return int(to_decimal(valor) * 100)


def from_cents(centavos: int) -> Decimal:
    return (Decimal(int(centavos)) / 100).quantize(CENTAVO)


def sum_cents(valores: Iterable) -> int:
    return sum(to_cents(v) for v in valores)


class Dinheiro(TypeDecorator):
    """
    Coluna monetária: centavos (BigInteger) no banco, Decimal no Python.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_cents(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return from_cents(value)
