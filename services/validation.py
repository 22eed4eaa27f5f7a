from decimal import Decimal
from typing import Optional

from services.exceptions import InvalidAmount
from utils.money import to_decimal


def require_amount(
    valor,
    campo: str = "valor",
    allow_zero: bool = False,
    entidade: Optional[str] = None,
    entidade_id: Optional[int] = None,
) -> Decimal:
    """
    Converte e valida um valor monetário informado pelo operador.
    Negativos nunca são aceitos; zero só com allow_zero. Frações de centavo
    são recusadas em vez de arredondadas.
    """
    try:
        dec = to_decimal(valor, exato=True)
    except ValueError as exc:
        raise InvalidAmount(
            f"{campo.capitalize()} inválido: {valor!r}.",
            entidade=entidade,
            entidade_id=entidade_id,
        ) from exc
    if dec < 0 or (dec == 0 and not allow_zero):
        limite = "maior ou igual a zero" if allow_zero else "maior que zero"
        raise InvalidAmount(
            f"{campo.capitalize()} deve ser {limite} (recebido {dec}).",
            entidade=entidade,
            entidade_id=entidade_id,
        )
    return dec
