"""
Movimentações de caixa: o livro de lançamentos de cada sessão.
"""
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, event
from sqlalchemy.orm import relationship

from config.database import Base, utcnow
from services.exceptions import InvalidState
from utils.money import Dinheiro

TIPO_ABERTURA = "abertura"
TIPO_VENDA = "venda"
TIPO_SANGRIA = "sangria"
TIPO_SUPRIMENTO = "suprimento"
TIPO_FECHAMENTO = "fechamento"

TIPOS_MOVIMENTO = (
    TIPO_ABERTURA,
    TIPO_VENDA,
    TIPO_SANGRIA,
    TIPO_SUPRIMENTO,
    TIPO_FECHAMENTO,
)

# Tipos que o operador registra durante o dia
TIPOS_AVULSOS = (TIPO_VENDA, TIPO_SANGRIA, TIPO_SUPRIMENTO)


class CashMovement(Base):
    """
    Lançamento de caixa. O valor é sempre >= 0; o sentido vem do tipo
    (sangria sai, venda e suprimento entram). Depois de gravado não muda.
    """

    __tablename__ = "cash_movements"
    __table_args__ = (
        CheckConstraint("valor >= 0", name="ck_cash_movements_valor_positivo"),
    )

    id = Column(Integer, primary_key=True, index=True)
    cash_session_id = Column(
        Integer, ForeignKey("cash_sessions.id"), nullable=False, index=True
    )
    tipo = Column(String(20), nullable=False)
    valor = Column(Dinheiro, nullable=False, default=0)
    descricao = Column(String(255), nullable=True)
    forma_pagamento = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    cash_session = relationship("CashSession", back_populates="movimentos")


@event.listens_for(CashMovement, "before_update")
def prevent_movement_update(mapper, connection, target):
    raise InvalidState(
        f"Movimentação #{target.id} já registrada não pode ser alterada.",
        entidade="movimentacao",
        entidade_id=target.id,
    )


@event.listens_for(CashMovement, "before_delete")
def prevent_movement_delete(mapper, connection, target):
    raise InvalidState(
        f"Movimentação #{target.id} já registrada não pode ser excluída.",
        entidade="movimentacao",
        entidade_id=target.id,
    )
