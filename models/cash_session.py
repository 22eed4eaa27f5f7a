from datetime import date

from sqlalchemy import Column, Date, DateTime, Index, Integer, String, text
from sqlalchemy.orm import relationship

from config.database import Base, utcnow
from utils.money import Dinheiro

STATUS_ABERTA = "aberta"
STATUS_FECHADA = "fechada"


class CashSession(Base):
    """
    Sessões de caixa (abertura/fechamento).
    Apenas uma sessão com status 'aberta' pode existir por caixa: o índice
    único parcial garante isso no banco, mesmo com dois terminais abrindo juntos.
    Os totais não ficam gravados enquanto a sessão está aberta; são sempre
    calculados a partir das movimentações.
    """

    __tablename__ = "cash_sessions"
    __table_args__ = (
        Index(
            "uq_cash_sessions_caixa_aberta",
            "caixa",
            unique=True,
            sqlite_where=text("status = 'aberta'"),
            postgresql_where=text("status = 'aberta'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    caixa = Column(String(50), nullable=False, default="principal")
    data = Column(Date, nullable=False, default=date.today)
    status = Column(String(20), nullable=False, default=STATUS_ABERTA)  # aberta / fechada
    valor_abertura = Column(Dinheiro, nullable=False, default=0)
    valor_fechamento = Column(Dinheiro, nullable=True)  # contado pelo operador
    valor_esperado = Column(Dinheiro, nullable=True)
    diferenca = Column(Dinheiro, nullable=True)  # fechamento - esperado
    operador = Column(String(100), nullable=True)
    data_abertura = Column(DateTime, nullable=False, default=utcnow)
    data_fechamento = Column(DateTime, nullable=True)
    observacao = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    movimentos = relationship(
        "CashMovement",
        back_populates="cash_session",
        order_by="CashMovement.id",
    )

    @property
    def aberta(self) -> bool:
        return self.status == STATUS_ABERTA
