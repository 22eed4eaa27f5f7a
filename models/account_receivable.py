from datetime import date
from typing import Optional

from sqlalchemy import Column, Date, DateTime, Integer, String

from config.database import Base, utcnow
from utils.money import Dinheiro

STATUS_PENDENTE = "Pendente"
STATUS_RECEBIDO = "Recebido"
# Rótulo calculado na leitura; nunca é gravado
SITUACAO_ATRASADO = "Atrasado"


class AccountReceivable(Base):
    """
    Contas a receber de clientes.
    O status gravado só vai de Pendente para Recebido (baixa).
    "Atrasado" é derivado: Pendente com vencimento anterior a hoje.
    """

    __tablename__ = "accounts_receivable"

    id = Column(Integer, primary_key=True, index=True)
    descricao = Column(String(255), nullable=False)
    cliente = Column(String(200), nullable=False, index=True)
    valor = Column(Dinheiro, nullable=False, default=0)
    data_vencimento = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=STATUS_PENDENTE)  # Pendente / Recebido
    valor_original = Column(Dinheiro, nullable=True)  # preenchido na baixa
    desconto = Column(Dinheiro, nullable=True)
    acrescimo = Column(Dinheiro, nullable=True)
    data_pagamento = Column(Date, nullable=True)
    forma_pagamento = Column(String(50), nullable=True)
    observacao = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def recebida(self) -> bool:
        return self.status == STATUS_RECEBIDO

    def is_overdue(self, hoje: Optional[date] = None) -> bool:
        hoje = hoje or date.today()
        return self.status == STATUS_PENDENTE and self.data_vencimento < hoje

    def situacao(self, hoje: Optional[date] = None) -> str:
        """
        Situação para exibição: Recebido, Atrasado ou Pendente.
        Não altera o registro.
        """
        if self.recebida:
            return STATUS_RECEBIDO
        if self.is_overdue(hoje):
            return SITUACAO_ATRASADO
        return STATUS_PENDENTE
