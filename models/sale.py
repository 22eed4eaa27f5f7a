from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from config.database import Base, utcnow
from utils.money import Dinheiro

STATUS_CONCLUIDA = "concluida"
STATUS_CANCELADA = "cancelada"


class Sale(Base):
    """
    Venda (cabeçalho), opcionalmente vinculada a uma sessão de caixa.
    """

    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    cash_session_id = Column(Integer, ForeignKey("cash_sessions.id"), nullable=True)
    data_venda = Column(Date, nullable=False, index=True)
    cliente = Column(String(200), nullable=True)  # vazio = Consumidor Final
    forma_pagamento = Column(String(50), nullable=True)
    condicao_pagamento = Column(String(50), nullable=True)  # a_vista, 30_60_dias, ...
    subtotal = Column(Dinheiro, nullable=False, default=0)
    desconto = Column(Dinheiro, nullable=False, default=0)
    total_vendido = Column(Dinheiro, nullable=False, default=0)
    total_lucro = Column(Dinheiro, nullable=False, default=0)
    total_pecas = Column(Float, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=STATUS_CONCLUIDA)  # concluida | cancelada
    created_at = Column(DateTime, nullable=False, default=utcnow)

    cash_session = relationship("CashSession")
    itens = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")


class SaleItem(Base):
    """
    Itens de venda.
    """

    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantidade = Column(Float, nullable=False, default=1.0)
    preco_unitario = Column(Dinheiro, nullable=False, default=0)
    preco_custo_unitario = Column(Dinheiro, nullable=False, default=0)
    desconto = Column(Dinheiro, nullable=False, default=0)
    subtotal = Column(Dinheiro, nullable=False, default=0)
    lucro_item = Column(Dinheiro, nullable=False, default=0)

    sale = relationship("Sale", back_populates="itens")
    product = relationship("Product")
