from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from config.database import Base, utcnow
from utils.money import Dinheiro


class Product(Base):
    """
    Produtos da loja de materiais de construção.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    codigo = Column(String(50), unique=True, nullable=False, index=True)
    nome = Column(String(200), nullable=False)
    categoria = Column(String(100), nullable=True)
    unidade = Column(String(10), nullable=False, default="UN")  # UN, M, M2, KG, SC...
    preco_custo = Column(Dinheiro, nullable=False, default=0)
    preco_venda = Column(Dinheiro, nullable=False, default=0)
    estoque_atual = Column(Float, nullable=False, default=0.0)
    estoque_minimo = Column(Float, nullable=True)
    ativo = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
