"""
Configuração do banco de dados do PDV
- Suporta SQLite para desenvolvimento local
- Suporta PostgreSQL (produção) via DATABASE_URL
"""
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

# Diretório do banco de dados local (SQLite)
DB_DIR = settings.PROJECT_ROOT / "data"

DATABASE_URL = settings.DATABASE_URL
if not DATABASE_URL:
    DB_DIR.mkdir(parents=True, exist_ok=True)
    DATABASE_URL = f"sqlite:///{DB_DIR / 'pdv.db'}"


def build_engine(url: str):
    """
    Cria o engine conforme o tipo de banco.
    """
    if url.startswith("postgresql"):
        return create_engine(
            url,
            echo=False,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
            pool_recycle=3600,
        )
    # SQLite (desenvolvimento local e testes)
    return create_engine(
        url,
        connect_args={"check_same_thread": False},
        echo=False,
    )


engine = build_engine(DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base para os modelos
Base = declarative_base()


def utcnow() -> datetime:
    """Data/hora atual em UTC, sem tzinfo (como gravada nas colunas DateTime)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    """
    Dependency simples para obter uma sessão do banco de dados.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def register_models() -> None:
    """
    Importa os modelos para registrá-los no metadata.
    """
    from models import (  # noqa: F401
        account_receivable,
        cash_movement,
        cash_session,
        product,
        sale,
    )


def init_db(bind=None) -> None:
    """
    Cria todas as tabelas definidas nos modelos.
    Deve ser chamada uma vez na inicialização da aplicação.
    """
    register_models()
    Base.metadata.create_all(bind=bind or engine)
