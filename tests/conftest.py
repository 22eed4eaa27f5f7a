import os
from datetime import date, timedelta
from pathlib import Path

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from sqlalchemy.orm import sessionmaker

from config.database import Base, build_engine, register_models
from models.account_receivable import AccountReceivable

register_models()


@pytest.fixture()
def engine(tmp_path: Path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_receivable(db):
    def _make(valor="100.00", cliente="João Silva", descricao="Venda a prazo", vencimento=None, status="Pendente"):
        conta = AccountReceivable(
            descricao=descricao,
            cliente=cliente,
            valor=valor,
            data_vencimento=vencimento or date.today() + timedelta(days=30),
            status=status,
        )
        db.add(conta)
        db.commit()
        db.refresh(conta)
        return conta

    return _make
