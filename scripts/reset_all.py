"""
Script para limpar todas as bases e testar do zero.
- Limpa todos os dados do banco (via SQL, sem apagar o arquivo)
- Zera os contadores de id no SQLite

As movimentações de caixa só saem por aqui: pelo ORM elas não podem ser
alteradas nem excluídas.
"""
import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config.database import DATABASE_URL, engine, init_db
from utils.logger import get_logger

logger = get_logger("reset_all")

# Ordem: tabelas filhas primeiro (por causa das chaves estrangeiras)
TABLES_TO_TRUNCATE = [
    "cash_movements",
    "sale_items",
    "sales",
    "accounts_receivable",
    "cash_sessions",
    "products",
]


def main() -> None:
    print("Limpando bases do PDV...")
    init_db()  # garante que tabelas existem

    sqlite = DATABASE_URL.startswith("sqlite")
    comando = "DELETE FROM {}" if sqlite else "TRUNCATE TABLE {} CASCADE"
    with engine.connect() as conn:
        for table in TABLES_TO_TRUNCATE:
            try:
                conn.execute(text(comando.format(table)))
                conn.commit()
                print("  Limpo:", table)
            except SQLAlchemyError as e:
                conn.rollback()
                logger.warning("Não foi possível limpar %s: %s", table, e)
        if sqlite:
            # Resetar contadores de ID no SQLite (a tabela só existe com AUTOINCREMENT)
            try:
                conn.execute(text("DELETE FROM sqlite_sequence"))
                conn.commit()
            except SQLAlchemyError:
                conn.rollback()
    print("  Banco de dados limpo (dados removidos).")

    print("\nPronto. Pode testar do zero (rode scripts/seed_demo.py para dados de exemplo).")


if __name__ == "__main__":
    main()
