"""
Script para inicializar o banco de dados do PDV.
- Cria todas as tabelas (caixa, movimentações, contas a receber, produtos, vendas)
- Mostra se já existe caixa aberto no caixa padrão
"""
from config import settings
from config.database import DATABASE_URL, SessionLocal, init_db
from services.cash_service import CashService
from utils.formatters import format_currency, format_date


def main() -> None:
    print("📦 Inicializando banco de dados do PDV...")
    print(f"   Banco: {DATABASE_URL}")
    init_db()
    print("✅ Tabelas criadas (se não existiam).")

    db = SessionLocal()
    try:
        aberta = CashService(db).get_open_session()
        if aberta is None:
            print(f"ℹ️ Nenhum caixa aberto em '{settings.CAIXA_PADRAO}'.")
        else:
            print(
                f"ℹ️ Caixa '{aberta.caixa}' aberto desde {format_date(aberta.data_abertura)} "
                f"(sessão #{aberta.id}, abertura {format_currency(aberta.valor_abertura)})."
            )
    finally:
        db.close()


if __name__ == "__main__":
    main()
