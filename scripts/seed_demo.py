"""
Cria dados de exemplo do PDV (loja de materiais de construção) passando
pelos serviços: produtos, um dia de caixa completo com vendas, sangria e
suprimento, contas a receber (avulsas e parceladas) e uma baixa com desconto.
No fim imprime o resumo dos relatórios.

Pode ser executado em ambiente local ou de produção (cuidado ao rodar em produção).
"""
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Garante que o diretório raiz esteja no sys.path
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from config.database import SessionLocal, init_db
from models.account_receivable import AccountReceivable
from models.cash_movement import TIPO_SANGRIA, TIPO_SUPRIMENTO, TIPO_VENDA
from models.product import Product
from models.sale import STATUS_CONCLUIDA, Sale, SaleItem
from services import report_service
from services.cash_service import CashService
from services.receivable_service import ReceivableService
from services.settlement_service import SettlementItem, SettlementService
from utils.formatters import difference_label, format_currency
from utils.money import from_cents, to_cents

PRODUTOS = [
    dict(codigo="CIM001", nome="Cimento CP II 50kg", categoria="Cimento e Argamassa", unidade="SC",
         preco_custo="28.50", preco_venda="38.90", estoque_atual=120, estoque_minimo=30),
    dict(codigo="ARG001", nome="Argamassa AC-I 20kg", categoria="Cimento e Argamassa", unidade="SC",
         preco_custo="12.00", preco_venda="18.50", estoque_atual=80, estoque_minimo=20),
    dict(codigo="ARE001", nome="Areia Média (m³)", categoria="Agregados", unidade="M3",
         preco_custo="90.00", preco_venda="135.00", estoque_atual=15, estoque_minimo=5),
    dict(codigo="BRI001", nome="Brita 1 (m³)", categoria="Agregados", unidade="M3",
         preco_custo="95.00", preco_venda="145.00", estoque_atual=4, estoque_minimo=5),
    dict(codigo="TIJ001", nome="Tijolo Cerâmico 8 Furos", categoria="Alvenaria", unidade="UN",
         preco_custo="0.65", preco_venda="1.10", estoque_atual=5000, estoque_minimo=1000),
    dict(codigo="VER001", nome="Vergalhão CA-50 10mm 12m", categoria="Ferragens", unidade="UN",
         preco_custo="32.00", preco_venda="47.90", estoque_atual=60, estoque_minimo=15),
    dict(codigo="TUB001", nome="Tubo PVC Esgoto 100mm 6m", categoria="Hidráulica", unidade="UN",
         preco_custo="38.00", preco_venda="59.90", estoque_atual=25, estoque_minimo=10),
    dict(codigo="TIN001", nome="Tinta Acrílica Branca 18L", categoria="Tintas", unidade="UN",
         preco_custo="210.00", preco_venda="319.00", estoque_atual=8, estoque_minimo=3),
]


def seed_products(db) -> dict:
    por_codigo = {}
    for dados in PRODUTOS:
        produto = db.query(Product).filter(Product.codigo == dados["codigo"]).first()
        if produto is None:
            produto = Product(**dados)
            db.add(produto)
        por_codigo[dados["codigo"]] = produto
    db.commit()
    print(f"Produtos: {len(por_codigo)} disponíveis.")
    return por_codigo


def create_sale(db, caixa, sessao, itens, forma_pagamento, cliente=None, data_venda=None):
    """
    Grava a venda com seus itens, baixa o estoque e lança a venda no caixa.
    """
    vendido = lucro = 0
    pecas = 0.0
    venda = Sale(
        cash_session_id=sessao.id,
        data_venda=data_venda or date.today(),
        cliente=cliente,
        forma_pagamento=forma_pagamento,
        condicao_pagamento="a_vista",
        status=STATUS_CONCLUIDA,
    )
    for produto, quantidade in itens:
        subtotal = round(to_cents(produto.preco_venda) * quantidade)
        custo = round(to_cents(produto.preco_custo) * quantidade)
        venda.itens.append(
            SaleItem(
                product=produto,
                quantidade=quantidade,
                preco_unitario=produto.preco_venda,
                preco_custo_unitario=produto.preco_custo,
                subtotal=from_cents(subtotal),
                lucro_item=from_cents(subtotal - custo),
            )
        )
        produto.estoque_atual = (produto.estoque_atual or 0) - quantidade
        vendido += subtotal
        lucro += subtotal - custo
        pecas += quantidade

    venda.subtotal = venda.total_vendido = from_cents(vendido)
    venda.total_lucro = from_cents(lucro)
    venda.total_pecas = pecas
    db.add(venda)
    db.commit()

    caixa.record_movement(
        sessao.id,
        TIPO_VENDA,
        venda.total_vendido,
        descricao=f"Venda #{venda.id}",
        forma_pagamento=forma_pagamento,
    )
    return venda


def main() -> None:
    init_db()
    db = SessionLocal()
    try:
        produtos = seed_products(db)
        caixa = CashService(db)
        contas = ReceivableService(db)
        hoje = date.today()

        sessao = caixa.get_open_session()
        if sessao is None:
            sessao = caixa.open_register(Decimal("200.00"), operador="demo")
        print(f"Caixa aberto: sessão #{sessao.id}")

        create_sale(db, caixa, sessao, [(produtos["CIM001"], 10), (produtos["ARE001"], 1)], "Dinheiro",
                    cliente="Construtora Alfa")
        create_sale(db, caixa, sessao, [(produtos["TIJ001"], 500)], "Pix")
        create_sale(db, caixa, sessao, [(produtos["TIN001"], 1), (produtos["ARG001"], 4)], "Cartão de Débito",
                    cliente="João Silva")
        caixa.record_movement(sessao.id, TIPO_SUPRIMENTO, "50,00", descricao="Troco")
        caixa.record_movement(sessao.id, TIPO_SANGRIA, "300,00", descricao="Depósito bancário")

        esperado = caixa.compute_expected_balance(sessao.id)
        print(f"Saldo esperado: {format_currency(esperado)}")

        contas.create("Material obra Rua A", "Maria Souza", "450,00", hoje - timedelta(days=10))
        contas.create("Telhas e calhas", "José Pereira", "1.280,00", hoje + timedelta(days=15))
        parcelas = contas.create_installments(
            "Venda a prazo cimento e ferragens", "Construtora Alfa", "1000.00", "30_60_90_dias"
        )
        print(f"Contas a receber: 2 avulsas e {len(parcelas)} parcelas.")

        resultado = SettlementService(db).settle(
            [SettlementItem(parcelas[0].id, desconto="10.00"), SettlementItem(parcelas[1].id)],
            desconto_geral="5.00",
            forma_pagamento="Pix",
        )
        print(
            f"Baixa: {len(resultado.sucessos)} conta(s), total recebido "
            f"{format_currency(resultado.total_recebido)}."
        )

        fechada = caixa.close_register(sessao.id, esperado - Decimal("2.00"))
        print(
            f"Caixa fechado: diferença {format_currency(fechada.diferenca)} "
            f"({difference_label(fechada.diferenca)})."
        )

        inicio, fim = report_service.get_period("Mensal")
        resumo = report_service.sales_summary(db.query(Sale).all(), inicio, fim)
        print(
            f"Vendas no mês: {resumo['num_vendas']} venda(s), "
            f"{format_currency(resumo['total_vendido'])}, margem {resumo['margem']}%."
        )
        recebiveis = report_service.receivables_summary(
            db.query(AccountReceivable).all(), inicio, fim
        )
        print(
            f"A receber: {format_currency(recebiveis['total_pendente'])} "
            f"({format_currency(recebiveis['total_atrasado'])} atrasado)."
        )
        estoque_baixo = report_service.low_stock(db.query(Product).all())
        print(f"Produtos com estoque baixo: {len(estoque_baixo)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
