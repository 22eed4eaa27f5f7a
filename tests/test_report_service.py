from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from models.account_receivable import AccountReceivable
from models.product import Product
from models.sale import Sale, SaleItem
from services import report_service
from services.cash_service import CashService

HOJE = date(2025, 3, 12)


@pytest.mark.parametrize(
    "tipo, esperado",
    [
        ("Diário", (date(2025, 3, 12), date(2025, 3, 12))),
        ("Semanal", (date(2025, 3, 6), date(2025, 3, 12))),
        ("Mensal", (date(2025, 3, 1), date(2025, 3, 12))),
        ("Mês anterior", (date(2025, 2, 1), date(2025, 2, 28))),
        ("Geral", (date(2000, 1, 1), date(2025, 3, 12))),
    ],
)
def test_get_period(tipo, esperado):
    assert report_service.get_period(tipo, hoje=HOJE) == esperado


def test_previous_month_across_year():
    assert report_service.get_period("Mês anterior", hoje=date(2025, 1, 20)) == (
        date(2024, 12, 1),
        date(2024, 12, 31),
    )


def _sale(data_venda, total, lucro, forma="Dinheiro", cliente=None, status="concluida", pecas=1):
    return Sale(
        data_venda=data_venda,
        total_vendido=Decimal(total),
        total_lucro=Decimal(lucro),
        total_pecas=pecas,
        forma_pagamento=forma,
        cliente=cliente,
        status=status,
    )


VENDAS = [
    _sale(date(2025, 3, 10), "100.00", "30.00", "Pix", "Maria", pecas=2),
    _sale(date(2025, 3, 11), "50.00", "10.00", "Dinheiro", None, pecas=3),
    _sale(date(2025, 3, 11), "25.50", "5.50", "Pix", "Maria", pecas=1),
    _sale(date(2025, 3, 11), "999.00", "500.00", "Pix", "Maria", status="cancelada"),
    _sale(date(2025, 2, 27), "70.00", "20.00", "Dinheiro", "José"),
]


def test_sales_summary_excludes_cancelled_and_other_periods():
    resumo = report_service.sales_summary(VENDAS, date(2025, 3, 1), HOJE)

    assert resumo["num_vendas"] == 3
    assert resumo["total_vendido"] == Decimal("175.50")
    assert resumo["total_lucro"] == Decimal("45.50")
    assert resumo["total_pecas"] == 6
    assert resumo["ticket_medio"] == Decimal("58.50")
    assert resumo["margem"] == Decimal("25.93")


def test_sales_summary_empty_period():
    resumo = report_service.sales_summary(VENDAS, date(2024, 1, 1), date(2024, 1, 31))
    assert resumo["num_vendas"] == 0
    assert resumo["ticket_medio"] == Decimal("0.00")
    assert resumo["margem"] == Decimal("0.00")


def test_sales_by_payment_method():
    df = report_service.sales_by_payment_method(VENDAS, date(2025, 3, 1), HOJE)

    assert list(df["forma_pagamento"]) == ["Pix", "Dinheiro"]
    assert list(df["num_vendas"]) == [2, 1]
    assert list(df["total"]) == [Decimal("125.50"), Decimal("50.00")]


def test_sales_by_customer_groups_walk_in_customers():
    df = report_service.sales_by_customer(VENDAS)

    linhas = {r.cliente: (r.num_vendas, r.total, r.lucro) for r in df.itertuples()}
    assert linhas == {
        "Maria": (2, Decimal("125.50"), Decimal("35.50")),
        "José": (1, Decimal("70.00"), Decimal("20.00")),
        "Consumidor Final": (1, Decimal("50.00"), Decimal("10.00")),
    }
    assert df.iloc[0]["cliente"] == "Maria"


def _items():
    cimento = Product(codigo="CIM001", nome="Cimento", categoria="Cimento e Argamassa")
    tijolo = Product(codigo="TIJ001", nome="Tijolo", categoria=None)
    marco = _sale(date(2025, 3, 10), "0", "0")
    cancelada = _sale(date(2025, 3, 10), "0", "0", status="cancelada")

    def item(venda, produto, qtd, subtotal, lucro):
        return SaleItem(
            sale=venda, product=produto, quantidade=qtd,
            subtotal=Decimal(subtotal), lucro_item=Decimal(lucro),
        )

    return [
        item(marco, cimento, 10, "389.00", "104.00"),
        item(marco, tijolo, 500, "550.00", "225.00"),
        item(marco, cimento, 2, "77.80", "20.80"),
        item(cancelada, cimento, 100, "3890.00", "1040.00"),
    ]


def test_top_products_by_quantity():
    df = report_service.top_products(_items(), date(2025, 3, 1), HOJE, limite=5)

    assert list(df["codigo"]) == ["TIJ001", "CIM001"]
    assert list(df["quantidade"]) == [500, 12]
    assert df.iloc[1]["total"] == Decimal("466.80")
    assert df.iloc[1]["lucro"] == Decimal("124.80")


def test_sales_by_category():
    df = report_service.sales_by_category(_items(), date(2025, 3, 1), HOJE)

    linhas = {r.categoria: (r.num_itens, r.total) for r in df.itertuples()}
    assert linhas == {
        "Sem categoria": (1, Decimal("550.00")),
        "Cimento e Argamassa": (2, Decimal("466.80")),
    }


def test_empty_reports_keep_columns():
    assert list(report_service.top_products([]).columns) == ["codigo", "nome", "quantidade", "total", "lucro"]
    df = report_service.sales_by_payment_method([], HOJE, HOJE)
    assert df.empty
    assert list(df.columns) == ["forma_pagamento", "num_vendas", "total"]


def test_inventory_value_and_low_stock():
    produtos = [
        Product(codigo="A", nome="Areia", preco_custo=Decimal("90.00"), preco_venda=Decimal("135.00"),
                estoque_atual=1.5, estoque_minimo=5, ativo=True),
        Product(codigo="B", nome="Brita", preco_custo=Decimal("95.00"), preco_venda=Decimal("145.00"),
                estoque_atual=10, estoque_minimo=5, ativo=True),
        Product(codigo="C", nome="Inativo", preco_custo=Decimal("1.00"), preco_venda=Decimal("2.00"),
                estoque_atual=0, estoque_minimo=10, ativo=False),
        Product(codigo="D", nome="Sem mínimo", preco_custo=Decimal("1.00"), preco_venda=Decimal("2.00"),
                estoque_atual=0, estoque_minimo=None, ativo=True),
    ]

    valor = report_service.inventory_value(produtos)
    assert valor == {"custo": Decimal("1085.00"), "venda": Decimal("1652.50")}

    baixo = report_service.low_stock(produtos)
    assert list(baixo["codigo"]) == ["A"]


def test_receivables_summary_and_by_customer():
    def conta(cliente, valor, vencimento, status="Pendente", pagamento=None, desconto=None):
        return AccountReceivable(
            cliente=cliente, descricao="x", valor=Decimal(valor), data_vencimento=vencimento,
            status=status, data_pagamento=pagamento,
            desconto=Decimal(desconto) if desconto else None,
        )

    contas = [
        conta("Maria", "100.00", date(2025, 3, 1)),
        conta("Maria", "50.00", date(2025, 4, 1)),
        conta("José", "80.00", date(2025, 2, 1)),
        conta("José", "90.00", date(2025, 1, 1), "Recebido", date(2025, 3, 5), "10.00"),
        conta("Ana", "40.00", date(2025, 1, 1), "Recebido", date(2025, 1, 5)),
    ]

    resumo = report_service.receivables_summary(contas, date(2025, 3, 1), HOJE, hoje=HOJE)
    assert resumo["total_pendente"] == Decimal("230.00")
    assert resumo["qtd_pendente"] == 3
    assert resumo["total_atrasado"] == Decimal("180.00")
    assert resumo["qtd_atrasado"] == 2
    assert resumo["total_recebido"] == Decimal("90.00")
    assert resumo["qtd_recebido"] == 1
    assert resumo["total_descontos"] == Decimal("10.00")

    df = report_service.receivables_by_customer(contas, hoje=HOJE)
    linhas = {r.cliente: (r.qtd_contas, r.total_pendente, r.total_atrasado) for r in df.itertuples()}
    assert linhas == {
        "Maria": (2, Decimal("150.00"), Decimal("100.00")),
        "José": (1, Decimal("80.00"), Decimal("80.00")),
    }


def _movimento(tipo, valor, forma, dia, created_at):
    return SimpleNamespace(
        tipo=tipo,
        valor=Decimal(valor),
        forma_pagamento=forma,
        created_at=created_at,
        cash_session=SimpleNamespace(data=dia),
    )


def test_movements_by_payment_method():
    ontem = date(2025, 3, 11)
    movimentos = [
        _movimento("venda", "10.00", "Pix", HOJE, datetime(2025, 3, 12, 13, 0)),
        _movimento("venda", "5.00", None, HOJE, datetime(2025, 3, 12, 14, 0)),
        _movimento("venda", "2.50", "Pix", HOJE, datetime(2025, 3, 12, 15, 0)),
        _movimento("sangria", "7.00", "Pix", HOJE, datetime(2025, 3, 12, 16, 0)),
        _movimento("venda", "99.00", "Pix", ontem, datetime(2025, 3, 11, 12, 0)),
    ]

    df = report_service.movements_by_payment_method(movimentos, HOJE, HOJE)

    assert list(df["forma_pagamento"]) == ["Pix", "Não informado"]
    assert list(df["quantidade"]) == [2, 1]
    assert list(df["total"]) == [Decimal("12.50"), Decimal("5.00")]


def test_movements_late_sale_counts_on_register_day():
    # 21:30 em Brasília já é 00:30 do dia seguinte em UTC
    ontem = date(2025, 3, 11)
    movimentos = [
        _movimento("venda", "80.00", "Dinheiro", ontem, datetime(2025, 3, 12, 0, 30)),
        _movimento("venda", "20.00", "Dinheiro", HOJE, datetime(2025, 3, 12, 13, 0)),
    ]

    df_ontem = report_service.movements_by_payment_method(movimentos, ontem, ontem)
    df_hoje = report_service.movements_by_payment_method(movimentos, HOJE, HOJE)

    assert list(df_ontem["total"]) == [Decimal("80.00")]
    assert list(df_hoje["total"]) == [Decimal("20.00")]


def test_cash_session_report_from_stored_sessions(db):
    service = CashService(db)
    aberta = service.open_register("100.00", operador="ana", caixa="a")
    service.record_movement(aberta.id, "venda", "40.00")
    fechada = service.open_register("50.00", operador="bia", caixa="b")
    service.record_movement(fechada.id, "sangria", "20.00")
    service.close_register(fechada.id, "31.00")

    sessoes = service.list_sessions()
    movimentos = [m for s in sessoes for m in service.list_movements(s.id)]
    linhas = report_service.cash_session_report(sessoes, movimentos)

    por_caixa = {l["caixa"]: l for l in linhas}
    assert por_caixa["a"]["esperado"] == Decimal("140.00")
    assert por_caixa["a"]["situacao"] == "Aberto"
    assert por_caixa["a"]["diferenca"] is None
    assert por_caixa["b"]["esperado"] == Decimal("30.00")
    assert por_caixa["b"]["sangrias"] == Decimal("20.00")
    assert por_caixa["b"]["diferenca"] == Decimal("1.00")
    assert por_caixa["b"]["situacao"] == "Sobra"
