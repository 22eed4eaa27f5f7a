"""
Relatórios do PDV.

Funções puras sobre linhas já carregadas do banco (sessões de caixa,
movimentações, vendas, itens, produtos e contas a receber): filtra pelo
período, agrupa, soma e devolve. Nada é gravado nem guardado entre chamadas.

Os agrupamentos são feitos pelo pandas sobre centavos inteiros; os valores
voltam como Decimal.
"""
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from dateutil.relativedelta import relativedelta

from models.account_receivable import STATUS_PENDENTE, STATUS_RECEBIDO
from models.cash_movement import TIPO_VENDA
from models.cash_session import STATUS_FECHADA
from models.sale import STATUS_CANCELADA
from services.cash_service import calculate_totals
from utils.formatters import difference_label
from utils.money import from_cents, to_cents, to_decimal

PERIODOS = ("Diário", "Semanal", "Mensal", "Mês anterior", "Geral")

SEM_FORMA = "Não informado"
CONSUMIDOR_FINAL = "Consumidor Final"
SEM_CATEGORIA = "Sem categoria"


def get_period(tipo: str, hoje: Optional[date] = None) -> Tuple[date, date]:
    """
    Intervalo (início, fim) do período escolhido no filtro.
    Diário = hoje; Semanal = últimos 7 dias; Mensal = mês atual;
    Mês anterior = mês passado inteiro; Geral = tudo.
    """
    hoje = hoje or date.today()
    if tipo == "Diário":
        return hoje, hoje
    if tipo == "Semanal":
        return hoje - timedelta(days=6), hoje
    if tipo == "Mensal":
        return hoje.replace(day=1), hoje
    if tipo == "Mês anterior":
        inicio = hoje.replace(day=1) - relativedelta(months=1)
        return inicio, inicio + relativedelta(months=1, days=-1)
    # Geral - usa um intervalo grande
    return date(2000, 1, 1), hoje


def _as_date(valor) -> Optional[date]:
    if valor is None:
        return None
    if isinstance(valor, datetime):
        return valor.date()
    return valor


def _in_period(valor, inicio: Optional[date], fim: Optional[date]) -> bool:
    d = _as_date(valor)
    if d is None:
        return False
    if inicio and d < inicio:
        return False
    if fim and d > fim:
        return False
    return True


def _group_cents(
    linhas: List[dict], chave: str, colunas: Dict[str, str], contagem: str
) -> pd.DataFrame:
    """
    Agrupa linhas por `chave`, contando-as em `contagem` e somando as colunas
    em centavos. `colunas` mapeia coluna de centavos -> coluna de saída em
    Decimal. Ordena pela primeira coluna somada, maior primeiro.
    """
    saida = [chave, contagem] + list(colunas.values())
    if not linhas:
        return pd.DataFrame(columns=saida)

    df = pd.DataFrame(linhas).assign(_linhas=1)
    agregacoes = {contagem: ("_linhas", "sum")}
    agregacoes.update({c: (c, "sum") for c in colunas})
    agrupado = df.groupby(chave, as_index=False).agg(**agregacoes)

    ordem = next(iter(colunas))
    agrupado = agrupado.sort_values([ordem, chave], ascending=[False, True])
    for centavos, nome in colunas.items():
        agrupado[nome] = agrupado[centavos].map(from_cents)
    return agrupado[saida].reset_index(drop=True)


def _percent(parte: int, todo: int) -> Decimal:
    if not todo:
        return Decimal("0.00")
    return (Decimal(parte) * 100 / Decimal(todo)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


# ----- Caixa -----


def cash_session_report(
    sessoes: Iterable,
    movimentos: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
) -> List[dict]:
    """
    Uma linha por sessão de caixa do período, com os totais recalculados das
    movimentações. Para sessões fechadas, esperado/contado/diferença são os
    valores congelados no fechamento.
    """
    por_sessao: Dict[int, list] = {}
    for movimento in movimentos:
        por_sessao.setdefault(movimento.cash_session_id, []).append(movimento)

    linhas = []
    for sessao in sessoes:
        if not _in_period(sessao.data, inicio, fim):
            continue
        totais = calculate_totals(sessao.valor_abertura, por_sessao.get(sessao.id, []))
        fechada = sessao.status == STATUS_FECHADA
        linhas.append(
            {
                "id": sessao.id,
                "caixa": sessao.caixa,
                "data": sessao.data,
                "status": sessao.status,
                "operador": sessao.operador,
                "abertura": totais.abertura,
                "vendas": totais.vendas,
                "sangrias": totais.sangrias,
                "suprimentos": totais.suprimentos,
                "esperado": sessao.valor_esperado if fechada else totais.esperado,
                "contado": sessao.valor_fechamento if fechada else None,
                "diferenca": sessao.diferenca if fechada else None,
                "situacao": difference_label(sessao.diferenca) if fechada else "Aberto",
            }
        )
    return sorted(linhas, key=lambda l: (l["data"], l["id"]))


def movements_by_payment_method(
    movimentos: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
) -> pd.DataFrame:
    """
    Vendas lançadas no caixa, por forma de pagamento.
    O dia de cada venda é o dia do caixa (`data` da sessão), não o horário
    UTC do lançamento, como em cash_session_report.
    """
    linhas = [
        {
            "forma_pagamento": m.forma_pagamento or SEM_FORMA,
            "centavos": to_cents(m.valor),
        }
        for m in movimentos
        if m.tipo == TIPO_VENDA and _in_period(m.cash_session.data, inicio, fim)
    ]
    return _group_cents(linhas, "forma_pagamento", {"centavos": "total"}, "quantidade")


# ----- Vendas -----


def _valid_sales(vendas: Iterable, inicio, fim) -> list:
    return [
        v
        for v in vendas
        if v.status != STATUS_CANCELADA and _in_period(v.data_venda, inicio, fim)
    ]


def sales_summary(
    vendas: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
) -> dict:
    """
    Resumo do período: total vendido, lucro, margem (%), peças, nº de vendas
    e ticket médio. Vendas canceladas ficam de fora.
    """
    validas = _valid_sales(vendas, inicio, fim)
    vendido = sum(to_cents(v.total_vendido or 0) for v in validas)
    lucro = sum(to_cents(v.total_lucro or 0) for v in validas)
    pecas = sum(v.total_pecas or 0 for v in validas)
    quantidade = len(validas)
    ticket = (
        (Decimal(vendido) / quantidade).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        if quantidade
        else 0
    )
    return {
        "total_vendido": from_cents(vendido),
        "total_lucro": from_cents(lucro),
        "margem": _percent(lucro, vendido),
        "total_pecas": pecas,
        "num_vendas": quantidade,
        "ticket_medio": from_cents(ticket),
    }


def sales_by_payment_method(
    vendas: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
) -> pd.DataFrame:
    linhas = [
        {
            "forma_pagamento": v.forma_pagamento or SEM_FORMA,
            "centavos": to_cents(v.total_vendido or 0),
        }
        for v in _valid_sales(vendas, inicio, fim)
    ]
    return _group_cents(linhas, "forma_pagamento", {"centavos": "total"}, "num_vendas")


def sales_by_customer(
    vendas: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
) -> pd.DataFrame:
    linhas = [
        {
            "cliente": (v.cliente or "").strip() or CONSUMIDOR_FINAL,
            "centavos": to_cents(v.total_vendido or 0),
            "lucro_centavos": to_cents(v.total_lucro or 0),
        }
        for v in _valid_sales(vendas, inicio, fim)
    ]
    return _group_cents(
        linhas,
        "cliente",
        {"centavos": "total", "lucro_centavos": "lucro"},
        "num_vendas",
    )


def _item_rows(itens: Iterable, inicio, fim) -> List[dict]:
    linhas = []
    for item in itens:
        venda = item.sale
        if venda.status == STATUS_CANCELADA or not _in_period(venda.data_venda, inicio, fim):
            continue
        produto = item.product
        linhas.append(
            {
                "codigo": produto.codigo,
                "nome": produto.nome,
                "categoria": produto.categoria or SEM_CATEGORIA,
                "quantidade": item.quantidade or 0,
                "centavos": to_cents(item.subtotal or 0),
                "lucro_centavos": to_cents(item.lucro_item or 0),
            }
        )
    return linhas


def top_products(
    itens: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
    limite: int = 10,
) -> pd.DataFrame:
    """
    Produtos mais vendidos (por quantidade) no período.
    """
    colunas = ["codigo", "nome", "quantidade", "total", "lucro"]
    linhas = _item_rows(itens, inicio, fim)
    if not linhas:
        return pd.DataFrame(columns=colunas)

    df = (
        pd.DataFrame(linhas)
        .groupby(["codigo", "nome"], as_index=False)
        .agg(
            quantidade=("quantidade", "sum"),
            centavos=("centavos", "sum"),
            lucro_centavos=("lucro_centavos", "sum"),
        )
        .sort_values(["quantidade", "centavos", "codigo"], ascending=[False, False, True])
        .head(limite)
    )
    df["total"] = df["centavos"].map(from_cents)
    df["lucro"] = df["lucro_centavos"].map(from_cents)
    return df[colunas].reset_index(drop=True)


def sales_by_category(
    itens: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
) -> pd.DataFrame:
    return _group_cents(
        _item_rows(itens, inicio, fim),
        "categoria",
        {"centavos": "total", "lucro_centavos": "lucro"},
        "num_itens",
    )


# ----- Estoque -----


def _stock_value(preco, estoque) -> int:
    valor = to_decimal(preco or 0) * Decimal(str(estoque or 0)) * 100
    return int(valor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def inventory_value(produtos: Iterable) -> dict:
    """
    Valor do estoque atual a preço de custo e a preço de venda.
    """
    custo = venda = 0
    for produto in produtos:
        if not produto.ativo:
            continue
        custo += _stock_value(produto.preco_custo, produto.estoque_atual)
        venda += _stock_value(produto.preco_venda, produto.estoque_atual)
    return {"custo": from_cents(custo), "venda": from_cents(venda)}


def low_stock(produtos: Iterable) -> pd.DataFrame:
    """Produtos ativos com estoque atual no mínimo ou abaixo dele."""
    colunas = ["codigo", "nome", "estoque_atual", "estoque_minimo"]
    linhas = [
        {c: getattr(p, c) for c in colunas}
        for p in produtos
        if p.ativo
        and p.estoque_minimo is not None
        and (p.estoque_atual or 0) <= p.estoque_minimo
    ]
    if not linhas:
        return pd.DataFrame(columns=colunas)
    return pd.DataFrame(linhas).sort_values(["estoque_atual", "codigo"]).reset_index(drop=True)


# ----- Contas a receber -----


def receivables_summary(
    recebiveis: Iterable,
    inicio: Optional[date] = None,
    fim: Optional[date] = None,
    hoje: Optional[date] = None,
) -> dict:
    """
    Totais de contas a receber. Pendentes e atrasadas são a posição de hoje;
    recebidas e descontos concedidos consideram a data de pagamento no período.
    """
    hoje = hoje or date.today()
    pendente = atrasado = recebido = descontos = 0
    qtd_pendente = qtd_atrasado = qtd_recebido = 0
    for conta in recebiveis:
        if conta.status == STATUS_PENDENTE:
            pendente += to_cents(conta.valor)
            qtd_pendente += 1
            if conta.is_overdue(hoje):
                atrasado += to_cents(conta.valor)
                qtd_atrasado += 1
        elif conta.status == STATUS_RECEBIDO and _in_period(conta.data_pagamento, inicio, fim):
            recebido += to_cents(conta.valor)
            descontos += to_cents(conta.desconto or 0)
            qtd_recebido += 1
    return {
        "total_pendente": from_cents(pendente),
        "qtd_pendente": qtd_pendente,
        "total_atrasado": from_cents(atrasado),
        "qtd_atrasado": qtd_atrasado,
        "total_recebido": from_cents(recebido),
        "qtd_recebido": qtd_recebido,
        "total_descontos": from_cents(descontos),
    }


def receivables_by_customer(recebiveis: Iterable, hoje: Optional[date] = None) -> pd.DataFrame:
    """Saldo pendente por cliente, com a parte atrasada."""
    hoje = hoje or date.today()
    linhas = [
        {
            "cliente": conta.cliente,
            "centavos": to_cents(conta.valor),
            "atrasado_centavos": to_cents(conta.valor) if conta.is_overdue(hoje) else 0,
        }
        for conta in recebiveis
        if conta.status == STATUS_PENDENTE
    ]
    return _group_cents(
        linhas,
        "cliente",
        {"centavos": "total_pendente", "atrasado_centavos": "total_atrasado"},
        "qtd_contas",
    )
