"""
Baixa de contas a receber (uma ou várias de uma vez).

Cada conta é gravada de forma independente: se uma falhar, as demais seguem
e o resultado lista quem foi baixado e quem falhou, com o motivo.

A gravação só acontece se a conta ainda estiver Pendente no momento do
UPDATE (``WHERE status = 'Pendente'``); dois operadores baixando a mesma
conta resultam em um sucesso e um InvalidState.

Desconto geral: por padrão é rateado entre as contas proporcionalmente ao
valor líquido de cada uma e somado ao desconto gravado. Com
RATEAR_DESCONTO_GERAL=false ele só reduz o total exibido ao operador e as
contas são gravadas apenas com o desconto individual.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from config.database import utcnow
from models.account_receivable import STATUS_PENDENTE, STATUS_RECEBIDO, AccountReceivable
from services.exceptions import (
    InvalidAmount,
    InvalidField,
    InvalidState,
    NotFound,
    PDVError,
    StoreFailure,
)
from services.validation import require_amount
from utils.formatters import format_currency, parse_date
from utils.logger import get_logger
from utils.money import from_cents, sum_cents, to_cents

logger = get_logger(__name__)

ZERO = Decimal("0.00")


@dataclass
class SettlementItem:
    receivable_id: int
    desconto: object = ZERO
    acrescimo: object = ZERO


@dataclass(frozen=True)
class SettlementTotals:
    total_original: Decimal
    total_descontos: Decimal
    total_acrescimos: Decimal
    desconto_geral: Decimal
    total_final: Decimal


@dataclass
class SettlementFailure:
    receivable_id: Optional[int]
    erro: PDVError

    @property
    def motivo(self) -> str:
        return self.erro.message


@dataclass
class SettlementResult:
    sucessos: List[AccountReceivable] = field(default_factory=list)
    falhas: List[SettlementFailure] = field(default_factory=list)
    totais: Optional[SettlementTotals] = None
    desconto_geral_nao_aplicado: Decimal = ZERO

    @property
    def ok(self) -> bool:
        return not self.falhas

    @property
    def total_recebido(self) -> Decimal:
        return from_cents(sum_cents(conta.valor for conta in self.sucessos))


@dataclass
class _Plano:
    conta: AccountReceivable
    valor_original: Decimal
    desconto: Decimal
    acrescimo: Decimal
    parcela_geral: Decimal = ZERO

    @property
    def desconto_total(self) -> Decimal:
        return self.desconto + self.parcela_geral

    @property
    def valor_liquido(self) -> Decimal:
        return max(ZERO, self.valor_original - self.desconto_total + self.acrescimo)


def calculate_settlement_totals(
    valores: Iterable,
    descontos: Iterable,
    desconto_geral=0,
    acrescimos: Iterable = (),
) -> SettlementTotals:
    """
    Totais exibidos ao operador antes de confirmar a baixa.
    total_final = max(0, original - descontos + acréscimos - desconto geral)
    """
    original = sum_cents(valores)
    descontos_c = sum_cents(descontos)
    acrescimos_c = sum_cents(acrescimos)
    geral = to_cents(desconto_geral)
    final = max(0, original - descontos_c + acrescimos_c - geral)
    return SettlementTotals(
        total_original=from_cents(original),
        total_descontos=from_cents(descontos_c),
        total_acrescimos=from_cents(acrescimos_c),
        desconto_geral=from_cents(geral),
        total_final=from_cents(final),
    )


def distribute_discount(desconto_geral, bases: Sequence) -> List[Decimal]:
    """
    Rateia o desconto geral proporcionalmente às bases, em centavos, pelo
    método do maior resto. A soma das parcelas é o desconto (limitado à soma
    das bases) e nenhuma parcela passa da sua base.
    """
    bases_c = [max(0, to_cents(b)) for b in bases]
    total = sum(bases_c)
    geral = min(to_cents(desconto_geral), total)
    if geral <= 0:
        return [ZERO for _ in bases_c]

    parcelas = [geral * b // total for b in bases_c]
    sobra = geral - sum(parcelas)
    por_resto = sorted(
        range(len(bases_c)),
        key=lambda i: (geral * bases_c[i]) % total,
        reverse=True,
    )
    for i in por_resto[:sobra]:
        parcelas[i] += 1
    return [from_cents(p) for p in parcelas]


class SettlementService:
    """
    Motor de baixa de contas a receber.
    """

    def __init__(self, db: Session):
        self.db = db

    def preview(self, itens: Iterable, desconto_geral=0) -> SettlementTotals:
        """
        Calcula os totais da baixa sem gravar nada.
        """
        geral = require_amount(
            desconto_geral, "desconto geral", allow_zero=True, entidade="baixa"
        )
        valores, descontos, acrescimos = [], [], []
        for item in (self._as_item(i) for i in itens):
            conta = self._get(item.receivable_id)
            valores.append(conta.valor)
            descontos.append(
                require_amount(item.desconto or 0, "desconto", allow_zero=True)
            )
            acrescimos.append(
                require_amount(item.acrescimo or 0, "acréscimo", allow_zero=True)
            )
        return calculate_settlement_totals(valores, descontos, geral, acrescimos)

    def settle(
        self,
        itens: Iterable,
        desconto_geral=0,
        forma_pagamento: str = "Dinheiro",
        data_pagamento=None,
        ratear_desconto_geral: Optional[bool] = None,
    ) -> SettlementResult:
        """
        Desconto geral e data de pagamento são validados antes de gravar
        qualquer conta. Os totais do resultado contam só as contas baixadas.
        """
        geral = require_amount(
            desconto_geral, "desconto geral", allow_zero=True, entidade="baixa"
        )
        data_pagamento = self._payment_date(data_pagamento)
        if ratear_desconto_geral is None:
            ratear_desconto_geral = settings.RATEAR_DESCONTO_GERAL
        ratear = bool(ratear_desconto_geral) and geral > 0

        resultado = SettlementResult()
        planos: List[_Plano] = []
        vistos = set()
        for bruto in itens:
            item = None
            try:
                item = self._as_item(bruto)
                planos.append(self._plan(item, vistos))
            except PDVError as exc:
                rid = item.receivable_id if item is not None else exc.entidade_id
                self._register_failure(resultado, rid, exc)

        if ratear and planos:
            parcelas = distribute_discount(geral, [p.valor_liquido for p in planos])
            for plano, parcela in zip(planos, parcelas):
                plano.parcela_geral = parcela

        baixados: List[_Plano] = []
        for plano in planos:
            try:
                resultado.sucessos.append(
                    self._apply(plano, forma_pagamento, data_pagamento)
                )
                baixados.append(plano)
            except PDVError as exc:
                self._register_failure(resultado, plano.conta.id, exc)

        if ratear:
            aplicado = from_cents(sum_cents(p.parcela_geral for p in baixados))
            resultado.desconto_geral_nao_aplicado = geral - aplicado
        else:
            aplicado = geral
        resultado.totais = calculate_settlement_totals(
            [p.valor_original for p in baixados],
            [p.desconto for p in baixados],
            aplicado,
            [p.acrescimo for p in baixados],
        )

        logger.info(
            "Baixa: %s conta(s) recebida(s), %s falha(s), total recebido %s (%s)",
            len(resultado.sucessos),
            len(resultado.falhas),
            format_currency(resultado.total_recebido),
            forma_pagamento,
        )
        if resultado.desconto_geral_nao_aplicado:
            logger.warning(
                "Baixa: %s do desconto geral não foi aplicado",
                format_currency(resultado.desconto_geral_nao_aplicado),
            )
        return resultado

    def settle_one(
        self,
        receivable_id: int,
        desconto=0,
        acrescimo=0,
        forma_pagamento: str = "Dinheiro",
        data_pagamento=None,
    ) -> AccountReceivable:
        """
        Baixa uma única conta; levanta o erro em vez de devolvê-lo no resultado.
        """
        resultado = self.settle(
            [SettlementItem(receivable_id, desconto, acrescimo)],
            forma_pagamento=forma_pagamento,
            data_pagamento=data_pagamento,
            ratear_desconto_geral=False,
        )
        if resultado.falhas:
            raise resultado.falhas[0].erro
        return resultado.sucessos[0]

    # ----- Internos -----

    @staticmethod
    def _as_item(item) -> SettlementItem:
        try:
            if isinstance(item, SettlementItem):
                return item
            if isinstance(item, dict):
                dados = dict(item)
                dados["receivable_id"] = int(dados["receivable_id"])
                return SettlementItem(**dados)
            return SettlementItem(receivable_id=int(item))
        except (KeyError, TypeError, ValueError) as exc:
            rid = item.get("receivable_id") if isinstance(item, dict) else None
            raise InvalidField(
                f"Item de baixa inválido: {item!r}.",
                entidade="conta_receber",
                entidade_id=rid if isinstance(rid, int) else None,
            ) from exc

    @staticmethod
    def _payment_date(valor) -> date:
        if not valor:
            return date.today()
        try:
            return parse_date(valor)
        except ValueError as exc:
            raise InvalidField(
                f"Data de pagamento inválida: {valor!r}.", entidade="baixa"
            ) from exc

    def _get(self, receivable_id: int) -> AccountReceivable:
        conta = self.db.get(AccountReceivable, receivable_id)
        if conta is None:
            raise NotFound(
                f"Conta a receber #{receivable_id} não encontrada.",
                entidade="conta_receber",
                entidade_id=receivable_id,
            )
        return conta

    def _plan(self, item: SettlementItem, vistos: set) -> _Plano:
        rid = item.receivable_id
        if rid in vistos:
            raise InvalidState(
                f"Conta a receber #{rid} aparece mais de uma vez na mesma baixa.",
                entidade="conta_receber",
                entidade_id=rid,
            )
        vistos.add(rid)

        conta = self._get(rid)
        if conta.status != STATUS_PENDENTE:
            raise InvalidState(
                f"Conta a receber #{rid} já está {conta.status}; baixa recusada.",
                entidade="conta_receber",
                entidade_id=rid,
            )
        desconto = require_amount(
            item.desconto or 0,
            "desconto",
            allow_zero=True,
            entidade="conta_receber",
            entidade_id=rid,
        )
        acrescimo = require_amount(
            item.acrescimo or 0,
            "acréscimo",
            allow_zero=True,
            entidade="conta_receber",
            entidade_id=rid,
        )
        if desconto > conta.valor:
            raise InvalidAmount(
                f"Desconto de {format_currency(desconto)} maior que o valor da conta "
                f"#{rid} ({format_currency(conta.valor)}).",
                entidade="conta_receber",
                entidade_id=rid,
            )
        return _Plano(
            conta=conta,
            valor_original=conta.valor,
            desconto=desconto,
            acrescimo=acrescimo,
        )

    def _apply(
        self, plano: _Plano, forma_pagamento: str, data_pagamento: date
    ) -> AccountReceivable:
        rid = plano.conta.id
        try:
            alterados = (
                self.db.query(AccountReceivable)
                .filter(
                    AccountReceivable.id == rid,
                    AccountReceivable.status == STATUS_PENDENTE,
                )
                .update(
                    {
                        AccountReceivable.status: STATUS_RECEBIDO,
                        AccountReceivable.valor_original: plano.valor_original,
                        AccountReceivable.desconto: plano.desconto_total,
                        AccountReceivable.acrescimo: plano.acrescimo,
                        AccountReceivable.valor: plano.valor_liquido,
                        AccountReceivable.data_pagamento: data_pagamento,
                        AccountReceivable.forma_pagamento: forma_pagamento,
                        AccountReceivable.updated_at: utcnow(),
                    },
                    synchronize_session=False,
                )
            )
            if alterados == 0:
                self.db.rollback()
                raise InvalidState(
                    f"Conta a receber #{rid} foi baixada por outra operação.",
                    entidade="conta_receber",
                    entidade_id=rid,
                )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreFailure(
                f"Falha ao gravar a baixa da conta a receber #{rid}: {exc}",
                entidade="conta_receber",
                entidade_id=rid,
            ) from exc

        self.db.refresh(plano.conta)
        return plano.conta

    @staticmethod
    def _register_failure(
        resultado: SettlementResult, receivable_id: Optional[int], exc: PDVError
    ):
        logger.warning("Baixa da conta #%s recusada: %s", receivable_id, exc.message)
        resultado.falhas.append(SettlementFailure(receivable_id, exc))
