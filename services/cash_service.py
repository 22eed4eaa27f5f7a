"""
Serviço de caixa: abertura, movimentações (venda, sangria, suprimento) e fechamento.

O saldo esperado nunca é gravado enquanto o caixa está aberto; é sempre
recalculado das movimentações. No fechamento ele é congelado na sessão junto
com o valor contado e a diferença.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from config.database import utcnow
from models.cash_movement import (
    TIPO_ABERTURA,
    TIPO_FECHAMENTO,
    TIPO_SANGRIA,
    TIPO_SUPRIMENTO,
    TIPO_VENDA,
    TIPOS_AVULSOS,
    CashMovement,
)
from models.cash_session import STATUS_ABERTA, STATUS_FECHADA, CashSession
from services.exceptions import (
    Conflict,
    InvalidMovementKind,
    InvalidState,
    NotFound,
    StoreFailure,
)
from services.validation import require_amount
from utils.formatters import format_currency, format_date
from utils.logger import get_logger
from utils.money import from_cents, to_cents

logger = get_logger(__name__)

DESCRICOES_PADRAO = {
    TIPO_VENDA: "Venda",
    TIPO_SANGRIA: "Sangria",
    TIPO_SUPRIMENTO: "Suprimento",
}


@dataclass(frozen=True)
class CashTotals:
    abertura: Decimal
    vendas: Decimal
    sangrias: Decimal
    suprimentos: Decimal
    esperado: Decimal


def calculate_totals(valor_abertura, movimentos: Iterable[CashMovement]) -> CashTotals:
    """
    Saldo esperado = abertura + vendas + suprimentos - sangrias.

    Soma em centavos; a ordem dos lançamentos não altera o resultado.
    Os lançamentos de abertura e fechamento não entram nas somas: a
    abertura vem do valor da sessão.
    """
    centavos = {TIPO_VENDA: 0, TIPO_SANGRIA: 0, TIPO_SUPRIMENTO: 0}
    for movimento in movimentos:
        if movimento.tipo in centavos:
            centavos[movimento.tipo] += to_cents(movimento.valor)

    abertura = to_cents(valor_abertura or 0)
    esperado = (
        abertura
        + centavos[TIPO_VENDA]
        + centavos[TIPO_SUPRIMENTO]
        - centavos[TIPO_SANGRIA]
    )
    return CashTotals(
        abertura=from_cents(abertura),
        vendas=from_cents(centavos[TIPO_VENDA]),
        sangrias=from_cents(centavos[TIPO_SANGRIA]),
        suprimentos=from_cents(centavos[TIPO_SUPRIMENTO]),
        esperado=from_cents(esperado),
    )


class CashService:
    """
    Máquina de estados do caixa: sem sessão -> aberta -> fechada.
    A sessão é sempre identificada pelo id recebido do chamador.
    """

    def __init__(self, db: Session):
        self.db = db

    # ----- Consultas -----

    def get_session(self, sessao_id: int) -> CashSession:
        sessao = self.db.get(CashSession, sessao_id, populate_existing=True)
        if sessao is None:
            raise NotFound(
                f"Sessão de caixa #{sessao_id} não encontrada.",
                entidade="caixa",
                entidade_id=sessao_id,
            )
        return sessao

    def get_open_session(self, caixa: Optional[str] = None) -> Optional[CashSession]:
        caixa = caixa or settings.CAIXA_PADRAO
        return (
            self.db.query(CashSession)
            .filter(CashSession.caixa == caixa, CashSession.status == STATUS_ABERTA)
            .first()
        )

    def list_movements(self, sessao_id: int) -> List[CashMovement]:
        """Movimentações da sessão na ordem em que foram lançadas."""
        self.get_session(sessao_id)
        return (
            self.db.query(CashMovement)
            .filter(CashMovement.cash_session_id == sessao_id)
            .order_by(CashMovement.id)
            .all()
        )

    def list_sessions(
        self,
        inicio: Optional[date] = None,
        fim: Optional[date] = None,
        caixa: Optional[str] = None,
        limit: int = 50,
    ) -> List[CashSession]:
        query = self.db.query(CashSession)
        if inicio:
            query = query.filter(CashSession.data >= inicio)
        if fim:
            query = query.filter(CashSession.data <= fim)
        if caixa:
            query = query.filter(CashSession.caixa == caixa)
        return query.order_by(CashSession.id.desc()).limit(limit).all()

    def session_totals(self, sessao_id: int) -> CashTotals:
        sessao = self.get_session(sessao_id)
        return calculate_totals(sessao.valor_abertura, self.list_movements(sessao_id))

    def compute_expected_balance(self, sessao_id: int) -> Decimal:
        return self.session_totals(sessao_id).esperado

    # ----- Operações -----

    def open_register(
        self,
        valor_abertura,
        operador: str,
        caixa: Optional[str] = None,
        observacao: Optional[str] = None,
    ) -> CashSession:
        """
        Abre o caixa gravando a sessão e o lançamento de abertura na mesma
        transação: ou os dois ficam no banco, ou nenhum.
        """
        valor = require_amount(
            valor_abertura, "valor de abertura", allow_zero=True, entidade="caixa"
        )
        caixa = caixa or settings.CAIXA_PADRAO

        aberta = self.get_open_session(caixa)
        if aberta is not None:
            raise Conflict(
                f"Já existe um caixa aberto ({caixa}) desde "
                f"{format_date(aberta.data_abertura)} (sessão #{aberta.id}).",
                entidade="caixa",
                entidade_id=aberta.id,
            )

        sessao = CashSession(
            caixa=caixa,
            data=date.today(),
            status=STATUS_ABERTA,
            valor_abertura=valor,
            operador=operador,
            data_abertura=utcnow(),
            observacao=observacao or None,
        )
        try:
            self.db.add(sessao)
            self.db.flush()
            self._append_movement(sessao, TIPO_ABERTURA, valor, "Abertura de caixa")
            self.db.commit()
        except IntegrityError as exc:
            # Outro terminal abriu o mesmo caixa entre a verificação e a gravação
            self.db.rollback()
            logger.warning("Abertura recusada: caixa %s já aberto (%s)", caixa, exc)
            raise Conflict(
                f"Já existe um caixa aberto ({caixa}).", entidade="caixa"
            ) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Falha ao abrir o caixa %s: %s", caixa, exc)
            raise StoreFailure(
                f"Falha ao abrir o caixa {caixa}: {exc}", entidade="caixa"
            ) from exc

        self.db.refresh(sessao)
        logger.info(
            "Caixa %s aberto (sessão #%s) por %s com %s",
            caixa,
            sessao.id,
            operador,
            format_currency(valor),
        )
        return sessao

    def record_movement(
        self,
        sessao_id: int,
        tipo: str,
        valor,
        descricao: Optional[str] = None,
        forma_pagamento: Optional[str] = None,
    ) -> CashMovement:
        if tipo not in TIPOS_AVULSOS:
            raise InvalidMovementKind(
                f"Tipo de movimentação inválido: {tipo!r}. Use venda, sangria ou suprimento.",
                entidade="caixa",
                entidade_id=sessao_id,
            )
        valor = require_amount(valor, entidade="caixa", entidade_id=sessao_id)
        sessao = self.get_session(sessao_id)
        if sessao.status != STATUS_ABERTA:
            raise InvalidState(
                f"Caixa #{sessao_id} está fechado; não é possível lançar {tipo}.",
                entidade="caixa",
                entidade_id=sessao_id,
            )

        try:
            self._claim_open_session(sessao_id, f"lançar {tipo}")
            movimento = self._append_movement(
                sessao,
                tipo,
                valor,
                descricao or DESCRICOES_PADRAO[tipo],
                forma_pagamento,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Falha ao lançar %s no caixa #%s: %s", tipo, sessao_id, exc)
            raise StoreFailure(
                f"Falha ao lançar {tipo} no caixa #{sessao_id}: {exc}",
                entidade="caixa",
                entidade_id=sessao_id,
            ) from exc

        self.db.refresh(movimento)
        logger.info("Caixa #%s: %s de %s", sessao_id, tipo, format_currency(valor))
        return movimento

    def close_register(
        self,
        sessao_id: int,
        valor_contado,
        observacao: Optional[str] = None,
    ) -> CashSession:
        """
        Fecha o caixa com o valor contado pelo operador.
        diferença = contado - esperado (positiva = sobra, negativa = falta).
        """
        contado = require_amount(
            valor_contado,
            "valor contado",
            allow_zero=True,
            entidade="caixa",
            entidade_id=sessao_id,
        )
        sessao = self.get_session(sessao_id)
        if sessao.status != STATUS_ABERTA:
            raise InvalidState(
                f"Caixa #{sessao_id} já está fechado.",
                entidade="caixa",
                entidade_id=sessao_id,
            )

        try:
            # Totais lidos depois de travar a sessão
            self._claim_open_session(
                sessao_id,
                "fechar",
                {CashSession.status: STATUS_FECHADA, CashSession.data_fechamento: utcnow()},
            )
            movimentos = (
                self.db.query(CashMovement)
                .filter(CashMovement.cash_session_id == sessao_id)
                .all()
            )
            totais = calculate_totals(sessao.valor_abertura, movimentos)
            diferenca = contado - totais.esperado
            campos = {
                CashSession.valor_fechamento: contado,
                CashSession.valor_esperado: totais.esperado,
                CashSession.diferenca: diferenca,
            }
            if observacao:
                campos[CashSession.observacao] = observacao
            self.db.query(CashSession).filter(CashSession.id == sessao_id).update(
                campos, synchronize_session=False
            )
            self._append_movement(
                sessao,
                TIPO_FECHAMENTO,
                contado,
                f"Fechamento - Diferença: {format_currency(diferenca)}",
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Falha ao fechar o caixa #%s: %s", sessao_id, exc)
            raise StoreFailure(
                f"Falha ao fechar o caixa #{sessao_id}: {exc}",
                entidade="caixa",
                entidade_id=sessao_id,
            ) from exc

        self.db.refresh(sessao)
        logger.info(
            "Caixa #%s fechado: esperado %s, contado %s, diferença %s",
            sessao_id,
            format_currency(totais.esperado),
            format_currency(contado),
            format_currency(diferenca),
        )
        return sessao

    def _claim_open_session(
        self, sessao_id: int, acao: str, campos: Optional[dict] = None
    ) -> None:
        """
        UPDATE ... WHERE status = 'aberta' na transação corrente: trava a linha
        da sessão até o commit e recusa a operação se outro terminal já fechou.
        """
        alterados = (
            self.db.query(CashSession)
            .filter(CashSession.id == sessao_id, CashSession.status == STATUS_ABERTA)
            .update(campos or {CashSession.id: CashSession.id}, synchronize_session=False)
        )
        if alterados == 0:
            self.db.rollback()
            raise InvalidState(
                f"Caixa #{sessao_id} foi fechado por outra operação; não é possível {acao}.",
                entidade="caixa",
                entidade_id=sessao_id,
            )

    def _append_movement(
        self,
        sessao: CashSession,
        tipo: str,
        valor: Decimal,
        descricao: Optional[str] = None,
        forma_pagamento: Optional[str] = None,
    ) -> CashMovement:
        movimento = CashMovement(
            cash_session_id=sessao.id,
            tipo=tipo,
            valor=valor,
            descricao=descricao,
            forma_pagamento=forma_pagamento,
            created_at=utcnow(),
        )
        self.db.add(movimento)
        self.db.flush()
        return movimento
