"""
Cadastro de contas a receber: inclusão manual, importação de registros já
lidos de planilha, parcelamento de vendas a prazo, edição, exclusão e busca.
A baixa (Pendente -> Recebido) fica no serviço de baixa.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.database import utcnow
from models.account_receivable import (
    SITUACAO_ATRASADO,
    STATUS_PENDENTE,
    STATUS_RECEBIDO,
    AccountReceivable,
)
from services.exceptions import (
    InvalidField,
    InvalidState,
    NotFound,
    PDVError,
    StoreFailure,
)
from services.validation import require_amount
from utils.formatters import normalize_search, parse_date
from utils.logger import get_logger
from utils.money import from_cents, to_cents

logger = get_logger(__name__)

# Condição de pagamento -> (rótulo, dias após a data base) de cada parcela
CONDICOES_PAGAMENTO = {
    "a_vista": [("A Vista", 0)],
    "30_dias": [("30 Dias", 30)],
    "30_60_dias": [("30 Dias", 30), ("60 Dias", 60)],
    "30_60_90_dias": [("30 Dias", 30), ("60 Dias", 60), ("90 Dias", 90)],
    "30_60_90_120_dias": [
        ("30 Dias", 30),
        ("60 Dias", 60),
        ("90 Dias", 90),
        ("120 Dias", 120),
    ],
    "30_60_90_120_150_dias": [
        ("30 Dias", 30),
        ("60 Dias", 60),
        ("90 Dias", 90),
        ("120 Dias", 120),
        ("150 Dias", 150),
    ],
    "entrada_30_60": [("Entrada", 0), ("30 Dias", 30), ("60 Dias", 60)],
}

# Nomes de coluna aceitos na importação
ALIASES_IMPORTACAO = {
    "descricao": ("descrição", "descricao", "description"),
    "cliente": ("cliente", "customer"),
    "valor": ("valor", "value"),
    "data_vencimento": ("vencimento", "data_vencimento", "data", "date", "duedate"),
    "observacao": ("observação", "observacao", "obs"),
}

CAMPOS_EDITAVEIS = ("descricao", "cliente", "valor", "data_vencimento", "observacao")


@dataclass(frozen=True)
class Installment:
    numero: int
    valor: Decimal
    rotulo: str
    dias: int


@dataclass
class ImportRejection:
    linha: int
    motivo: str


@dataclass
class ImportResult:
    criadas: List[AccountReceivable] = field(default_factory=list)
    rejeitadas: List[ImportRejection] = field(default_factory=list)


def calculate_installments(total, condicao: str) -> List[Installment]:
    """
    Divide o total nas parcelas da condição de pagamento.
    Cada parcela recebe o valor truncado em centavos; a diferença vai para a última.
    Condição desconhecida é tratada como à vista.
    """
    prazos = CONDICOES_PAGAMENTO.get(condicao, CONDICOES_PAGAMENTO["a_vista"])
    total_c = to_cents(require_amount(total, "total"))
    quantidade = len(prazos)
    base = total_c // quantidade
    resto = total_c - base * quantidade

    parcelas = []
    for i, (rotulo, dias) in enumerate(prazos):
        valor = base + resto if i == quantidade - 1 else base
        parcelas.append(
            Installment(numero=i + 1, valor=from_cents(valor), rotulo=rotulo, dias=dias)
        )
    return parcelas


def normalize_import_row(registro: dict) -> dict:
    """
    Mapeia um registro importado (chaves em português ou inglês, qualquer
    caixa) para os campos da conta a receber.
    """
    normalizado = {
        str(chave).strip().lower(): valor
        for chave, valor in registro.items()
        if valor not in (None, "")
    }
    status = str(normalizado.get("status", STATUS_PENDENTE)).strip().capitalize()
    if status == STATUS_RECEBIDO:
        raise InvalidState(
            "Conta importada como Recebido; importe como Pendente e faça a baixa.",
            entidade="conta_receber",
        )

    dados = {}
    for campo, aliases in ALIASES_IMPORTACAO.items():
        for alias in aliases:
            if alias in normalizado:
                dados[campo] = normalizado[alias]
                break
    dados.setdefault("descricao", "Importado")
    return dados


class ReceivableService:
    """
    Contas a receber enquanto Pendentes: incluir, alterar, excluir e consultar.
    """

    def __init__(self, db: Session):
        self.db = db

    # ----- Consultas -----

    def get(self, receivable_id: int) -> AccountReceivable:
        conta = self.db.get(AccountReceivable, receivable_id)
        if conta is None:
            raise NotFound(
                f"Conta a receber #{receivable_id} não encontrada.",
                entidade="conta_receber",
                entidade_id=receivable_id,
            )
        return conta

    def search(
        self,
        termo: str = "",
        somente_atrasados: bool = False,
        status: Optional[str] = None,
        hoje: Optional[date] = None,
    ) -> List[AccountReceivable]:
        """
        Busca por descrição ou cliente ignorando maiúsculas, espaços e acentos
        ("joaosilva" encontra "João Silva").
        status aceita Pendente, Recebido ou Atrasado.
        """
        hoje = hoje or date.today()
        query = self.db.query(AccountReceivable)
        if status == SITUACAO_ATRASADO:
            somente_atrasados = True
        elif status:
            query = query.filter(AccountReceivable.status == status)
        if somente_atrasados:
            query = query.filter(
                AccountReceivable.status == STATUS_PENDENTE,
                AccountReceivable.data_vencimento < hoje,
            )
        contas = query.order_by(
            AccountReceivable.data_vencimento, AccountReceivable.id
        ).all()

        busca = normalize_search(termo)
        if not busca:
            return contas
        return [
            c
            for c in contas
            if busca in normalize_search(c.descricao) or busca in normalize_search(c.cliente)
        ]

    def list_overdue(self, hoje: Optional[date] = None) -> List[AccountReceivable]:
        return self.search(somente_atrasados=True, hoje=hoje)

    # ----- Inclusão -----

    def create(
        self,
        descricao: str,
        cliente: str,
        valor,
        data_vencimento,
        observacao: Optional[str] = None,
    ) -> AccountReceivable:
        conta = self._build(descricao, cliente, valor, data_vencimento, observacao)
        self._save([conta], "cadastrar")
        logger.info("Conta a receber #%s cadastrada para %s", conta.id, conta.cliente)
        return conta

    def import_receivables(self, registros: Iterable[dict]) -> ImportResult:
        """
        Cria contas Pendentes a partir de registros já lidos de um arquivo.
        Linhas inválidas são devolvidas com o motivo; as válidas são gravadas juntas.
        """
        resultado = ImportResult()
        for linha, registro in enumerate(registros, start=1):
            try:
                dados = normalize_import_row(registro)
                resultado.criadas.append(self._build(**dados))
            except PDVError as exc:
                logger.warning("Importação: linha %s rejeitada: %s", linha, exc.message)
                resultado.rejeitadas.append(ImportRejection(linha, exc.message))

        if resultado.criadas:
            self._save(resultado.criadas, "importar")
        logger.info(
            "Importação de contas a receber: %s criada(s), %s rejeitada(s)",
            len(resultado.criadas),
            len(resultado.rejeitadas),
        )
        return resultado

    def create_installments(
        self,
        descricao: str,
        cliente: str,
        total,
        condicao: str,
        data_base: Optional[date] = None,
    ) -> List[AccountReceivable]:
        """
        Gera uma conta a receber por parcela de uma venda a prazo.
        """
        data_base = parse_date(data_base) if data_base else date.today()
        parcelas = calculate_installments(total, condicao)
        contas = [
            self._build(
                f"Parcela {p.numero}/{len(parcelas)} - {descricao}",
                cliente,
                p.valor,
                data_base + timedelta(days=p.dias),
                observacao=p.rotulo,
            )
            for p in parcelas
        ]
        self._save(contas, "parcelar")
        return contas

    # ----- Alteração e exclusão (só Pendente) -----

    def update(self, receivable_id: int, **campos) -> AccountReceivable:
        desconhecidos = set(campos) - set(CAMPOS_EDITAVEIS)
        if desconhecidos:
            raise InvalidField(
                f"Campos não editáveis: {', '.join(sorted(desconhecidos))}.",
                entidade="conta_receber",
                entidade_id=receivable_id,
            )
        conta = self._require_pending(receivable_id, "alterada")
        novos = {campo: getattr(conta, campo) for campo in CAMPOS_EDITAVEIS}
        novos.update(campos)
        validada = self._build(**novos)

        valores = {getattr(AccountReceivable, c): getattr(validada, c) for c in CAMPOS_EDITAVEIS}
        valores[AccountReceivable.updated_at] = utcnow()
        try:
            alterados = self._pending(receivable_id).update(valores, synchronize_session=False)
            self._check_claimed(alterados, receivable_id, "alterada")
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreFailure(
                f"Falha ao alterar a conta a receber #{receivable_id}: {exc}",
                entidade="conta_receber",
                entidade_id=receivable_id,
            ) from exc
        self.db.refresh(conta)
        return conta

    def delete(self, receivable_id: int) -> None:
        conta = self._require_pending(receivable_id, "excluída")
        try:
            excluidos = self._pending(receivable_id).delete(synchronize_session=False)
            self._check_claimed(excluidos, receivable_id, "excluída")
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreFailure(
                f"Falha ao excluir a conta a receber #{receivable_id}: {exc}",
                entidade="conta_receber",
                entidade_id=receivable_id,
            ) from exc
        self.db.expunge(conta)
        logger.info("Conta a receber #%s excluída", receivable_id)

    # ----- Internos -----

    def _pending(self, receivable_id: int):
        return self.db.query(AccountReceivable).filter(
            AccountReceivable.id == receivable_id,
            AccountReceivable.status == STATUS_PENDENTE,
        )

    def _check_claimed(self, linhas: int, receivable_id: int, acao: str) -> None:
        if linhas == 0:
            self.db.rollback()
            raise InvalidState(
                f"Conta a receber #{receivable_id} foi baixada por outra operação e não pode ser {acao}.",
                entidade="conta_receber",
                entidade_id=receivable_id,
            )

    def _require_pending(self, receivable_id: int, acao: str) -> AccountReceivable:
        conta = self.db.get(AccountReceivable, receivable_id, populate_existing=True)
        if conta is None:
            raise NotFound(
                f"Conta a receber #{receivable_id} não encontrada.",
                entidade="conta_receber",
                entidade_id=receivable_id,
            )
        if conta.status != STATUS_PENDENTE:
            raise InvalidState(
                f"Conta a receber #{receivable_id} já está {conta.status} e não pode ser {acao}.",
                entidade="conta_receber",
                entidade_id=receivable_id,
            )
        return conta

    @staticmethod
    def _build(
        descricao=None,
        cliente=None,
        valor=None,
        data_vencimento=None,
        observacao=None,
    ) -> AccountReceivable:
        descricao = str(descricao or "").strip()
        cliente = str(cliente or "").strip()
        if not descricao:
            raise InvalidField("Descrição é obrigatória.", entidade="conta_receber")
        if not cliente:
            raise InvalidField("Cliente é obrigatório.", entidade="conta_receber")
        valor = require_amount(valor, entidade="conta_receber")
        try:
            vencimento = parse_date(data_vencimento)
        except ValueError as exc:
            raise InvalidField(
                f"Data de vencimento inválida: {data_vencimento!r}.",
                entidade="conta_receber",
            ) from exc
        return AccountReceivable(
            descricao=descricao,
            cliente=cliente,
            valor=valor,
            data_vencimento=vencimento,
            status=STATUS_PENDENTE,
            observacao=observacao or None,
        )

    def _save(self, contas: List[AccountReceivable], acao: str) -> None:
        try:
            self.db.add_all(contas)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Falha ao %s contas a receber: %s", acao, exc)
            raise StoreFailure(
                f"Falha ao {acao} conta(s) a receber: {exc}",
                entidade="conta_receber",
            ) from exc
        for conta in contas:
            self.db.refresh(conta)
