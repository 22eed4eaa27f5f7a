"""
Erros do domínio do PDV.

Cada erro carrega um código estável (``code``) e, quando faz sentido, a
entidade e o id envolvidos, para que o operador saiba exatamente qual item
falhou e possa repetir só ele.

    PDVError
     +-- InvalidState         operação no estado errado (caixa fechado, conta já baixada)
     +-- InvalidAmount        valor ausente, malformado ou fora da faixa permitida
     +-- InvalidMovementKind  tipo de movimentação que o operador não pode lançar
     +-- InvalidField         campo obrigatório vazio ou data inválida
     +-- Conflict             violaria unicidade/concorrência (segundo caixa aberto)
     +-- NotFound             id inexistente
     +-- StoreFailure         o banco recusou a operação
"""
from typing import Optional


class PDVError(Exception):
    code = "PDV_ERROR"

    def __init__(
        self,
        message: str,
        entidade: Optional[str] = None,
        entidade_id: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.entidade = entidade
        self.entidade_id = entidade_id

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "entidade": self.entidade,
            "entidade_id": self.entidade_id,
        }


class InvalidState(PDVError):
    code = "INVALID_STATE"


class InvalidAmount(PDVError):
    code = "INVALID_AMOUNT"


class InvalidMovementKind(PDVError):
    code = "INVALID_MOVEMENT_KIND"


class InvalidField(PDVError):
    code = "INVALID_FIELD"


class Conflict(PDVError):
    code = "CONFLICT"


class NotFound(PDVError):
    code = "NOT_FOUND"


class StoreFailure(PDVError):
    code = "STORE_FAILURE"
