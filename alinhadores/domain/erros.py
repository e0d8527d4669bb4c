# alinhadores/domain/erros.py
"""
Erros tipados do motor.

Os erros são levantados dentro da transação (forçando rollback) e convertidos
em dicionários de resultado na borda dos casos de uso:

    {"ok": False, "erro": <codigo>, "mensagem": <texto>, ...}
"""

from __future__ import annotations

from typing import Any, Dict


class AlinhadoresError(Exception):
    codigo = "erro"

    def __init__(self, mensagem: str, **dados: Any):
        super().__init__(mensagem)
        self.mensagem = mensagem
        self.dados = dados

    def to_result(self) -> Dict[str, Any]:
        return {"ok": False, "erro": self.codigo, "mensagem": self.mensagem, **self.dados}


class ValidationError(AlinhadoresError):
    codigo = "validation_error"


class InvalidTransition(AlinhadoresError):
    codigo = "invalid_transition"


class NotFound(AlinhadoresError):
    codigo = "not_found"


class Cancelled(AlinhadoresError):
    codigo = "cancelled"


class InsufficientBalance(AlinhadoresError):
    codigo = "insufficient_balance"

    def __init__(self, arcada: str, disponivel: int, solicitado: int):
        super().__init__(
            f"Saldo insuficiente no banco de reposições ({arcada}). "
            f"Disponível: {disponivel}, solicitado: {solicitado}.",
            arcada=arcada,
            disponivel=disponivel,
            solicitado=solicitado,
        )
        self.arcada = arcada
        self.disponivel = disponivel
        self.solicitado = solicitado


def ok(**dados: Any) -> Dict[str, Any]:
    return {"ok": True, **dados}
