# alinhadores/domain/politicas.py
"""
Regras de negócio puras da esteira e do plano de placas.

Este módulo concentra as regras que não dependem de banco de dados:
fluxo de status das OS, mapeamento status → estado de placa, guarda
monotônica das placas, faixa de lote de uma OS e ciclo de vida do caso.
As funções recebem e devolvem objetos de domínio e são usadas pelos
casos de uso de sincronização, esteira e entregas.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from alinhadores.domain.erros import InvalidTransition, ValidationError
from alinhadores.domain.models import STATUS_ITEM, Caso, ItemLab
from alinhadores.domain.produtos import normaliza_tipo_produto


ESTADO_PLACA_POR_STATUS: Dict[str, str] = {
    "aguardando_iniciar": "pendente",
    "em_producao": "em_producao",
    "controle_qualidade": "rework",
    "prontas": "pronta",
}

ESTADOS_EM_ANDAMENTO = ("em_producao", "pronta", "rework")


def pode_mover(atual: str, proximo: str) -> bool:
    """Só são permitidos movimentos de um passo (para frente ou para trás)."""
    if atual not in STATUS_ITEM or proximo not in STATUS_ITEM:
        return False
    return abs(STATUS_ITEM.index(atual) - STATUS_ITEM.index(proximo)) <= 1


def valida_transicao(atual: str, proximo: str) -> None:
    if proximo not in STATUS_ITEM:
        raise ValidationError(f"Status inválido: {proximo}.")
    if not pode_mover(atual, proximo):
        raise InvalidTransition(
            f"Transição não permitida: {atual} -> {proximo}.",
            status_atual=atual,
            status_solicitado=proximo,
        )


def estado_placa_por_status(status: str) -> str:
    return ESTADO_PLACA_POR_STATUS.get(status, "pendente")


def aplica_estado_monotonico(atual: str, alvo: str) -> str:
    """Devolve o estado resultante de aplicar `alvo` sobre uma placa.

    Regras:
        - placa ``entregue`` nunca regride;
        - ``em_producao`` não rebaixa uma placa ``pronta``;
        - ``pendente`` só se aplica a placas ainda ``pendente``.
    """
    if atual == "entregue":
        return atual
    if alvo == "pendente" and atual != "pendente":
        return atual
    if alvo == "em_producao" and atual == "pronta":
        return atual
    return alvo


def tipo_produto_efetivo(item: ItemLab, caso: Optional[Caso]) -> str:
    tipo = item.tipo_produto or (caso.tipo_produto if caso else None)
    return normaliza_tipo_produto(tipo)


def entregue_por_arcada(caso: Caso) -> Dict[str, int]:
    """Maior placa final entregue ao profissional por arcada (lotes `ambos` contam nas duas)."""
    out = {"superior": 0, "inferior": 0}
    for lote in caso.lotes_entrega:
        arcadas = ("superior", "inferior") if lote.arcada == "ambos" else (lote.arcada,)
        for a in arcadas:
            if a in out:
                out[a] = max(out[a], int(lote.placa_final))
    return out


def _faixa_arcada(caso: Caso, arcada: str, numero_placa: int, qtd: int, entregue: int) -> Tuple[int, int]:
    inicio = max(1, entregue + 1, numero_placa)
    fim = min(caso.total_da_arcada(arcada), inicio + qtd - 1)
    return inicio, fim


def faixa_lote(caso: Caso, item: ItemLab) -> Optional[Tuple[int, int]]:
    """Faixa de placas [inicio, fim] afetada por uma OS de produção/reposição.

    Retorna ``None`` quando a faixa é vazia.
    """
    entregue = entregue_por_arcada(caso)
    qs, qi = int(item.qtd_superior or 0), int(item.qtd_inferior or 0)

    if item.arcada == "ambos":
        if qs <= 0 or qi <= 0:
            return None
        s_ini, s_fim = _faixa_arcada(caso, "superior", item.numero_placa, qs, entregue["superior"])
        i_ini, i_fim = _faixa_arcada(caso, "inferior", item.numero_placa, qi, entregue["inferior"])
        inicio, fim = max(s_ini, i_ini), min(s_fim, i_fim)
    elif item.arcada in ("superior", "inferior"):
        qtd = qs if item.arcada == "superior" else qi
        inicio, fim = _faixa_arcada(caso, item.arcada, item.numero_placa, max(qtd, 1), entregue[item.arcada])
    else:
        return None

    if fim < inicio:
        return None
    return inicio, fim


def quantidades_debito(item: ItemLab) -> Tuple[int, int]:
    """Quantidades (superior, inferior) a debitar do banco ao iniciar a produção."""
    qs, qi = max(int(item.qtd_superior or 0), 0), max(int(item.qtd_inferior or 0), 0)
    if item.arcada == "superior":
        return max(qs, 1), 0
    if item.arcada == "inferior":
        return 0, max(qi, 1)
    if item.arcada == "ambos":
        return qs, qi
    return 0, 0


def deriva_ciclo_vida(caso: Caso) -> Optional[Tuple[str, str]]:
    """(status, fase) do caso a partir das placas, lotes e instalação."""
    if caso.placas and all(p.estado == "entregue" for p in caso.placas):
        return "finalizado", "finalizado"
    if caso.lotes_entrega or caso.instalacao is not None:
        return "em_entrega", "em_producao"
    if any(p.estado in ESTADOS_EM_ANDAMENTO for p in caso.placas):
        return "em_producao", "em_producao"
    return None


def aplica_ciclo_vida(caso: Caso) -> None:
    ciclo = deriva_ciclo_vida(caso)
    if ciclo:
        caso.status, caso.fase = ciclo


def valida_plano(caso: Caso, qtd_superior: int, qtd_inferior: int) -> None:
    if qtd_superior > caso.total_superior:
        raise ValidationError(
            f"Quantidade superior excede o planejamento do caso ({caso.total_superior})."
        )
    if qtd_inferior > caso.total_inferior:
        raise ValidationError(
            f"Quantidade inferior excede o planejamento do caso ({caso.total_inferior})."
        )
