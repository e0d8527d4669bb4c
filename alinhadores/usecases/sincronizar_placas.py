# alinhadores/usecases/sincronizar_placas.py
"""
UC: Sincronizar o status de uma OS com as placas do caso.

`projetar_item` é a projeção única (pura) de uma OS sobre o plano de
placas; `sincronizar` aplica a projeção dentro de uma transação aberta e
`sincronizar_item_com_caso` é a porta pública.

Passos:
1. OS sem caso → nada a fazer. Caso inexistente → NotFound.
2. Produto que não é alinhador → nada a fazer.
3. Placa fora de 1..total → ValidationError.
4. Status da OS → estado alvo da placa.
5. Produção/reposição: aplica o alvo na faixa do lote (guarda monotônica).
6. Reconfecção: aplica o alvo só na placa da OS.
7. Recalcula status/fase do caso.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Union

from alinhadores.config import DB_PATH
from alinhadores.domain.erros import AlinhadoresError, ValidationError, ok
from alinhadores.domain.models import Caso, ItemLab
from alinhadores.domain.politicas import (
    aplica_ciclo_vida,
    aplica_estado_monotonico,
    estado_placa_por_status,
    faixa_lote,
    tipo_produto_efetivo,
)
from alinhadores.domain.produtos import eh_alinhador
from alinhadores.infra.db import agora_iso, connect
from alinhadores.infra.logger import log_database_operation, log_system_event, log_transaction
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import CasoRepo, ItemLabRepo


def projetar_item(caso: Caso, item: ItemLab) -> Caso:
    """Devolve uma cópia do caso com o efeito da OS aplicado às placas."""
    if item.numero_placa < 1 or item.numero_placa > caso.total_placas:
        raise ValidationError(
            f"Número da placa fora do planejamento do caso (1..{caso.total_placas}).",
            numero_placa=item.numero_placa,
        )

    alvo = estado_placa_por_status(item.status)
    novo = copy.deepcopy(caso)

    if item.tipo_solicitacao == "reconfeccao":
        placa = novo.placa(item.numero_placa)
        if placa is None:
            raise ValidationError(f"Placa #{item.numero_placa} não encontrada no caso.")
        placa.estado = aplica_estado_monotonico(placa.estado, alvo)
    else:
        faixa = faixa_lote(novo, item)
        if faixa is None:
            return novo
        inicio, fim = faixa
        for placa in novo.placas:
            if inicio <= placa.numero <= fim:
                placa.estado = aplica_estado_monotonico(placa.estado, alvo)

    aplica_ciclo_vida(novo)
    return novo


def sincronizar(conn, item: ItemLab, eh_alinhador: Callable[[str], bool] = eh_alinhador) -> bool:
    """Aplica a OS no caso vinculado. Retorna True se o caso mudou."""
    if not item.caso_id:
        return False
    repo = CasoRepo(conn)
    caso = repo.require(item.caso_id)
    if not eh_alinhador(tipo_produto_efetivo(item, caso)):
        return False

    novo = projetar_item(caso, item)
    if novo == caso:
        return False
    novo.atualizado_em = agora_iso()
    repo.save(novo)
    log_database_operation("caso", "UPDATE", 1, caso_id=caso.id, item_id=item.id, status=novo.status)
    return True


def sincronizar_item_com_caso(item: Union[str, ItemLab], db_path: str = DB_PATH,
                              eh_alinhador: Callable[[str], bool] = eh_alinhador) -> Dict[str, Any]:
    """Projeta uma OS sobre as placas do caso e grava o caso.

    Aceita o id de uma OS gravada ou a própria ``ItemLab`` (correção
    avulsa); neste caso a OS é projetada como está, sem ser gravada.
    """
    item_id = item.id if isinstance(item, ItemLab) else item
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            if not isinstance(item, ItemLab):
                item = ItemLabRepo(conn).require(item_id)
            alterado = sincronizar(conn, item, eh_alinhador)
        log_transaction("sincronizar_item_com_caso", {"item_id": item_id}, result={"alterado": alterado})
        return ok(item_id=item_id, alterado=alterado)
    except AlinhadoresError as e:
        log_transaction("sincronizar_item_com_caso", {"item_id": item_id}, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("sincronizar_item_com_caso_error", {"error": str(e)}, level="error")
        raise
