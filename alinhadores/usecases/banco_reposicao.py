# alinhadores/usecases/banco_reposicao.py
"""
UC: Banco de reposições (livro-razão de placas por arcada).

- semear_banco(caso_id):             cria uma entrada 'disponivel' por placa por arcada (idempotente).
- debitar_banco(item_id):            consome entradas 'disponivel' para uma OS em produção.
- marcar_entregue(caso_id, lote):    marca como 'entregue' as entradas de um lote.
- rework_banco(caso_id, placa, ...): invalida a placa ('defeituosa') e devolve uma nova 'disponivel'.
- resumo_banco(caso_id):             contagens do banco.

As funções sem sufixo público (`semear`, `debitar`, `marcar_lote_entregue`,
`rework`) recebem a conexão aberta e são usadas pelos outros casos de uso
dentro da mesma transação.

Obs.:
- Entradas nunca são apagadas.
- OS sem caso vinculado ou de produto que não é alinhador não mexem no banco.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from alinhadores.config import DB_PATH
from alinhadores.domain.erros import AlinhadoresError, InsufficientBalance, ValidationError, ok
from alinhadores.domain.models import ARCADAS, ARCADAS_BANCO, Caso, EntradaBanco, ItemLab, LoteEntrega, novo_id
from alinhadores.domain.politicas import quantidades_debito, tipo_produto_efetivo
from alinhadores.domain.produtos import eh_alinhador
from alinhadores.infra.db import agora_iso, connect
from alinhadores.infra.logger import log_banco, log_database_operation, log_system_event, log_transaction
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import AuditoriaRepo, BancoRepo, CasoRepo, ItemLabRepo
from alinhadores.infra.views import create_views


def _arcadas(arcada: str) -> Tuple[str, ...]:
    return ARCADAS_BANCO if arcada == "ambos" else (arcada,)


# -------------------------
# Operações na transação
# -------------------------

def semear(conn, caso: Caso) -> int:
    repo = BancoRepo(conn)
    if repo.existe_para_caso(caso.id):
        return 0
    agora = agora_iso()
    entradas = [
        EntradaBanco(
            id=novo_id("rb"), caso_id=caso.id, arcada=arcada, numero_placa=n,
            criado_em=agora, atualizado_em=agora,
        )
        for arcada, total in (("superior", caso.total_superior), ("inferior", caso.total_inferior))
        for n in range(1, total + 1)
    ]
    n = repo.insert_many(entradas)
    log_database_operation("banco_reposicao", "INSERT_MANY", n, caso_id=caso.id)
    log_banco("seed", caso.id, n)
    return n


def selecionar_disponiveis(entradas: List[EntradaBanco], arcada: str, quantidade: int) -> List[EntradaBanco]:
    """Primeiras `quantidade` entradas disponíveis da arcada, em ordem de placa.

    Entradas repetidas para a mesma (arcada, placa) contam uma vez só.
    """
    candidatas = sorted(
        (e for e in entradas if e.arcada == arcada and e.status == "disponivel"),
        key=lambda e: e.numero_placa,
    )
    vistas = set()
    unicas: List[EntradaBanco] = []
    for e in candidatas:
        if e.numero_placa in vistas:
            continue
        vistas.add(e.numero_placa)
        unicas.append(e)
    if len(unicas) < quantidade:
        raise InsufficientBalance(arcada, len(unicas), quantidade)
    return unicas[:quantidade]


def debitar(conn, item: ItemLab, eh_alinhador: Callable[[str], bool] = eh_alinhador) -> Optional[Dict[str, int]]:
    """Consome as placas da OS; devolve None se a OS já tem débito em aberto no banco."""
    if not item.caso_id:
        return {"superior": 0, "inferior": 0}
    caso = CasoRepo(conn).require(item.caso_id)
    if not eh_alinhador(tipo_produto_efetivo(item, caso)):
        return {"superior": 0, "inferior": 0}

    semear(conn, caso)
    repo = BancoRepo(conn)
    if repo.existe_debito_do_item(item.id):
        log_banco("debit_skip", caso.id, 0, item_id=item.id)
        return None
    entradas = repo.list_by_caso(caso.id)
    qs, qi = quantidades_debito(item)

    # as duas pernas são validadas antes de qualquer gravação
    escolhidas: List[EntradaBanco] = []
    if qs > 0:
        escolhidas += selecionar_disponiveis(entradas, "superior", qs)
    if qi > 0:
        escolhidas += selecionar_disponiveis(entradas, "inferior", qi)

    agora = agora_iso()
    for e in escolhidas:
        e.status = "em_producao"
        e.item_origem_id = item.id
        e.atualizado_em = agora
    repo.update_many(escolhidas)
    log_banco("debit", caso.id, len(escolhidas), item_id=item.id, superior=qs, inferior=qi)
    return {"superior": qs, "inferior": qi}


def marcar_lote_entregue(conn, caso_id: str, lote: LoteEntrega) -> int:
    repo = BancoRepo(conn)
    arcadas = _arcadas(lote.arcada)
    alvo = [
        e for e in repo.list_by_caso(caso_id)
        if e.arcada in arcadas
        and lote.placa_inicial <= e.numero_placa <= lote.placa_final
        and e.status != "defeituosa"
    ]
    agora = agora_iso()
    for e in alvo:
        e.status = "entregue"
        e.entregue_em = lote.entregue_profissional_em
        e.atualizado_em = agora
    n = repo.update_many(alvo)
    log_banco("delivered", caso_id, n, lote=lote.id)
    return n


def rework(conn, caso_id: str, numero_placa: int, arcada: str, item_origem_id: Optional[str] = None) -> Dict[str, int]:
    if arcada not in ARCADAS:
        raise ValidationError("Arcada inválida para rework.")
    repo = BancoRepo(conn)
    arcadas = _arcadas(arcada)
    alvo = [
        e for e in repo.list_by_caso(caso_id)
        if e.arcada in arcadas and e.numero_placa == numero_placa and e.status != "defeituosa"
    ]
    agora = agora_iso()
    for e in alvo:
        e.status = "defeituosa"
        e.atualizado_em = agora
    repo.update_many(alvo)

    novas = [
        EntradaBanco(
            id=novo_id("rb"), caso_id=caso_id, arcada=a, numero_placa=numero_placa,
            item_origem_id=item_origem_id, criado_em=agora, atualizado_em=agora,
        )
        for a in arcadas
    ]
    repo.insert_many(novas)
    log_banco("rework", caso_id, len(novas), placa=numero_placa, defeituosas=len(alvo))
    return {"defeituosas": len(alvo), "restauradas": len(novas)}


def resumo(entradas: List[EntradaBanco]) -> Dict[str, Any]:
    def conta(*status: str) -> int:
        return sum(1 for e in entradas if e.status in status)

    return {
        "contratado": sum(1 for e in entradas if e.status != "defeituosa"),
        "em_producao_ou_entregue": conta("em_producao", "entregue"),
        "saldo_restante": conta("disponivel"),
        "rework": conta("rework"),
        "defeituosas": conta("defeituosa"),
        "saldo_superior": sum(1 for e in entradas if e.arcada == "superior" and e.status == "disponivel"),
        "saldo_inferior": sum(1 for e in entradas if e.arcada == "inferior" and e.status == "disponivel"),
    }


# -------------------------
# Casos de uso públicos
# -------------------------

def semear_banco(caso_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Garante o banco de reposições do caso (não faz nada se já existir)."""
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            caso = CasoRepo(conn).require(caso_id)
            n = semear(conn, caso)
            if n:
                AuditoriaRepo(conn).registrar("caso", caso_id, "banco_semeado", f"{n} entradas criadas.")
        log_transaction("semear_banco", {"caso_id": caso_id}, result={"criadas": n})
        return ok(caso_id=caso_id, criadas=n)
    except AlinhadoresError as e:
        log_transaction("semear_banco", {"caso_id": caso_id}, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("semear_banco_error", {"error": str(e)}, level="error")
        raise


def debitar_banco(item_id: str, db_path: str = DB_PATH,
                  eh_alinhador: Callable[[str], bool] = eh_alinhador) -> Dict[str, Any]:
    """Debita do banco as placas de uma OS (normalmente chamado pela esteira)."""
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            item = ItemLabRepo(conn).require(item_id)
            consumidas = debitar(conn, item, eh_alinhador)
        log_transaction("debitar_banco", {"item_id": item_id}, result=consumidas)
        return ok(item_id=item_id, consumidas=consumidas)
    except AlinhadoresError as e:
        log_transaction("debitar_banco", {"item_id": item_id}, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("debitar_banco_error", {"error": str(e)}, level="error")
        raise


def marcar_entregue(caso_id: str, lote: LoteEntrega, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Marca como entregues as entradas do banco cobertas pelo lote."""
    data = {"caso_id": caso_id, "lote": lote.id, "arcada": lote.arcada}
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            CasoRepo(conn).require(caso_id)
            n = marcar_lote_entregue(conn, caso_id, lote)
            AuditoriaRepo(conn).registrar(
                "caso", caso_id, "banco_entregue",
                f"{n} entrada(s) do banco marcadas como entregues (placas {lote.placa_inicial}-{lote.placa_final}).",
            )
        log_transaction("marcar_entregue", data, result={"entregues": n})
        return ok(caso_id=caso_id, entregues=n)
    except AlinhadoresError as e:
        log_transaction("marcar_entregue", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("marcar_entregue_error", {"error": str(e)}, level="error")
        raise


def rework_banco(caso_id: str, numero_placa: int, arcada: str,
                 item_origem_id: Optional[str] = None, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Rework apenas no banco (o rework completo do caso fica em `entregas.rework_placa`)."""
    apply_migrations(db_path)
    data = {"caso_id": caso_id, "placa": numero_placa, "arcada": arcada}
    try:
        with connect(db_path) as conn:
            CasoRepo(conn).require(caso_id)
            res = rework(conn, caso_id, numero_placa, arcada, item_origem_id)
        log_transaction("rework_banco", data, result=res)
        return ok(**res)
    except AlinhadoresError as e:
        log_transaction("rework_banco", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("rework_banco_error", {"error": str(e)}, level="error")
        raise


def resumo_banco(caso_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    apply_migrations(db_path)
    create_views(db_path)
    try:
        with connect(db_path) as conn:
            CasoRepo(conn).require(caso_id)
            repo = BancoRepo(conn)
            out = resumo(repo.list_by_caso(caso_id))
            out["por_arcada"] = repo.saldo_por_arcada(caso_id)
        return ok(caso_id=caso_id, **out)
    except AlinhadoresError as e:
        log_transaction("resumo_banco", {"caso_id": caso_id}, error=e.mensagem)
        return e.to_result()
