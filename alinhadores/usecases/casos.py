# alinhadores/usecases/casos.py
"""
UC: Cadastro e consulta de casos (planos de tratamento).

- criar_caso(payload): valida totais, monta as placas 1..N e semeia o banco.
- obter_caso(caso_id): caso completo + resumo de fornecimento.
- listar_casos():      linhas resumidas para a CLI.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from alinhadores.adapters.parsers import normalize_str, parse_data, parse_int
from alinhadores.config import DB_PATH, DEFAULTS
from alinhadores.domain.erros import AlinhadoresError, ValidationError, ok
from alinhadores.domain.models import Caso, Placa, novo_id
from alinhadores.domain.produtos import normaliza_tipo_produto, rotulo
from alinhadores.domain.reposicao import resumo_fornecimento
from alinhadores.infra.db import agora_iso, connect
from alinhadores.infra.logger import log_database_operation, log_system_event, log_transaction
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import AuditoriaRepo, CasoRepo, ParamsRepo
from alinhadores.usecases.banco_reposicao import semear


def _monta_placas(total: int, troca_dias: int, inicio: Optional[str]) -> List[Placa]:
    base = date.fromisoformat(inicio) if inicio else None
    return [
        Placa(
            numero=n,
            data_prevista=(base + timedelta(days=(n - 1) * troca_dias)).isoformat() if base else None,
        )
        for n in range(1, total + 1)
    ]


def _caso_do_payload(payload: Dict[str, Any], troca_padrao: int) -> Caso:
    total_sup = parse_int(payload.get("total_superior", 0))
    total_inf = parse_int(payload.get("total_inferior", 0))
    if total_sup is None or total_inf is None or total_sup < 0 or total_inf < 0:
        raise ValidationError("Totais de placas devem ser inteiros >= 0.")
    if total_sup == 0 and total_inf == 0:
        raise ValidationError("Informe ao menos uma arcada com placas planejadas.")

    troca = parse_int(payload.get("troca_dias")) if payload.get("troca_dias") is not None else troca_padrao
    if troca is None or troca <= 0:
        raise ValidationError("Intervalo de troca (troca_dias) deve ser > 0.")

    inicio_raw = payload.get("data_inicio")
    inicio = parse_data(inicio_raw)
    if inicio_raw and not inicio:
        raise ValidationError(f"Data de início inválida: {inicio_raw}.")

    agora = agora_iso()
    return Caso(
        id=normalize_str(payload.get("id")) or novo_id("caso"),
        paciente=normalize_str(payload.get("paciente")),
        codigo_tratamento=normalize_str(payload.get("codigo_tratamento")),
        tipo_produto=normaliza_tipo_produto(payload.get("tipo_produto")),
        total_superior=total_sup,
        total_inferior=total_inf,
        troca_dias=troca,
        placas=_monta_placas(max(total_sup, total_inf), troca, inicio),
        criado_em=agora,
        atualizado_em=agora,
    )


def criar_caso(payload: Dict[str, Any], db_path: str = DB_PATH) -> Dict[str, Any]:
    """Cadastra um caso e semeia o banco de reposições."""
    log_system_event("criar_caso_start", {"id": payload.get("id")})
    apply_migrations(db_path)
    try:
        troca_padrao = ParamsRepo(db_path).get_int("troca_dias", DEFAULTS.troca_dias)
        caso = _caso_do_payload(payload, troca_padrao)
        with connect(db_path) as conn:
            repo = CasoRepo(conn)
            if repo.get(caso.id) is not None:
                raise ValidationError(f"Já existe um caso com id {caso.id}.")
            repo.save(caso)
            log_database_operation("caso", "INSERT", 1, caso_id=caso.id)
            semeadas = semear(conn, caso)
            AuditoriaRepo(conn).registrar(
                "caso", caso.id, "criado",
                f"Caso criado com {caso.total_superior} superiores e {caso.total_inferior} inferiores.",
            )
        log_transaction("criar_caso", payload, result={"id": caso.id})
        return ok(id=caso.id, placas=caso.total_placas, banco=semeadas)
    except AlinhadoresError as e:
        log_transaction("criar_caso", payload, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("criar_caso_error", {"error": str(e)}, level="error")
        raise


def obter_caso(caso_id: str, db_path: str = DB_PATH) -> Optional[Dict[str, Any]]:
    apply_migrations(db_path)
    with connect(db_path) as conn:
        caso = CasoRepo(conn).get(caso_id)
        if caso is None:
            return None
        auditoria = AuditoriaRepo(conn).list_by_entidade(caso_id)
    out = caso.to_dict()
    out["fornecimento"] = resumo_fornecimento(caso)
    out["auditoria"] = auditoria
    return out


def listar_casos(db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    apply_migrations(db_path)
    with connect(db_path) as conn:
        casos = CasoRepo(conn).list_all()
    out = []
    for c in casos:
        entregues = sum(1 for p in c.placas if p.estado == "entregue")
        out.append({
            "id": c.id,
            "paciente": c.paciente or "",
            "produto": rotulo(c.tipo_produto),
            "superior": c.total_superior,
            "inferior": c.total_inferior,
            "entregues": entregues,
            "status": c.status,
        })
    return out
