# alinhadores/usecases/alertas.py
"""
UC: Alertas de reposição e próxima troca.

Lê os casos e aplica o preditor de `domain.reposicao`. As janelas de alerta
vêm da tabela `params` (alerta_aviso_dias, alerta_elevado_dias) com
fallback para DEFAULTS.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from alinhadores.config import DB_PATH, DEFAULTS
from alinhadores.domain.erros import AlinhadoresError, ok
from alinhadores.domain.reposicao import (
    SEVERIDADE_ORDEM,
    alertas_reposicao,
    cronograma_trocas,
    proxima_data_troca,
    proxima_placa_devida,
)
from alinhadores.infra.db import connect
from alinhadores.infra.logger import log_system_event, log_transaction
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import CasoRepo, ParamsRepo


def _janelas(db_path: str) -> Tuple[int, int]:
    params = ParamsRepo(db_path)
    return (
        params.get_int("alerta_aviso_dias", DEFAULTS.alerta_aviso_dias),
        params.get_int("alerta_elevado_dias", DEFAULTS.alerta_elevado_dias),
    )


def alertas_do_caso(caso_id: str, hoje: Optional[date] = None, db_path: str = DB_PATH) -> Dict[str, Any]:
    apply_migrations(db_path)
    try:
        aviso, elevado = _janelas(db_path)
        with connect(db_path) as conn:
            caso = CasoRepo(conn).require(caso_id)
        alertas = alertas_reposicao(caso, hoje, aviso_dias=aviso, elevado_dias=elevado)
        return ok(caso_id=caso_id, alertas=alertas)
    except AlinhadoresError as e:
        log_transaction("alertas_do_caso", {"caso_id": caso_id}, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("alertas_do_caso_error", {"error": str(e)}, level="error")
        raise


def proxima_troca(caso_id: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Próxima placa devida ao paciente e a data prevista da troca."""
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            caso = CasoRepo(conn).require(caso_id)
        data = proxima_data_troca(caso)
        return ok(
            caso_id=caso_id,
            placa=proxima_placa_devida(caso),
            data=data.isoformat() if data else None,
            cronograma=[
                {
                    "placa": l["placa"],
                    "data_prevista": l["data_prevista"].isoformat(),
                    "data_real": l["data_real"].isoformat() if l["data_real"] else None,
                }
                for l in cronograma_trocas(caso)
            ],
        )
    except AlinhadoresError as e:
        log_transaction("proxima_troca", {"caso_id": caso_id}, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("proxima_troca_error", {"error": str(e)}, level="error")
        raise


def painel_alertas(hoje: Optional[date] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    """Alertas de todos os casos, do mais grave para o menos grave."""
    log_system_event("painel_alertas_start")
    apply_migrations(db_path)
    aviso, elevado = _janelas(db_path)
    with connect(db_path) as conn:
        casos = CasoRepo(conn).list_all()
    out: List[Dict[str, Any]] = []
    for caso in casos:
        out.extend(alertas_reposicao(caso, hoje, aviso_dias=aviso, elevado_dias=elevado))
    out.sort(key=lambda a: (SEVERIDADE_ORDEM[a["severidade"]], a["dias_restantes"]))
    log_system_event("painel_alertas_success", {"alertas": len(out)})
    return out
