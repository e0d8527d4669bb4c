# alinhadores/usecases/entregas.py
"""
UC: Entregas e rework de placas.

- registrar_lote_entrega(): laboratório → profissional (placas prontas viram 'entregue').
- registrar_instalacao():   profissional → paciente (instalação e entregas seguintes).
- registrar_troca_real():   registra/limpa a data real de troca de uma placa.
- rework_placa():           invalida a placa no banco, marca 'rework' e abre as OS de refação.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, Optional

from alinhadores.adapters.parsers import normaliza_arcada, normalize_str, parse_data, parse_int
from alinhadores.config import DB_PATH
from alinhadores.domain.erros import AlinhadoresError, ValidationError, ok
from alinhadores.domain.models import Instalacao, LoteEntrega, LotePaciente, TrocaReal, novo_id
from alinhadores.domain.politicas import aplica_ciclo_vida, entregue_por_arcada
from alinhadores.domain.produtos import eh_alinhador
from alinhadores.domain.reposicao import entregues_ao_paciente
from alinhadores.infra.db import agora_iso, connect
from alinhadores.infra.logger import log_database_operation, log_system_event, log_transaction
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import AuditoriaRepo, CasoRepo, ItemLabRepo
from alinhadores.usecases.banco_reposicao import marcar_lote_entregue, rework
from alinhadores.usecases.esteira_producao import cria_item


def _arcada_obrigatoria(valor: Any) -> str:
    arcada = normaliza_arcada(valor)
    if arcada is None:
        raise ValidationError("Informe a arcada (superior, inferior ou ambos).")
    return arcada


def _data_obrigatoria(valor: Any, campo: str) -> str:
    d = parse_data(valor)
    if d is None:
        raise ValidationError(f"Informe uma data válida para {campo}.")
    return d


def registrar_lote_entrega(caso_id: str, arcada: str, placa_inicial: int, placa_final: int,
                           entregue_em: str, nota: Optional[str] = None,
                           db_path: str = DB_PATH) -> Dict[str, Any]:
    """Registra um lote de placas entregue ao profissional."""
    data = {"caso_id": caso_id, "arcada": arcada, "de": placa_inicial, "ate": placa_final, "data": entregue_em}
    apply_migrations(db_path)
    try:
        arcada = _arcada_obrigatoria(arcada)
        quando = _data_obrigatoria(entregue_em, "a entrega ao profissional")
        ini, fim = parse_int(placa_inicial), parse_int(placa_final)
        if ini is None or ini < 1:
            raise ValidationError("Placa inicial deve ser >= 1.")
        if fim is None or fim < ini:
            raise ValidationError("Placa final deve ser >= placa inicial.")

        with connect(db_path) as conn:
            repo = CasoRepo(conn)
            caso = repo.require(caso_id)
            if not ItemLabRepo(conn).existe_producao(caso_id):
                raise ValidationError("Registre uma OS de produção antes de entregar placas.")
            total = caso.total_da_arcada(arcada)
            if fim > total:
                raise ValidationError(f"Placa final excede o total planejado da arcada ({total}).")
            for l in caso.lotes_entrega:
                if (l.arcada, l.placa_inicial, l.placa_final, l.entregue_profissional_em) == (arcada, ini, fim, quando):
                    raise ValidationError("Lote já registrado para esta arcada, faixa e data.")
            for n in range(ini, fim + 1):
                placa = caso.placa(n)
                if placa is None or placa.estado not in ("pronta", "entregue"):
                    raise ValidationError(f"Placa #{n} ainda não está pronta para entrega.")

            for n in range(ini, fim + 1):
                placa = caso.placa(n)
                placa.estado = "entregue"
                placa.entregue_em = quando
            lote = LoteEntrega(
                id=novo_id("lote"), arcada=arcada, placa_inicial=ini, placa_final=fim,
                quantidade=fim - ini + 1, entregue_profissional_em=quando, nota=normalize_str(nota),
            )
            caso.lotes_entrega.append(lote)
            aplica_ciclo_vida(caso)
            caso.atualizado_em = agora_iso()
            repo.save(caso)
            log_database_operation("caso", "UPDATE", 1, caso_id=caso_id, lote=lote.id)
            entregues_banco = marcar_lote_entregue(conn, caso_id, lote)
            AuditoriaRepo(conn).registrar(
                "caso", caso_id, "lote_entregue", f"Placas {ini}-{fim} ({arcada}) entregues ao profissional em {quando}."
            )
        result = ok(lote_id=lote.id, quantidade=lote.quantidade, status=caso.status, banco_entregues=entregues_banco)
        log_transaction("registrar_lote_entrega", data, result=result)
        return result
    except AlinhadoresError as e:
        log_transaction("registrar_lote_entrega", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("registrar_lote_entrega_error", {"error": str(e)}, level="error")
        raise


def registrar_instalacao(caso_id: str, entregue_em: str, qtd_superior: int = 0, qtd_inferior: int = 0,
                         nota: Optional[str] = None, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Registra a instalação (primeira chamada) e as entregas ao paciente.

    As quantidades são incrementos: somam-se ao que o paciente já recebeu.
    """
    data = {"caso_id": caso_id, "data": entregue_em, "superior": qtd_superior, "inferior": qtd_inferior}
    apply_migrations(db_path)
    try:
        quando = _data_obrigatoria(entregue_em, "a entrega ao paciente")
        qs, qi = parse_int(qtd_superior), parse_int(qtd_inferior)
        if qs is None or qi is None or qs < 0 or qi < 0:
            raise ValidationError("Quantidades entregues ao paciente devem ser inteiros >= 0.")

        with connect(db_path) as conn:
            repo = CasoRepo(conn)
            caso = repo.require(caso_id)
            if not caso.lotes_entrega:
                raise ValidationError("Registre a entrega ao profissional antes da instalação.")
            primeira = caso.instalacao is None
            if not primeira and qs == 0 and qi == 0:
                raise ValidationError("Informe ao menos uma placa entregue ao paciente.")

            inst = caso.instalacao or Instalacao(instalada_em=quando, nota=normalize_str(nota))
            novo_sup = inst.entregues_superior + qs
            novo_inf = inst.entregues_inferior + qi
            if novo_sup > caso.total_superior or novo_inf > caso.total_inferior:
                raise ValidationError("Quantidade entregue ao paciente excede o planejamento do caso.")
            prof = entregue_por_arcada(caso)
            if novo_sup > prof["superior"] or novo_inf > prof["inferior"]:
                raise ValidationError("Quantidade entregue ao paciente excede o que foi entregue ao profissional.")

            antes = entregues_ao_paciente(caso)
            inst.entregues_superior = novo_sup
            inst.entregues_inferior = novo_inf
            caso.instalacao = inst
            depois = entregues_ao_paciente(caso)
            if depois > antes:
                inst.lotes_paciente.append(LotePaciente(
                    id=novo_id("lp"), placa_inicial=antes + 1, placa_final=depois,
                    quantidade=depois - antes, entregue_em=quando, nota=normalize_str(nota),
                ))

            if novo_sup >= caso.total_superior and novo_inf >= caso.total_inferior:
                caso.status, caso.fase = "finalizado", "finalizado"
            else:
                caso.status, caso.fase = "em_entrega", "em_producao"
            caso.atualizado_em = agora_iso()
            repo.save(caso)
            AuditoriaRepo(conn).registrar(
                "caso", caso_id, "instalacao" if primeira else "entrega_paciente",
                f"Paciente recebeu {qs} superior(es) e {qi} inferior(es) em {quando}.",
            )
        result = ok(entregues_superior=novo_sup, entregues_inferior=novo_inf, status=caso.status)
        log_transaction("registrar_instalacao", data, result=result)
        return result
    except AlinhadoresError as e:
        log_transaction("registrar_instalacao", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("registrar_instalacao_error", {"error": str(e)}, level="error")
        raise


def registrar_troca_real(caso_id: str, numero_placa: int, trocada_em: Optional[str],
                         db_path: str = DB_PATH) -> Dict[str, Any]:
    """Registra a data real de troca da placa; ``trocada_em=None`` limpa o registro."""
    data = {"caso_id": caso_id, "placa": numero_placa, "data": trocada_em}
    apply_migrations(db_path)
    try:
        quando = None
        if trocada_em:
            quando = _data_obrigatoria(trocada_em, "a troca")
        with connect(db_path) as conn:
            repo = CasoRepo(conn)
            caso = repo.require(caso_id)
            if caso.instalacao is None:
                raise ValidationError("Caso ainda não instalado.")
            if numero_placa < 1 or numero_placa > caso.total_placas:
                raise ValidationError(f"Placa fora do planejamento do caso (1..{caso.total_placas}).")
            trocas = [t for t in caso.instalacao.trocas_reais if t.placa != numero_placa]
            if quando:
                trocas.append(TrocaReal(placa=numero_placa, trocada_em=quando))
            caso.instalacao.trocas_reais = sorted(trocas, key=lambda t: t.placa)
            caso.atualizado_em = agora_iso()
            repo.save(caso)
            AuditoriaRepo(conn).registrar(
                "caso", caso_id, "troca_real",
                f"Placa #{numero_placa}: troca real {quando or 'removida'}.",
            )
        log_transaction("registrar_troca_real", data, result={"data": quando})
        return ok(placa=numero_placa, trocada_em=quando)
    except AlinhadoresError as e:
        log_transaction("registrar_troca_real", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("registrar_troca_real_error", {"error": str(e)}, level="error")
        raise


def rework_placa(caso_id: str, numero_placa: int, arcada: str, motivo: Optional[str] = None,
                 item_origem_id: Optional[str] = None, db_path: str = DB_PATH,
                 eh_alinhador: Callable[[str], bool] = eh_alinhador,
                 hoje: Optional[date] = None) -> Dict[str, Any]:
    """Rework de uma placa do caso.

    Passos (mesma transação):
        1. banco: entradas da placa → 'defeituosa' + nova 'disponivel' por arcada;
        2. placa → 'rework' (único caminho para sair de 'entregue');
        3. OS de reconfecção e OS de produção de rework, se ainda não houver abertas.

    Lotes de entrega e contagens do paciente não são alterados.
    """
    data = {"caso_id": caso_id, "placa": numero_placa, "arcada": arcada, "motivo": motivo}
    log_system_event("rework_placa_start", data)
    apply_migrations(db_path)
    try:
        arcada = _arcada_obrigatoria(arcada)
        motivo = normalize_str(motivo) or "não informado"
        with connect(db_path) as conn:
            repo = CasoRepo(conn)
            caso = repo.require(caso_id)
            placa = caso.placa(numero_placa)
            if placa is None:
                raise ValidationError(f"Placa #{numero_placa} não existe no caso.")
            if placa.estado == "pendente":
                raise ValidationError("Placa ainda não foi produzida; não há o que refazer.")

            banco = rework(conn, caso_id, numero_placa, arcada, item_origem_id)

            placa.estado = "rework"
            placa.notas = f"Rework: {motivo}"
            aplica_ciclo_vida(caso)
            caso.atualizado_em = agora_iso()
            repo.save(caso)

            abertas = [i for i in ItemLabRepo(conn).list_by_placa(caso_id, numero_placa) if i.status != "prontas"]
            criadas = []
            comum = {
                "caso_id": caso_id,
                "arcada": arcada,
                "numero_placa": numero_placa,
                "prioridade": "Urgente",
                "data_prevista": placa.data_prevista,
            }
            if not any(i.tipo_solicitacao == "reconfeccao" for i in abertas):
                # refaz uma placa por arcada afetada
                item = cria_item(conn, {
                    **comum,
                    "qtd_superior": 1 if arcada in ("superior", "ambos") and caso.total_superior >= numero_placa else 0,
                    "qtd_inferior": 1 if arcada in ("inferior", "ambos") and caso.total_inferior >= numero_placa else 0,
                    "tipo_solicitacao": "reconfeccao",
                    "notas": f"Reconfecção da placa #{numero_placa}. Motivo: {motivo}",
                }, eh_alinhador, hoje or date.today())
                criadas.append(item.id)
            if not any(i.tipo_solicitacao == "producao" and i.rework for i in abertas):
                item = cria_item(conn, {
                    **comum,
                    "tipo_solicitacao": "producao",
                    "rework": True,
                    "notas": f"OS de produção para rework da placa #{numero_placa}. Motivo: {motivo}",
                }, eh_alinhador, hoje or date.today())
                criadas.append(item.id)

            AuditoriaRepo(conn).registrar(
                "caso", caso_id, "rework", f"Placa #{numero_placa} ({arcada}) enviada para rework. Motivo: {motivo}"
            )
        result = ok(**banco, itens_criados=criadas, status=caso.status)
        log_transaction("rework_placa", data, result=result)
        return result
    except AlinhadoresError as e:
        log_transaction("rework_placa", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("rework_placa_error", {"error": str(e)}, level="error")
        raise
