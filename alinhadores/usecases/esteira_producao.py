# alinhadores/usecases/esteira_producao.py
"""
UC: Esteira de produção do laboratório (OS).

- criar_item_lab(payload):                 nova OS em 'aguardando_iniciar'.
- mover_item_lab(id, status, confirmar):   move a OS um passo na esteira.
- excluir_item_lab(id, privilegiado):      exclui a OS (e o par de rework).
- antecipar_reposicao(id, ...):            converte uma reposição em OS de produção.
- gerar_os_caso(caso_id):                 primeira OS de produção do caso (idempotente).
- garantir_reposicoes_programadas(hoje):   abre as reposições programadas que estão perto da troca.
- listar_itens_lab(caso_id):               OS ordenadas por data prevista.
- resumo_esteira():                        contagem por status/tipo.

Obs.:
- Entrar em 'em_producao' exige arcada definida, quantidade > 0 para
  alinhadores e confirmação explícita (callback `confirmar`).
- A primeira entrada em produção debita o banco de reposições e, para OS
  de produção, pré-cadastra a reposição programada da placa.
- Tudo acontece numa única transação: qualquer erro desfaz a operação inteira.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

from alinhadores.adapters.parsers import normaliza_arcada, normalize_str, parse_data, parse_int
from alinhadores.config import DB_PATH, DEFAULTS
from alinhadores.domain.erros import AlinhadoresError, Cancelled, ValidationError, ok
from alinhadores.domain.models import PRIORIDADES, TIPOS_SOLICITACAO, Caso, ItemLab, novo_id
from alinhadores.domain.politicas import tipo_produto_efetivo, valida_plano, valida_transicao
from alinhadores.domain.produtos import eh_alinhador, normaliza_tipo_produto
from alinhadores.infra.db import agora_iso, connect
from alinhadores.infra.logger import (
    log_database_operation, log_esteira, log_system_event, log_transaction,
)
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import AuditoriaRepo, CasoRepo, ItemLabRepo, ParamsRepo
from alinhadores.infra.views import create_views
from alinhadores.usecases.banco_reposicao import debitar
from alinhadores.usecases.sincronizar_placas import sincronizar


Confirmacao = Callable[[ItemLab], bool]


def _resolver_codigo(conn, item_id: str, caso: Optional[Caso], tipo: str, informado: Optional[str]) -> str:
    """Código da solicitação: base do tratamento na primeira produção, depois base/N."""
    if informado:
        return informado
    if caso is None:
        return f"OS-{item_id.split('_')[-1]}"
    base = caso.codigo_base
    if tipo == "producao" and not ItemLabRepo(conn).existe_codigo(base):
        return base
    caso.ultima_revisao += 1
    caso.atualizado_em = agora_iso()
    CasoRepo(conn).save(caso)
    return f"{base}/{caso.ultima_revisao}"


def _quantidade(payload: Dict[str, Any], chave: str) -> int:
    q = parse_int(payload.get(chave) or 0)
    if q is None or q < 0:
        raise ValidationError(f"Quantidade inválida em {chave}: informe um inteiro >= 0.")
    return q


def cria_item(conn, payload: Dict[str, Any], eh_alinhador: Callable[[str], bool], hoje: date) -> ItemLab:
    arcada_raw = payload.get("arcada")
    arcada = normaliza_arcada(arcada_raw)
    if normalize_str(arcada_raw) and arcada is None:
        raise ValidationError(f"Arcada inválida: {arcada_raw}.")

    numero = parse_int(payload.get("numero_placa"))
    if numero is None or numero < 1:
        raise ValidationError("Número da placa deve ser um inteiro >= 1.")

    qs = _quantidade(payload, "qtd_superior")
    qi = _quantidade(payload, "qtd_inferior")

    tipo = payload.get("tipo_solicitacao") or "producao"
    if tipo not in TIPOS_SOLICITACAO:
        raise ValidationError(f"Tipo de solicitação inválido: {tipo}.")

    status = payload.get("status") or "aguardando_iniciar"
    if status != "aguardando_iniciar":
        raise ValidationError("Novas OS entram na esteira em aguardando_iniciar.")

    prioridade = payload.get("prioridade") or "Medio"
    if prioridade not in PRIORIDADES:
        raise ValidationError(f"Prioridade inválida: {prioridade}.")

    caso_id = normalize_str(payload.get("caso_id"))
    caso = CasoRepo(conn).require(caso_id) if caso_id else None
    if caso is not None:
        valida_plano(caso, qs, qi)

    prazo_raw = payload.get("data_prevista")
    data_prevista = parse_data(prazo_raw)
    if prazo_raw and not data_prevista:
        raise ValidationError(f"Data prevista inválida: {prazo_raw}.")
    if not data_prevista and caso is not None:
        placa = caso.placa(numero)
        data_prevista = placa.data_prevista if placa else None
    if not data_prevista:
        data_prevista = (hoje + timedelta(days=DEFAULTS.prazo_os_dias)).isoformat()

    item_id = novo_id("os")
    agora = agora_iso()
    item = ItemLab(
        id=item_id,
        numero_placa=numero,
        arcada=arcada,
        caso_id=caso_id,
        qtd_superior=qs,
        qtd_inferior=qi,
        tipo_solicitacao=tipo,
        prioridade=prioridade,
        data_prevista=data_prevista,
        codigo_solicitacao=_resolver_codigo(conn, item_id, caso, tipo, normalize_str(payload.get("codigo_solicitacao"))),
        tipo_produto=normaliza_tipo_produto(payload["tipo_produto"]) if payload.get("tipo_produto") else None,
        paciente=normalize_str(payload.get("paciente")) or (caso.paciente if caso else None),
        notas=normalize_str(payload.get("notas")),
        rework=bool(payload.get("rework")),
        criado_em=agora,
        atualizado_em=agora,
    )
    ItemLabRepo(conn).insert(item)
    log_database_operation("item_lab", "INSERT", 1, item_id=item.id, caso_id=caso_id)
    sincronizar(conn, item, eh_alinhador)
    AuditoriaRepo(conn).registrar(
        "item_lab", item.id, "criado", f"OS {item.codigo_solicitacao} ({tipo}) da placa #{numero}."
    )
    if caso_id:
        AuditoriaRepo(conn).registrar("caso", caso_id, "os_criada", f"OS {item.codigo_solicitacao} criada.")
    log_esteira("create", item.id, item.status, codigo=item.codigo_solicitacao, tipo=tipo)
    return item


def _pre_cadastra_reposicao(conn, origem: ItemLab, eh_alinhador: Callable[[str], bool], hoje: date) -> Optional[ItemLab]:
    if not origem.caso_id:
        return None
    if ItemLabRepo(conn).existe_reposicao_programada(origem.caso_id, origem.numero_placa):
        return None
    caso = CasoRepo(conn).require(origem.caso_id)
    placa = caso.placa(origem.numero_placa)
    payload = {
        "caso_id": origem.caso_id,
        "arcada": origem.arcada,
        "numero_placa": origem.numero_placa,
        "tipo_solicitacao": "reposicao_programada",
        "prioridade": origem.prioridade,
        "data_prevista": (placa.data_prevista if placa and placa.data_prevista else None) or origem.data_prevista,
        "tipo_produto": origem.tipo_produto,
        "paciente": origem.paciente,
        "notas": f"Reposição inicial gerada no início da confecção da placa #{origem.numero_placa}.",
    }
    return cria_item(conn, payload, eh_alinhador, hoje)


def criar_item_lab(payload: Dict[str, Any], db_path: str = DB_PATH,
                   eh_alinhador: Callable[[str], bool] = eh_alinhador,
                   hoje: Optional[date] = None) -> Dict[str, Any]:
    """Cria uma OS e projeta o status dela sobre as placas do caso."""
    log_system_event("criar_item_lab_start", {"caso_id": payload.get("caso_id")})
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            item = cria_item(conn, payload, eh_alinhador, hoje or date.today())
        log_transaction("criar_item_lab", payload, result={"id": item.id, "codigo": item.codigo_solicitacao})
        return ok(id=item.id, codigo_solicitacao=item.codigo_solicitacao)
    except AlinhadoresError as e:
        log_transaction("criar_item_lab", payload, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("criar_item_lab_error", {"error": str(e)}, level="error")
        raise


def mover_item_lab(item_id: str, proximo_status: str, confirmar: Optional[Confirmacao] = None,
                   db_path: str = DB_PATH, eh_alinhador: Callable[[str], bool] = eh_alinhador,
                   hoje: Optional[date] = None) -> Dict[str, Any]:
    """Move a OS na esteira.

    Entrar em 'em_producao' chama ``confirmar(item)`` antes de qualquer
    gravação; ausência de callback ou resposta negativa cancela.
    """
    data = {"item_id": item_id, "status": proximo_status}
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            itens = ItemLabRepo(conn)
            item = itens.require(item_id)
            if proximo_status == item.status:
                return ok(id=item.id, status=item.status, alterado=False)
            valida_transicao(item.status, proximo_status)

            caso = CasoRepo(conn).require(item.caso_id) if item.caso_id else None
            if caso is not None:
                placa = caso.placa(item.numero_placa)
                if placa is not None and placa.estado == "entregue":
                    raise ValidationError("Não é permitido regredir/editar status de placa já entregue ao dentista.")

            iniciando = proximo_status == "em_producao"
            if iniciando:
                if not item.arcada:
                    raise ValidationError("Defina a arcada do produto antes de iniciar produção.")
                if eh_alinhador(tipo_produto_efetivo(item, caso)) and item.qtd_total <= 0:
                    raise ValidationError("Defina quantidades por arcada antes de iniciar produção.")
                if confirmar is None or not confirmar(item):
                    raise Cancelled("Produção cancelada pelo usuário.")

            anterior = item.status
            item.status = proximo_status
            item.atualizado_em = agora_iso()
            itens.update(item)
            log_database_operation("item_lab", "UPDATE", 1, item_id=item.id, status=item.status)
            sincronizar(conn, item, eh_alinhador)

            debito = None
            reposicao = None
            if iniciando and anterior == "aguardando_iniciar":
                debito = debitar(conn, item, eh_alinhador)
                if item.tipo_solicitacao == "producao":
                    reposicao = _pre_cadastra_reposicao(conn, item, eh_alinhador, hoje or date.today())

            AuditoriaRepo(conn).registrar(
                "item_lab", item.id, "status", f"{anterior} -> {item.status}"
            )
        log_esteira("move", item.id, item.status, anterior=anterior)
        result = ok(
            id=item.id,
            status_anterior=anterior,
            status=item.status,
            alterado=True,
            debito=debito,
            reposicao_id=reposicao.id if reposicao else None,
        )
        log_transaction("mover_item_lab", data, result=result)
        return result
    except AlinhadoresError as e:
        log_transaction("mover_item_lab", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("mover_item_lab_error", {"error": str(e)}, level="error")
        raise


def excluir_item_lab(item_id: str, privilegiado: bool = False, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Exclui a OS e o par de rework aberto da mesma placa.

    Débitos já feitos no banco não são estornados.
    """
    data = {"item_id": item_id, "privilegiado": privilegiado}
    apply_migrations(db_path)
    try:
        if not privilegiado:
            raise ValidationError("Exclusão de OS exige privilégio elevado.")
        with connect(db_path) as conn:
            itens = ItemLabRepo(conn)
            item = itens.require(item_id)
            ids = [item.id]
            if item.caso_id:
                pares = [p for p in itens.list_by_placa(item.caso_id, item.numero_placa)
                         if p.id != item.id and p.status != "prontas"]
                if item.tipo_solicitacao == "reconfeccao":
                    ids += [p.id for p in pares if p.tipo_solicitacao == "producao" and p.rework]
                elif item.rework:
                    ids += [p.id for p in pares if p.tipo_solicitacao == "reconfeccao"]
            n = itens.delete(ids)
            log_database_operation("item_lab", "DELETE", n, item_id=item.id)
            alvo = item.caso_id or item.id
            AuditoriaRepo(conn).registrar(
                "caso" if item.caso_id else "item_lab", alvo, "os_excluida",
                f"OS {item.codigo_solicitacao} excluída ({n} registro(s)).",
            )
        log_esteira("delete", item_id, None, removidos=ids)
        log_transaction("excluir_item_lab", data, result={"removidos": ids})
        return ok(removidos=ids)
    except AlinhadoresError as e:
        log_transaction("excluir_item_lab", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("excluir_item_lab_error", {"error": str(e)}, level="error")
        raise


def antecipar_reposicao(item_id: str, qtd_superior: int, qtd_inferior: int,
                        data_prevista: Optional[str] = None, arcada: Optional[str] = None,
                        db_path: str = DB_PATH, eh_alinhador: Callable[[str], bool] = eh_alinhador,
                        hoje: Optional[date] = None) -> Dict[str, Any]:
    """Transforma uma reposição programada em OS de produção da próxima placa não entregue."""
    data = {"item_id": item_id, "qtd_superior": qtd_superior, "qtd_inferior": qtd_inferior}
    apply_migrations(db_path)
    try:
        with connect(db_path) as conn:
            itens = ItemLabRepo(conn)
            origem = itens.require(item_id)
            if origem.tipo_solicitacao != "reposicao_programada":
                raise ValidationError("Somente reposições programadas podem ser antecipadas.")
            if not origem.caso_id:
                raise ValidationError("Reposição sem caso vinculado.")
            caso = CasoRepo(conn).require(origem.caso_id)
            proxima = next((p.numero for p in caso.placas if p.estado != "entregue"), None)
            if proxima is None:
                raise ValidationError("Todas as placas do caso já foram entregues.")

            itens.delete([origem.id])
            novo = cria_item(conn, {
                "caso_id": caso.id,
                "arcada": arcada or origem.arcada,
                "numero_placa": proxima,
                "qtd_superior": qtd_superior,
                "qtd_inferior": qtd_inferior,
                "tipo_solicitacao": "producao",
                "prioridade": "Urgente",
                "data_prevista": data_prevista or origem.data_prevista,
                "codigo_solicitacao": origem.codigo_solicitacao,
                "tipo_produto": origem.tipo_produto,
                "paciente": origem.paciente,
                "notas": f"Antecipação da reposição {origem.codigo_solicitacao}.",
            }, eh_alinhador, hoje or date.today())
        log_transaction("antecipar_reposicao", data, result={"id": novo.id, "placa": novo.numero_placa})
        return ok(id=novo.id, numero_placa=novo.numero_placa, codigo_solicitacao=novo.codigo_solicitacao)
    except AlinhadoresError as e:
        log_transaction("antecipar_reposicao", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("antecipar_reposicao_error", {"error": str(e)}, level="error")
        raise


def _arcada_do_caso(caso: Caso) -> str:
    if caso.total_superior > 0 and caso.total_inferior > 0:
        return "ambos"
    return "superior" if caso.total_superior > 0 else "inferior"


def gerar_os_caso(caso_id: str, db_path: str = DB_PATH,
                  eh_alinhador: Callable[[str], bool] = eh_alinhador,
                  hoje: Optional[date] = None) -> Dict[str, Any]:
    """Gera a primeira OS de produção do caso; se já existir, devolve a existente."""
    data = {"caso_id": caso_id}
    apply_migrations(db_path)
    try:
        hoje = hoje or date.today()
        with connect(db_path) as conn:
            caso = CasoRepo(conn).require(caso_id)
            existente = next(
                (i for i in ItemLabRepo(conn).list_all(caso_id) if i.tipo_solicitacao == "producao"), None
            )
            if existente is not None:
                return ok(id=existente.id, codigo_solicitacao=existente.codigo_solicitacao, ja_existia=True)
            item = cria_item(conn, {
                "caso_id": caso_id,
                "arcada": _arcada_do_caso(caso),
                "numero_placa": 1,
                "tipo_solicitacao": "producao",
                "data_prevista": (hoje + timedelta(days=DEFAULTS.prazo_os_dias)).isoformat(),
                "notas": "OS gerada a partir do caso. Defina a quantidade por arcada antes de produzir.",
            }, eh_alinhador, hoje)
        log_transaction("gerar_os_caso", data, result={"id": item.id, "codigo": item.codigo_solicitacao})
        return ok(id=item.id, codigo_solicitacao=item.codigo_solicitacao, ja_existia=False)
    except AlinhadoresError as e:
        log_transaction("gerar_os_caso", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("gerar_os_caso_error", {"error": str(e)}, level="error")
        raise


def _deduplica_reposicoes(conn, caso_id: str) -> List[str]:
    """Remove reposições programadas repetidas (mesma placa e data) ainda não iniciadas.

    Fica a atualizada por último.
    """
    manter: Dict[Any, ItemLab] = {}
    remover: List[str] = []
    for item in ItemLabRepo(conn).list_all(caso_id):
        if item.tipo_solicitacao != "reposicao_programada" or item.status != "aguardando_iniciar":
            continue
        chave = (item.numero_placa, item.data_prevista)
        atual = manter.get(chave)
        if atual is None:
            manter[chave] = item
        elif (item.atualizado_em or "") > (atual.atualizado_em or ""):
            remover.append(atual.id)
            manter[chave] = item
        else:
            remover.append(item.id)
    if remover:
        n = ItemLabRepo(conn).delete(remover)
        log_database_operation("item_lab", "DELETE", n, caso_id=caso_id, motivo="reposicao_duplicada")
    return remover


def garantir_reposicoes_programadas(hoje: Optional[date] = None, caso_id: Optional[str] = None,
                                    db_path: str = DB_PATH,
                                    eh_alinhador: Callable[[str], bool] = eh_alinhador) -> Dict[str, Any]:
    """Abre reposições programadas para as placas pendentes cuja troca está próxima.

    Só vale para casos que já tiveram placa entregue e ainda têm placa
    pendente. Cada placa pendente com data prevista recebe uma OS
    'reposicao_programada' quando faltam ``antecedencia_reposicao_dias``
    dias ou menos para a data; uma OS para a mesma placa e data não é
    criada de novo. No fim, repetidas não iniciadas são removidas.
    """
    data = {"caso_id": caso_id, "hoje": hoje.isoformat() if hoje else None}
    log_system_event("garantir_reposicoes_start", data)
    apply_migrations(db_path)
    try:
        hoje = hoje or date.today()
        antecedencia = ParamsRepo(db_path).get_int(
            "antecedencia_reposicao_dias", DEFAULTS.antecedencia_reposicao_dias
        )
        criadas: List[str] = []
        removidas: List[str] = []
        with connect(db_path) as conn:
            casos_repo = CasoRepo(conn)
            casos = [casos_repo.require(caso_id)] if caso_id else casos_repo.list_all()
            itens = ItemLabRepo(conn)
            for caso in casos:
                estados = {p.estado for p in caso.placas}
                if "entregue" not in estados or "pendente" not in estados:
                    continue
                for placa in caso.placas:
                    if placa.estado != "pendente" or not placa.data_prevista:
                        continue
                    if date.fromisoformat(placa.data_prevista) - timedelta(days=antecedencia) > hoje:
                        continue
                    ja_existe = any(
                        i.tipo_solicitacao == "reposicao_programada" and i.data_prevista == placa.data_prevista
                        for i in itens.list_by_placa(caso.id, placa.numero)
                    )
                    if ja_existe:
                        continue
                    item = cria_item(conn, {
                        "caso_id": caso.id,
                        "arcada": _arcada_do_caso(caso),
                        "numero_placa": placa.numero,
                        "tipo_solicitacao": "reposicao_programada",
                        "data_prevista": placa.data_prevista,
                        "notas": f"Reposição programada automática da placa #{placa.numero} ({placa.data_prevista}).",
                    }, eh_alinhador, hoje)
                    criadas.append(item.id)
                removidas += _deduplica_reposicoes(conn, caso.id)
            if criadas:
                log_esteira("auto_reposicao", ",".join(criadas), "aguardando_iniciar", casos=len(casos))
        result = ok(criadas=criadas, removidas=removidas)
        log_transaction("garantir_reposicoes_programadas", data, result=result)
        return result
    except AlinhadoresError as e:
        log_transaction("garantir_reposicoes_programadas", data, error=e.mensagem)
        return e.to_result()
    except Exception as e:
        log_system_event("garantir_reposicoes_programadas_error", {"error": str(e)}, level="error")
        raise


def listar_itens_lab(caso_id: Optional[str] = None, db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    apply_migrations(db_path)
    with connect(db_path) as conn:
        itens = ItemLabRepo(conn).list_all(caso_id)
    return [
        {
            "id": i.id,
            "codigo": i.codigo_solicitacao,
            "caso": i.caso_id or "",
            "placa": i.numero_placa,
            "arcada": i.arcada or "",
            "sup": i.qtd_superior,
            "inf": i.qtd_inferior,
            "tipo": i.tipo_solicitacao,
            "status": i.status,
            "prioridade": i.prioridade,
            "data_prevista": i.data_prevista,
        }
        for i in itens
    ]


def resumo_esteira(db_path: str = DB_PATH) -> List[Dict[str, Any]]:
    apply_migrations(db_path)
    create_views(db_path)
    with connect(db_path) as conn:
        cur = conn.execute("SELECT status, tipo_solicitacao, qtd FROM vw_esteira ORDER BY status, tipo_solicitacao")
        return [dict(r) for r in cur.fetchall()]
