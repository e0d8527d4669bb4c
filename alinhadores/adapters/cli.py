# alinhadores/adapters/cli.py
"""
CLI do laboratório de alinhadores (Typer).

Comandos principais:
- migrate                         -> aplica migrações e cria views
- params set/get/show             -> gerencia parâmetros globais
- caso criar/mostrar/listar       -> planos de tratamento
- os criar/mover/listar/excluir/antecipar/gerar/programar -> esteira de produção
- entrega lote/paciente/troca-real -> entregas ao profissional e ao paciente
- rework                          -> rework de uma placa
- banco semear/resumo             -> banco de reposições
- rel alertas/proxima/esteira/json -> relatórios
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from alinhadores.adapters.parsers import parse_data
from alinhadores.config import DB_PATH, DEFAULTS
from alinhadores.domain.models import ItemLab
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.views import create_views
from alinhadores.infra.repositories import ParamsRepo
from alinhadores.usecases.alertas import painel_alertas, proxima_troca
from alinhadores.usecases.banco_reposicao import resumo_banco, semear_banco
from alinhadores.usecases.casos import criar_caso, listar_casos, obter_caso
from alinhadores.usecases.entregas import (
    registrar_instalacao,
    registrar_lote_entrega,
    registrar_troca_real,
    rework_placa,
)
from alinhadores.usecases.esteira_producao import (
    antecipar_reposicao,
    criar_item_lab,
    excluir_item_lab,
    garantir_reposicoes_programadas,
    gerar_os_caso,
    listar_itens_lab,
    mover_item_lab,
    resumo_esteira,
)


app = typer.Typer(help="Laboratório de Alinhadores - CLI")
console = Console()

PARAMS = ("troca_dias", "alerta_aviso_dias", "alerta_elevado_dias", "antecedencia_reposicao_dias")

CORES_SEVERIDADE = {"urgente": "bold red", "alta": "bold yellow", "media": "cyan"}


# -----------------------
# util
# -----------------------

def _print_json(obj) -> None:
    """Fallback para impressão de JSON quando necessário."""
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _display_table(data: List[Dict[str, Any]], title: str = "Resultado") -> None:
    """Exibe uma lista de dicionários em tabela Rich."""
    if not data:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return

    table = Table(title=title, box=box.ROUNDED)
    columns = list(data[0].keys())
    for column in columns:
        if column in ("sup", "inf", "superior", "inferior", "qtd", "entregues", "placa", "dias_restantes"):
            table.add_column(column, justify="right")
        elif column.startswith("data"):
            table.add_column(column, justify="center")
        else:
            table.add_column(column)

    for row in data:
        values = []
        for col in columns:
            val = row.get(col, "")
            if col == "severidade":
                values.append(f"[{CORES_SEVERIDADE.get(val, 'white')}]{val}[/]")
            else:
                values.append("" if val is None else str(val))
        table.add_row(*values)

    console.print(table)


def _resultado(res: Dict[str, Any], sucesso: str) -> Dict[str, Any]:
    """Imprime o resultado de um caso de uso; sai com código 1 em caso de erro."""
    if not res.get("ok"):
        typer.echo(f"!! {res.get('erro')}: {res.get('mensagem')}")
        raise typer.Exit(code=1)
    typer.echo(f">> {sucesso}")
    return res


def _hoje(valor: Optional[str]) -> Optional[date]:
    if not valor:
        return None
    iso = parse_data(valor)
    if iso is None:
        typer.echo(f"!! Data inválida: {valor}")
        raise typer.Exit(code=1)
    return date.fromisoformat(iso)


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Aplica migrações e recria as views auxiliares."""
    apply_migrations(db_path)
    create_views(db_path)
    typer.echo(f">> Migrações aplicadas e views criadas em: {db_path}")


params_app = typer.Typer(help="Gerenciar parâmetros globais (troca e janelas de alerta).")
app.add_typer(params_app, name="params")


@params_app.command("set")
def cmd_params_set(
    troca_dias: Optional[int] = typer.Option(None, help="Intervalo padrão entre trocas (ex.: 7)"),
    alerta_aviso_dias: Optional[int] = typer.Option(None, help="Janela do aviso informativo (ex.: 15)"),
    alerta_elevado_dias: Optional[int] = typer.Option(None, help="Janela do aviso elevado (ex.: 10)"),
    antecedencia_reposicao_dias: Optional[int] = typer.Option(
        None, help="Dias antes da troca para abrir a reposição programada (ex.: 10)"
    ),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Define parâmetros globais (apenas os informados são alterados)."""
    apply_migrations(db_path)
    repo = ParamsRepo(db_path)
    informados = {
        "troca_dias": troca_dias,
        "alerta_aviso_dias": alerta_aviso_dias,
        "alerta_elevado_dias": alerta_elevado_dias,
        "antecedencia_reposicao_dias": antecedencia_reposicao_dias,
    }
    items = [(k, str(v)) for k, v in informados.items() if v is not None]
    if not items:
        typer.echo("Nada a alterar. Informe pelo menos um parâmetro.")
        raise typer.Exit(code=1)
    repo.set_many(items)
    typer.echo(">> Parâmetros atualizados.")


@params_app.command("get")
def cmd_params_get(
    chave: str = typer.Argument(..., help="Ex.: troca_dias | alerta_aviso_dias | alerta_elevado_dias"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Mostra um parâmetro específico."""
    apply_migrations(db_path)
    val = ParamsRepo(db_path).get(chave)
    typer.echo("(None)" if val is None else val)


@params_app.command("show")
def cmd_params_show(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Exibe os parâmetros efetivos (com fallback para defaults)."""
    apply_migrations(db_path)
    repo = ParamsRepo(db_path)
    linhas = [
        {"parametro": p, "valor": repo.get(p, str(getattr(DEFAULTS, p))), "padrao": getattr(DEFAULTS, p)}
        for p in PARAMS
    ]
    _display_table(linhas, title="Parâmetros do Sistema")
    console.print(f"[dim]Banco de dados: {db_path}[/dim]")


# -----------------------
# casos
# -----------------------

caso_app = typer.Typer(help="Planos de tratamento (casos).")
app.add_typer(caso_app, name="caso")


@caso_app.command("criar")
def cmd_caso_criar(
    superior: int = typer.Option(..., help="Total de placas superiores"),
    inferior: int = typer.Option(..., help="Total de placas inferiores"),
    caso_id: Optional[str] = typer.Option(None, "--id", help="ID do caso (gerado se omitido)"),
    paciente: Optional[str] = typer.Option(None, help="Nome do paciente"),
    codigo: Optional[str] = typer.Option(None, help="Código do tratamento"),
    produto: Optional[str] = typer.Option(None, help="Tipo de produto (ex.: alinhador_12m)"),
    troca_dias: Optional[int] = typer.Option(None, help="Dias entre trocas"),
    inicio: Optional[str] = typer.Option(None, help="Data de início (YYYY-MM-DD ou DD/MM/AAAA)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Cadastra um caso e semeia o banco de reposições."""
    res = criar_caso({
        "id": caso_id,
        "paciente": paciente,
        "codigo_tratamento": codigo,
        "tipo_produto": produto,
        "total_superior": superior,
        "total_inferior": inferior,
        "troca_dias": troca_dias,
        "data_inicio": inicio,
    }, db_path=db_path)
    _resultado(res, f"Caso criado: {res.get('id')}")


@caso_app.command("mostrar")
def cmd_caso_mostrar(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Mostra placas, lotes e fornecimento de um caso."""
    caso = obter_caso(caso_id, db_path=db_path)
    if caso is None:
        typer.echo(f"!! Caso não encontrado: {caso_id}")
        raise typer.Exit(code=1)
    forn = caso["fornecimento"]
    console.print(Panel(
        "\n".join([
            f"Paciente: {caso.get('paciente') or '-'}",
            f"Produto: {caso.get('tipo_produto')}",
            f"Status: {caso['status']} (fase {caso['fase']})",
            f"Placas: {caso['total_superior']} sup / {caso['total_inferior']} inf, troca a cada {caso['troca_dias']} dias",
            f"Entregues ao paciente: {forn['entregues_paciente']} de {forn['total_placas']}",
            f"Próxima troca: placa {forn['proxima_placa'] or '-'} em {forn['proxima_data'] or '-'}",
        ]),
        title=f"Caso {caso_id}",
    ))
    _display_table(
        [{"placa": p["numero"], "estado": p["estado"], "data_prevista": p["data_prevista"],
          "entregue_em": p["entregue_em"]} for p in caso["placas"]],
        title="Placas",
    )
    if caso["lotes_entrega"]:
        _display_table(
            [{"arcada": l["arcada"], "de": l["placa_inicial"], "ate": l["placa_final"],
              "qtd": l["quantidade"], "data": l["entregue_profissional_em"]} for l in caso["lotes_entrega"]],
            title="Lotes entregues ao profissional",
        )


@caso_app.command("listar")
def cmd_caso_listar(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Lista os casos cadastrados."""
    _display_table(listar_casos(db_path=db_path), title="Casos")


# -----------------------
# esteira (OS)
# -----------------------

os_app = typer.Typer(help="Esteira de produção (ordens de serviço).")
app.add_typer(os_app, name="os")


@os_app.command("criar")
def cmd_os_criar(
    placa: int = typer.Option(..., help="Número da placa"),
    caso_id: Optional[str] = typer.Option(None, "--caso", help="ID do caso vinculado"),
    arcada: Optional[str] = typer.Option(None, help="superior | inferior | ambos"),
    qtd_superior: int = typer.Option(0, help="Quantidade de placas superiores"),
    qtd_inferior: int = typer.Option(0, help="Quantidade de placas inferiores"),
    tipo: str = typer.Option("producao", help="producao | reconfeccao | reposicao_programada"),
    prioridade: str = typer.Option("Medio", help="Baixo | Medio | Urgente"),
    prazo: Optional[str] = typer.Option(None, help="Data prevista"),
    produto: Optional[str] = typer.Option(None, help="Tipo de produto (herda do caso se omitido)"),
    notas: Optional[str] = typer.Option(None, help="Observações"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Cria uma OS em 'aguardando_iniciar'."""
    res = criar_item_lab({
        "caso_id": caso_id,
        "numero_placa": placa,
        "arcada": arcada,
        "qtd_superior": qtd_superior,
        "qtd_inferior": qtd_inferior,
        "tipo_solicitacao": tipo,
        "prioridade": prioridade,
        "data_prevista": prazo,
        "tipo_produto": produto,
        "notas": notas,
    }, db_path=db_path)
    _resultado(res, f"OS criada: {res.get('id')} ({res.get('codigo_solicitacao')})")


@os_app.command("mover")
def cmd_os_mover(
    item_id: str = typer.Argument(..., help="ID da OS"),
    status: str = typer.Argument(..., help="aguardando_iniciar | em_producao | controle_qualidade | prontas"),
    sim: bool = typer.Option(False, "--sim", "-y", help="Confirma o início da produção sem perguntar"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Move a OS um passo na esteira."""
    def confirmar(item: ItemLab) -> bool:
        if sim:
            return True
        return typer.confirm(
            f"Iniciar produção da OS {item.codigo_solicitacao} (placa #{item.numero_placa}, "
            f"{item.qtd_superior} sup / {item.qtd_inferior} inf)? O banco de reposições será debitado."
        )

    res = mover_item_lab(item_id, status, confirmar=confirmar, db_path=db_path)
    _resultado(res, f"OS {item_id}: {res.get('status_anterior', res.get('status'))} -> {res.get('status')}")
    if res.get("debito"):
        d = res["debito"]
        typer.echo(f">> Banco debitado: {d['superior']} sup / {d['inferior']} inf")
    if res.get("reposicao_id"):
        typer.echo(f">> Reposição programada criada: {res['reposicao_id']}")


@os_app.command("gerar")
def cmd_os_gerar(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Gera a primeira OS de produção do caso (não duplica)."""
    res = gerar_os_caso(caso_id, db_path=db_path)
    situacao = "já existente" if res.get("ja_existia") else "criada"
    _resultado(res, f"OS de produção {situacao}: {res.get('id')} ({res.get('codigo_solicitacao')})")


@os_app.command("programar")
def cmd_os_programar(
    caso_id: Optional[str] = typer.Option(None, "--caso", help="Limita a um caso"),
    hoje: Optional[str] = typer.Option(None, help="Data de referência (padrão: hoje)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Abre as reposições programadas das placas com troca próxima."""
    res = garantir_reposicoes_programadas(_hoje(hoje), caso_id=caso_id, db_path=db_path)
    _resultado(
        res,
        f"Reposições programadas: {len(res.get('criadas', []))} criada(s), "
        f"{len(res.get('removidas', []))} duplicada(s) removida(s).",
    )


@os_app.command("listar")
def cmd_os_listar(
    caso_id: Optional[str] = typer.Option(None, "--caso", help="Filtra por caso"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Lista as OS por data prevista."""
    _display_table(listar_itens_lab(caso_id, db_path=db_path), title="Esteira de Produção")


@os_app.command("excluir")
def cmd_os_excluir(
    item_id: str = typer.Argument(..., help="ID da OS"),
    admin: bool = typer.Option(False, "--admin", help="Executa com privilégio elevado"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Exclui uma OS (exige --admin)."""
    res = excluir_item_lab(item_id, privilegiado=admin, db_path=db_path)
    _resultado(res, f"OS removida(s): {', '.join(res.get('removidos', []))}")


@os_app.command("antecipar")
def cmd_os_antecipar(
    item_id: str = typer.Argument(..., help="ID da reposição programada"),
    qtd_superior: int = typer.Option(0, help="Quantidade superior"),
    qtd_inferior: int = typer.Option(0, help="Quantidade inferior"),
    prazo: Optional[str] = typer.Option(None, help="Data prevista"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Converte uma reposição programada em OS de produção da próxima placa."""
    res = antecipar_reposicao(item_id, qtd_superior, qtd_inferior, data_prevista=prazo, db_path=db_path)
    _resultado(res, f"OS de produção criada: {res.get('id')} (placa #{res.get('numero_placa')})")


# -----------------------
# entregas e rework
# -----------------------

entrega_app = typer.Typer(help="Entregas ao profissional e ao paciente.")
app.add_typer(entrega_app, name="entrega")


@entrega_app.command("lote")
def cmd_entrega_lote(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    arcada: str = typer.Option(..., help="superior | inferior | ambos"),
    de: int = typer.Option(..., "--de", help="Placa inicial"),
    ate: int = typer.Option(..., "--ate", help="Placa final"),
    data: str = typer.Option(..., help="Data da entrega ao profissional"),
    nota: Optional[str] = typer.Option(None, help="Observação"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Registra um lote entregue ao profissional."""
    res = registrar_lote_entrega(caso_id, arcada, de, ate, data, nota=nota, db_path=db_path)
    _resultado(res, f"Lote registrado ({res.get('quantidade')} placas). Caso: {res.get('status')}")


@entrega_app.command("paciente")
def cmd_entrega_paciente(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    data: str = typer.Option(..., help="Data da entrega/instalação"),
    superior: int = typer.Option(0, help="Placas superiores entregues agora"),
    inferior: int = typer.Option(0, help="Placas inferiores entregues agora"),
    nota: Optional[str] = typer.Option(None, help="Observação"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Registra a instalação ou uma nova entrega ao paciente."""
    res = registrar_instalacao(caso_id, data, superior, inferior, nota=nota, db_path=db_path)
    _resultado(
        res,
        f"Paciente com {res.get('entregues_superior')} sup / {res.get('entregues_inferior')} inf. "
        f"Caso: {res.get('status')}",
    )


@entrega_app.command("troca-real")
def cmd_entrega_troca_real(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    placa: int = typer.Argument(..., help="Número da placa"),
    data: Optional[str] = typer.Option(None, help="Data real da troca (omita para limpar)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Registra (ou limpa) a data real de troca de uma placa."""
    res = registrar_troca_real(caso_id, placa, data, db_path=db_path)
    _resultado(res, f"Placa #{placa}: troca real {res.get('trocada_em') or 'removida'}")


@app.command("rework")
def cmd_rework(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    placa: int = typer.Argument(..., help="Número da placa"),
    arcada: str = typer.Option(..., help="superior | inferior | ambos"),
    motivo: Optional[str] = typer.Option(None, help="Motivo do rework"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Envia uma placa para rework (banco, placa e OS de refação)."""
    res = rework_placa(caso_id, placa, arcada, motivo=motivo, db_path=db_path)
    _resultado(
        res,
        f"Rework registrado: {res.get('defeituosas')} defeituosa(s), {res.get('restauradas')} reposta(s), "
        f"{len(res.get('itens_criados', []))} OS criada(s).",
    )


# -----------------------
# banco de reposições
# -----------------------

banco_app = typer.Typer(help="Banco de reposições.")
app.add_typer(banco_app, name="banco")


@banco_app.command("semear")
def cmd_banco_semear(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Garante o banco de reposições do caso."""
    res = semear_banco(caso_id, db_path=db_path)
    _resultado(res, f"Banco do caso {caso_id}: {res.get('criadas')} entrada(s) criada(s).")


@banco_app.command("resumo")
def cmd_banco_resumo(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Resumo do banco de reposições do caso."""
    res = resumo_banco(caso_id, db_path=db_path)
    _resultado(res, f"Banco de reposições do caso {caso_id}")
    _display_table(
        [{k: res[k] for k in ("contratado", "em_producao_ou_entregue", "saldo_restante", "rework", "defeituosas")}],
        title=f"Banco de Reposições: {caso_id}",
    )
    typer.echo(f"Saldo superior: {res['saldo_superior']} | Saldo inferior: {res['saldo_inferior']}")


# -----------------------
# relatórios
# -----------------------

rel_app = typer.Typer(help="Relatórios")
app.add_typer(rel_app, name="rel")


@rel_app.command("alertas")
def rel_alertas(
    hoje: Optional[str] = typer.Option(None, help="Data de referência (padrão: hoje)"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Alertas de reposição de todos os casos."""
    res = painel_alertas(_hoje(hoje), db_path=db_path)
    _display_table(
        [{k: a[k] for k in ("caso_id", "paciente", "severidade", "placa", "data_prevista", "dias_restantes", "mensagem")}
         for a in res],
        title="Alertas de Reposição",
    )


@rel_app.command("proxima")
def rel_proxima(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Próxima troca devida e cronograma do caso."""
    res = proxima_troca(caso_id, db_path=db_path)
    _resultado(res, f"Próxima troca: placa {res.get('placa') or '-'} em {res.get('data') or '-'}")
    _display_table(res["cronograma"], title="Cronograma de trocas")


@rel_app.command("esteira")
def rel_esteira(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Contagem de OS por status e tipo."""
    _display_table(resumo_esteira(db_path=db_path), title="Esteira")


@rel_app.command("json")
def rel_json(
    caso_id: str = typer.Argument(..., help="ID do caso"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Exporta o caso completo em JSON."""
    caso = obter_caso(caso_id, db_path=db_path)
    if caso is None:
        typer.echo(f"!! Caso não encontrado: {caso_id}")
        raise typer.Exit(code=1)
    _print_json(caso)


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
