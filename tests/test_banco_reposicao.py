from collections import Counter

import pytest

from alinhadores.domain.erros import InsufficientBalance
from alinhadores.domain.models import EntradaBanco, LoteEntrega
from alinhadores.infra.db import connect
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import AuditoriaRepo, BancoRepo
from alinhadores.usecases.banco_reposicao import (
    debitar_banco,
    marcar_entregue,
    marcar_lote_entregue,
    resumo_banco,
    rework_banco,
    selecionar_disponiveis,
    semear_banco,
)
from alinhadores.usecases.casos import criar_caso
from alinhadores.usecases.esteira_producao import criar_item_lab


def _db(tmp_path):
    db_path = str(tmp_path / "banco_test.sqlite")
    apply_migrations(db_path)
    return db_path


def _seed_caso(db_path, caso_id="c1", sup=24, inf=20, produto="alinhador_12m"):
    res = criar_caso({"id": caso_id, "total_superior": sup, "total_inferior": inf,
                      "tipo_produto": produto}, db_path=db_path)
    assert res["ok"], res
    return caso_id


def _seed_item(db_path, caso_id="c1", arcada="ambos", placa=1, qs=3, qi=3):
    res = criar_item_lab({"caso_id": caso_id, "arcada": arcada, "numero_placa": placa,
                          "qtd_superior": qs, "qtd_inferior": qi}, db_path=db_path)
    assert res["ok"], res
    return res["id"]


def _entradas(db_path, caso_id="c1"):
    with connect(db_path) as conn:
        return BancoRepo(conn).list_by_caso(caso_id)


def _status(db_path, caso_id="c1"):
    return Counter((e.arcada, e.status) for e in _entradas(db_path, caso_id))


def test_semear_cria_uma_entrada_por_placa_e_e_idempotente(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path)
    st = _status(db_path)
    assert st[("superior", "disponivel")] == 24
    assert st[("inferior", "disponivel")] == 20

    res = semear_banco("c1", db_path=db_path)
    assert res["ok"] and res["criadas"] == 0
    assert len(_entradas(db_path)) == 44


def test_semear_caso_inexistente(tmp_path):
    db_path = _db(tmp_path)
    res = semear_banco("nao_existe", db_path=db_path)
    assert res["ok"] is False
    assert res["erro"] == "not_found"


def test_debito_consome_as_primeiras_placas(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path)
    item_id = _seed_item(db_path)

    res = debitar_banco(item_id, db_path=db_path)
    assert res["ok"], res
    assert res["consumidas"] == {"superior": 3, "inferior": 3}

    em_producao = sorted((e.arcada, e.numero_placa) for e in _entradas(db_path) if e.status == "em_producao")
    assert em_producao == [("inferior", 1), ("inferior", 2), ("inferior", 3),
                           ("superior", 1), ("superior", 2), ("superior", 3)]
    assert all(e.item_origem_id == item_id for e in _entradas(db_path) if e.status == "em_producao")

    resumo = resumo_banco("c1", db_path=db_path)
    assert resumo["saldo_superior"] == 21
    assert resumo["saldo_inferior"] == 17
    assert resumo["em_producao_ou_entregue"] == 6
    assert resumo["contratado"] == 44
    assert resumo["por_arcada"]["superior"]["em_producao"] == 3

    # a mesma OS não consome o banco duas vezes
    res = debitar_banco(item_id, db_path=db_path)
    assert res["ok"] and res["consumidas"] is None
    assert resumo_banco("c1", db_path=db_path)["saldo_superior"] == 21


def test_saldo_insuficiente_nao_altera_o_banco(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, sup=2, inf=2)
    primeiro = _seed_item(db_path, arcada="superior", qs=2, qi=0)
    assert debitar_banco(primeiro, db_path=db_path)["ok"]

    antes = _status(db_path)
    segundo = _seed_item(db_path, arcada="superior", placa=2, qs=1, qi=0)
    res = debitar_banco(segundo, db_path=db_path)
    assert res["ok"] is False
    assert res["erro"] == "insufficient_balance"
    assert res["disponivel"] == 0
    assert res["solicitado"] == 1
    assert _status(db_path) == antes


def test_debito_ambos_valida_as_duas_arcadas_antes_de_gravar(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, sup=3, inf=3)
    assert debitar_banco(_seed_item(db_path, arcada="inferior", qs=0, qi=3), db_path=db_path)["ok"]

    res = debitar_banco(_seed_item(db_path, arcada="ambos", qs=1, qi=1), db_path=db_path)
    assert res["erro"] == "insufficient_balance"
    assert res["arcada"] == "inferior"
    st = _status(db_path)
    assert st[("superior", "disponivel")] == 3


def test_debito_ignora_produto_que_nao_e_alinhador(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, produto="contencao")
    res = debitar_banco(_seed_item(db_path), db_path=db_path)
    assert res["ok"]
    assert res["consumidas"] == {"superior": 0, "inferior": 0}
    assert _status(db_path)[("superior", "disponivel")] == 24


def test_debito_sem_caso_vinculado(tmp_path):
    db_path = _db(tmp_path)
    res = criar_item_lab({"arcada": "superior", "numero_placa": 1, "qtd_superior": 1}, db_path=db_path)
    assert res["codigo_solicitacao"].startswith("OS-")
    assert debitar_banco(res["id"], db_path=db_path)["consumidas"] == {"superior": 0, "inferior": 0}


def test_selecao_ignora_placas_repetidas():
    entradas = [
        EntradaBanco(id="a", caso_id="c1", arcada="superior", numero_placa=2),
        EntradaBanco(id="b", caso_id="c1", arcada="superior", numero_placa=1),
        EntradaBanco(id="c", caso_id="c1", arcada="superior", numero_placa=1),
        EntradaBanco(id="d", caso_id="c1", arcada="superior", numero_placa=3, status="entregue"),
    ]
    escolhidas = selecionar_disponiveis(entradas, "superior", 2)
    assert [e.id for e in escolhidas] == ["b", "a"]
    with pytest.raises(InsufficientBalance) as exc:
        selecionar_disponiveis(entradas, "superior", 3)
    assert exc.value.disponivel == 2


def test_marcar_entregue_ignora_defeituosas(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, sup=5, inf=5)
    rework_banco("c1", 2, "superior", db_path=db_path)

    lote = LoteEntrega(id="l1", arcada="superior", placa_inicial=1, placa_final=3, quantidade=3,
                       entregue_profissional_em="2024-01-05")
    with connect(db_path) as conn:
        n = marcar_lote_entregue(conn, "c1", lote)
    assert n == 3

    por_placa = [(e.numero_placa, e.status) for e in _entradas(db_path) if e.arcada == "superior"]
    assert (2, "defeituosa") in por_placa
    assert sorted(s for p, s in por_placa if p == 2) == ["defeituosa", "entregue"]
    assert all(e.entregue_em == "2024-01-05" for e in _entradas(db_path) if e.status == "entregue")
    assert _status(db_path)[("inferior", "entregue")] == 0


def test_rework_arcada_unica_e_ambos(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, sup=5, inf=5)

    res = rework_banco("c1", 2, "superior", db_path=db_path)
    assert (res["defeituosas"], res["restauradas"]) == (1, 1)

    res = rework_banco("c1", 3, "ambos", db_path=db_path)
    assert (res["defeituosas"], res["restauradas"]) == (2, 2)

    disponiveis = Counter((e.arcada, e.numero_placa) for e in _entradas(db_path) if e.status == "disponivel")
    assert max(disponiveis.values()) == 1
    assert len(_entradas(db_path)) == 10 + 1 + 2


def test_rework_sem_entrada_previa_restaura_mesmo_assim(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, sup=3, inf=0)
    res = rework_banco("c1", 2, "ambos", db_path=db_path)
    assert (res["defeituosas"], res["restauradas"]) == (1, 2)
    assert _status(db_path)[("inferior", "disponivel")] == 1


def test_resumo_conta_defeituosas_fora_do_contratado(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, sup=2, inf=2)
    rework_banco("c1", 1, "ambos", db_path=db_path)
    resumo = resumo_banco("c1", db_path=db_path)
    assert resumo["defeituosas"] == 2
    assert resumo["contratado"] == 4
    assert resumo["saldo_restante"] == 4


def test_marcar_entregue_registra_auditoria(tmp_path):
    db_path = _db(tmp_path)
    _seed_caso(db_path, sup=5, inf=5)
    lote = LoteEntrega(id="l1", arcada="ambos", placa_inicial=1, placa_final=2, quantidade=2,
                       entregue_profissional_em="2024-01-10")
    res = marcar_entregue("c1", lote, db_path=db_path)
    assert res["ok"], res
    assert res["entregues"] == 4
    with connect(db_path) as conn:
        acoes = [a["acao"] for a in AuditoriaRepo(conn).list_by_entidade("c1")]
    assert "banco_entregue" in acoes


def test_caso_inexistente_nas_operacoes_do_banco(tmp_path):
    db_path = _db(tmp_path)
    lote = LoteEntrega(id="l1", arcada="superior", placa_inicial=1, placa_final=1, quantidade=1,
                       entregue_profissional_em="2024-01-10")
    for res in (
        marcar_entregue("nao_existe", lote, db_path=db_path),
        resumo_banco("nao_existe", db_path=db_path),
        rework_banco("nao_existe", 1, "superior", db_path=db_path),
    ):
        assert res["ok"] is False
        assert res["erro"] == "not_found"
    assert _entradas(db_path, "nao_existe") == []
