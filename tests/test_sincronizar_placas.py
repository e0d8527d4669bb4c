import pytest

from alinhadores.domain.erros import NotFound, ValidationError
from alinhadores.domain.models import Caso, ItemLab, LoteEntrega, Placa
from alinhadores.infra.db import connect
from alinhadores.infra.migrations import apply_migrations
from alinhadores.infra.repositories import CasoRepo, ItemLabRepo
from alinhadores.usecases.casos import criar_caso
from alinhadores.usecases.sincronizar_placas import projetar_item, sincronizar, sincronizar_item_com_caso


def _caso(sup=6, inf=6, estados=None):
    estados = estados or {}
    return Caso(
        id="c1",
        total_superior=sup,
        total_inferior=inf,
        placas=[Placa(numero=n, estado=estados.get(n, "pendente")) for n in range(1, max(sup, inf) + 1)],
    )


def _item(status="em_producao", arcada="ambos", placa=1, qs=3, qi=3, tipo="producao", caso_id="c1"):
    return ItemLab(id="os_1", numero_placa=placa, arcada=arcada, caso_id=caso_id,
                   qtd_superior=qs, qtd_inferior=qi, tipo_solicitacao=tipo, status=status)


def _estados(caso):
    return [p.estado for p in caso.placas]


def test_projecao_aplica_na_faixa_do_lote():
    novo = projetar_item(_caso(), _item())
    assert _estados(novo) == ["em_producao"] * 3 + ["pendente"] * 3
    assert novo.status == "em_producao"


def test_projecao_nao_altera_o_caso_original():
    caso = _caso()
    projetar_item(caso, _item())
    assert _estados(caso) == ["pendente"] * 6


@pytest.mark.parametrize(
    "status,esperado",
    [
        ("aguardando_iniciar", "pendente"),
        ("em_producao", "em_producao"),
        ("controle_qualidade", "rework"),
        ("prontas", "pronta"),
    ],
)
def test_mapeamento_status_para_placa(status, esperado):
    novo = projetar_item(_caso(), _item(status=status, arcada="superior", qs=1, qi=0))
    assert novo.placas[0].estado == esperado


def test_placa_entregue_nunca_regride():
    caso = _caso(estados={1: "entregue", 2: "pronta"})
    for status in ("aguardando_iniciar", "em_producao", "controle_qualidade", "prontas"):
        novo = projetar_item(caso, _item(status=status))
        assert novo.placas[0].estado == "entregue"


def test_em_producao_nao_rebaixa_pronta():
    # faixa começa em 1: placa 1 pendente, 2 pronta, 3 pendente
    novo = projetar_item(_caso(estados={2: "pronta"}), _item())
    assert _estados(novo)[:3] == ["em_producao", "pronta", "em_producao"]


def test_reconfeccao_afeta_apenas_uma_placa():
    caso = _caso(estados={1: "entregue", 2: "rework", 3: "entregue"})
    novo = projetar_item(caso, _item(status="em_producao", tipo="reconfeccao", placa=2))
    assert _estados(novo)[:3] == ["entregue", "em_producao", "entregue"]


def test_faixa_pula_placas_ja_entregues_por_lote():
    caso = _caso(estados={1: "entregue", 2: "entregue"})
    caso.lotes_entrega.append(LoteEntrega(id="l1", arcada="ambos", placa_inicial=1, placa_final=2,
                                          quantidade=2, entregue_profissional_em="2024-01-01"))
    novo = projetar_item(caso, _item(placa=1, qs=2, qi=2))
    assert _estados(novo) == ["entregue", "entregue", "em_producao", "em_producao", "pendente", "pendente"]
    assert novo.status == "em_entrega"


def test_ambos_sem_intersecao_nao_faz_nada():
    caso = _caso()
    caso.lotes_entrega.append(LoteEntrega(id="l1", arcada="superior", placa_inicial=1, placa_final=4,
                                          quantidade=4, entregue_profissional_em="2024-01-01"))
    novo = projetar_item(caso, _item(placa=1, qs=1, qi=1))
    assert _estados(novo) == _estados(caso)


def test_placa_fora_do_plano():
    with pytest.raises(ValidationError):
        projetar_item(_caso(), _item(placa=7))
    with pytest.raises(ValidationError):
        projetar_item(_caso(), _item(placa=0))


def test_todas_entregues_finaliza():
    caso = _caso(sup=2, inf=2, estados={1: "entregue", 2: "entregue"})
    novo = projetar_item(caso, _item(qs=1, qi=1))
    assert (novo.status, novo.fase) == ("finalizado", "finalizado")


# -------------------------
# com banco de dados
# -------------------------

def _db(tmp_path):
    db_path = str(tmp_path / "sync_test.sqlite")
    apply_migrations(db_path)
    return db_path


def _grava_item(db_path, item):
    with connect(db_path) as conn:
        ItemLabRepo(conn).insert(item)


def _carrega_caso(db_path, caso_id="c1"):
    with connect(db_path) as conn:
        return CasoRepo(conn).get(caso_id)


def test_sem_caso_vinculado_e_noop(tmp_path):
    db_path = _db(tmp_path)
    _grava_item(db_path, _item(caso_id=None))
    res = sincronizar_item_com_caso("os_1", db_path=db_path)
    assert res == {"ok": True, "item_id": "os_1", "alterado": False}


def test_caso_inexistente(tmp_path):
    db_path = _db(tmp_path)
    with connect(db_path) as conn:
        with pytest.raises(NotFound):
            sincronizar(conn, _item(caso_id="fantasma"))


def test_sincroniza_e_persiste(tmp_path):
    db_path = _db(tmp_path)
    criar_caso({"id": "c1", "total_superior": 6, "total_inferior": 6}, db_path=db_path)
    _grava_item(db_path, _item())
    res = sincronizar_item_com_caso("os_1", db_path=db_path)
    assert res["ok"] and res["alterado"]
    caso = _carrega_caso(db_path)
    assert _estados(caso) == ["em_producao"] * 3 + ["pendente"] * 3
    assert caso.status == "em_producao"


def test_produto_nao_alinhador_nao_mexe_nas_placas(tmp_path):
    db_path = _db(tmp_path)
    criar_caso({"id": "c1", "total_superior": 6, "total_inferior": 6, "tipo_produto": "placa_bruxismo"},
               db_path=db_path)
    _grava_item(db_path, _item())
    res = sincronizar_item_com_caso("os_1", db_path=db_path)
    assert res["ok"] and not res["alterado"]
    assert _estados(_carrega_caso(db_path)) == ["pendente"] * 6


def test_catalogo_injetado(tmp_path):
    db_path = _db(tmp_path)
    criar_caso({"id": "c1", "total_superior": 6, "total_inferior": 6}, db_path=db_path)
    _grava_item(db_path, _item())
    res = sincronizar_item_com_caso("os_1", db_path=db_path, eh_alinhador=lambda tipo: False)
    assert not res["alterado"]


def test_placa_fora_do_plano_nao_grava(tmp_path):
    db_path = _db(tmp_path)
    criar_caso({"id": "c1", "total_superior": 6, "total_inferior": 6}, db_path=db_path)
    _grava_item(db_path, _item(placa=9))
    antes = _carrega_caso(db_path)
    res = sincronizar_item_com_caso("os_1", db_path=db_path)
    assert res["ok"] is False
    assert res["erro"] == "validation_error"
    assert _carrega_caso(db_path) == antes


def test_sincroniza_item_corrigido_sem_gravar(tmp_path):
    db_path = _db(tmp_path)
    criar_caso({"id": "c1", "total_superior": 6, "total_inferior": 6}, db_path=db_path)
    _grava_item(db_path, _item(status="aguardando_iniciar"))
    corrigido = _item(status="prontas")
    res = sincronizar_item_com_caso(corrigido, db_path=db_path)
    assert res == {"ok": True, "item_id": "os_1", "alterado": True}
    assert _estados(_carrega_caso(db_path)) == ["pronta"] * 3 + ["pendente"] * 3
    with connect(db_path) as conn:
        assert ItemLabRepo(conn).get("os_1").status == "aguardando_iniciar"
