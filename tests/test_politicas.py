import pytest

from alinhadores.domain.erros import InvalidTransition, ValidationError
from alinhadores.domain.models import Caso, ItemLab, LoteEntrega, Placa
from alinhadores.domain.politicas import (
    aplica_estado_monotonico,
    deriva_ciclo_vida,
    entregue_por_arcada,
    faixa_lote,
    pode_mover,
    quantidades_debito,
    valida_plano,
    valida_transicao,
)
from alinhadores.domain.produtos import eh_alinhador, normaliza_tipo_produto


def _caso(sup=24, inf=20, lotes=None):
    return Caso(
        id="c1",
        total_superior=sup,
        total_inferior=inf,
        placas=[Placa(numero=n) for n in range(1, max(sup, inf) + 1)],
        lotes_entrega=lotes or [],
    )


def _item(arcada="ambos", placa=1, qs=3, qi=3, tipo="producao", status="em_producao"):
    return ItemLab(id="os_1", numero_placa=placa, arcada=arcada, caso_id="c1",
                   qtd_superior=qs, qtd_inferior=qi, tipo_solicitacao=tipo, status=status)


@pytest.mark.parametrize(
    "atual,proximo,esperado",
    [
        ("aguardando_iniciar", "em_producao", True),
        ("em_producao", "controle_qualidade", True),
        ("controle_qualidade", "prontas", True),
        ("controle_qualidade", "em_producao", True),
        ("prontas", "controle_qualidade", True),
        ("em_producao", "prontas", False),
        ("aguardando_iniciar", "controle_qualidade", False),
        ("prontas", "aguardando_iniciar", False),
        ("prontas", "entregue", False),
    ],
)
def test_pode_mover_um_passo(atual, proximo, esperado):
    assert pode_mover(atual, proximo) is esperado


def test_valida_transicao_rejeita_salto():
    with pytest.raises(InvalidTransition):
        valida_transicao("em_producao", "prontas")
    with pytest.raises(ValidationError):
        valida_transicao("em_producao", "qualquer")


@pytest.mark.parametrize(
    "atual,alvo,esperado",
    [
        ("entregue", "pendente", "entregue"),
        ("entregue", "em_producao", "entregue"),
        ("entregue", "rework", "entregue"),
        ("pronta", "em_producao", "pronta"),
        ("pronta", "pendente", "pronta"),
        ("em_producao", "pendente", "em_producao"),
        ("pendente", "pendente", "pendente"),
        ("pendente", "em_producao", "em_producao"),
        ("em_producao", "rework", "rework"),
        ("rework", "pronta", "pronta"),
    ],
)
def test_estado_monotonico(atual, alvo, esperado):
    assert aplica_estado_monotonico(atual, alvo) == esperado


def test_entregue_por_arcada_lote_ambos_conta_nas_duas():
    caso = _caso(lotes=[
        LoteEntrega(id="l1", arcada="ambos", placa_inicial=1, placa_final=3, quantidade=3,
                    entregue_profissional_em="2024-01-01"),
        LoteEntrega(id="l2", arcada="superior", placa_inicial=4, placa_final=5, quantidade=2,
                    entregue_profissional_em="2024-01-10"),
    ])
    assert entregue_por_arcada(caso) == {"superior": 5, "inferior": 3}


def test_faixa_lote_ambos_sem_entregas():
    assert faixa_lote(_caso(), _item()) == (1, 3)


def test_faixa_lote_ambos_intersecao_apos_entregas():
    caso = _caso(lotes=[
        LoteEntrega(id="l1", arcada="superior", placa_inicial=1, placa_final=5, quantidade=5,
                    entregue_profissional_em="2024-01-01"),
    ])
    # superior começa em 6..8, inferior em 1..3: sem interseção
    assert faixa_lote(caso, _item()) is None


def test_faixa_lote_arcada_unica_limita_ao_total():
    caso = _caso(sup=24, inf=20)
    assert faixa_lote(caso, _item(arcada="inferior", placa=19, qs=0, qi=5)) == (19, 20)
    # quantidade zero vira lote de uma placa
    assert faixa_lote(caso, _item(arcada="superior", placa=7, qs=0, qi=0)) == (7, 7)


def test_faixa_lote_ambos_com_quantidade_zero_e_vazia():
    assert faixa_lote(_caso(), _item(qs=3, qi=0)) is None


def test_quantidades_debito():
    assert quantidades_debito(_item(arcada="superior", qs=0, qi=0)) == (1, 0)
    assert quantidades_debito(_item(arcada="inferior", qs=0, qi=4)) == (0, 4)
    assert quantidades_debito(_item(arcada="ambos", qs=3, qi=0)) == (3, 0)


def test_ciclo_vida():
    caso = _caso(sup=2, inf=2)
    assert deriva_ciclo_vida(caso) is None
    caso.placas[0].estado = "em_producao"
    assert deriva_ciclo_vida(caso) == ("em_producao", "em_producao")
    caso.lotes_entrega.append(LoteEntrega(id="l", arcada="ambos", placa_inicial=1, placa_final=1,
                                          quantidade=1, entregue_profissional_em="2024-01-01"))
    assert deriva_ciclo_vida(caso) == ("em_entrega", "em_producao")
    for p in caso.placas:
        p.estado = "entregue"
    assert deriva_ciclo_vida(caso) == ("finalizado", "finalizado")


def test_valida_plano():
    caso = _caso(sup=24, inf=20)
    valida_plano(caso, 24, 20)
    with pytest.raises(ValidationError, match="inferior"):
        valida_plano(caso, 1, 21)


@pytest.mark.parametrize(
    "valor,esperado",
    [
        ("alinhador_6m", "alinhador_6m"),
        ("protetor_esportivo", "protetor_bucal"),
        ("guia_implante", "guia_cirurgico"),
        ("", "alinhador_12m"),
        (None, "alinhador_12m"),
        ("desconhecido", "alinhador_12m"),
    ],
)
def test_normaliza_tipo_produto(valor, esperado):
    assert normaliza_tipo_produto(valor) == esperado


def test_eh_alinhador():
    assert eh_alinhador("alinhador_3m")
    assert eh_alinhador(None)
    assert not eh_alinhador("contencao")
    assert not eh_alinhador("protese_provisoria")
