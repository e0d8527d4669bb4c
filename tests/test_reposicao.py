from datetime import date

import pytest

from alinhadores.domain.models import Caso, Instalacao, Placa, TrocaReal
from alinhadores.domain.reposicao import (
    alertas_reposicao,
    cronograma_trocas,
    entregues_ao_paciente,
    proxima_data_troca,
    proxima_placa_devida,
    resumo_fornecimento,
)


def _caso(sup=24, inf=20, instalada_em="2024-01-01", entregues=(0, 0), trocas=None):
    inst = None
    if instalada_em:
        inst = Instalacao(
            instalada_em=instalada_em,
            entregues_superior=entregues[0],
            entregues_inferior=entregues[1],
            trocas_reais=trocas or [],
        )
    return Caso(
        id="c1",
        total_superior=sup,
        total_inferior=inf,
        troca_dias=7,
        placas=[Placa(numero=n) for n in range(1, max(sup, inf) + 1)],
        instalacao=inst,
    )


def test_sem_instalacao_nao_ha_previsao():
    caso = _caso(instalada_em=None)
    assert cronograma_trocas(caso) == []
    assert proxima_data_troca(caso) is None
    assert alertas_reposicao(caso, date(2024, 1, 1)) == []


def test_proxima_data_troca_placa_1_e_2():
    assert proxima_data_troca(_caso()) == date(2024, 1, 1)
    assert proxima_data_troca(_caso(entregues=(1, 1))) == date(2024, 1, 8)


def test_entregues_par_usa_minimo_entre_arcadas():
    assert entregues_ao_paciente(_caso(entregues=(5, 3))) == 3
    assert entregues_ao_paciente(_caso(sup=10, inf=0, entregues=(4, 0))) == 4
    assert entregues_ao_paciente(_caso(sup=0, inf=10, entregues=(0, 6))) == 6


def test_troca_real_reancora_cronograma():
    caso = _caso(trocas=[TrocaReal(placa=3, trocada_em="2024-01-20")])
    datas = {l["placa"]: l["data_prevista"] for l in cronograma_trocas(caso)}
    assert datas[2] == date(2024, 1, 8)
    assert datas[3] == date(2024, 1, 20)
    assert datas[4] == date(2024, 1, 27)


def test_proxima_placa_none_quando_tudo_entregue():
    caso = _caso(sup=2, inf=2, entregues=(2, 2))
    assert proxima_placa_devida(caso) is None
    assert alertas_reposicao(caso, date(2030, 1, 1)) == []


def test_arcada_concluida_nao_limita_a_outra():
    concluido = _caso(sup=24, inf=20, entregues=(24, 20))
    assert entregues_ao_paciente(concluido) == 24
    assert proxima_placa_devida(concluido) is None
    assert proxima_data_troca(concluido) is None
    assert alertas_reposicao(concluido, date(2024, 12, 1)) == []
    assert resumo_fornecimento(concluido)["restantes"] == 0

    # placas 21..24 só existem na arcada superior
    assert proxima_placa_devida(_caso(sup=24, inf=20, entregues=(20, 20))) == 21
    assert proxima_placa_devida(_caso(sup=24, inf=20, entregues=(22, 20))) == 23
    assert proxima_placa_devida(_caso(sup=24, inf=20, entregues=(24, 18))) == 19


@pytest.mark.parametrize(
    "hoje,tipo,severidade",
    [
        (date(2023, 12, 20), "aviso", "media"),      # 12 dias
        (date(2023, 12, 17), "aviso", "media"),      # 15 dias
        (date(2023, 12, 22), "elevado", "alta"),     # 10 dias
        (date(2024, 1, 1), "elevado", "alta"),       # 0 dias
        (date(2024, 1, 2), "atrasado", "urgente"),   # -1 dia
    ],
)
def test_niveis_de_alerta(hoje, tipo, severidade):
    alertas = alertas_reposicao(_caso(), hoje)
    assert len(alertas) == 1
    assert alertas[0]["tipo"] == tipo
    assert alertas[0]["severidade"] == severidade
    assert alertas[0]["placa"] == 1


def test_sem_alerta_fora_da_janela():
    assert alertas_reposicao(_caso(), date(2023, 12, 16)) == []


def test_janelas_configuraveis():
    alertas = alertas_reposicao(_caso(), date(2023, 12, 10), aviso_dias=30, elevado_dias=20)
    assert alertas[0]["tipo"] == "aviso"


def test_resumo_fornecimento():
    r = resumo_fornecimento(_caso(entregues=(3, 3)))
    assert r["total_placas"] == 24
    assert r["entregues_paciente"] == 3
    assert r["restantes"] == 21
    assert r["proxima_placa"] == 4
    assert r["proxima_data"] == "2024-01-22"
