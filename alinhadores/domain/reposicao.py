# alinhadores/domain/reposicao.py
"""
Previsão de reposição de placas para o paciente.

Funções puras que leem o livro-razão do caso (instalação, entregas ao
paciente e trocas reais) e respondem:

- qual o cronograma de trocas de placa;
- qual a próxima placa devida e em que data;
- se há alerta de reposição para uma data de referência.

Nada aqui grava no banco. Sem data de instalação não há cronograma,
alertas nem próxima data.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from alinhadores.config import DEFAULTS
from alinhadores.domain.models import Caso


SEVERIDADE_ORDEM = {"urgente": 0, "alta": 1, "media": 2}


def _data(valor: Any) -> date:
    if isinstance(valor, date):
        return valor
    return date.fromisoformat(str(valor)[:10])


def entregues_ao_paciente(caso: Caso) -> int:
    """Placas já entregues ao paciente.

    Conta a maior placa N tal que toda arcada que tem a placa N já a
    recebeu: com as duas arcadas ativas é o par completo (mínimo entre
    as duas), e uma arcada já concluída deixa de limitar as placas que
    só existem na outra.
    """
    inst = caso.instalacao
    if inst is None:
        return 0
    cobertura = [
        caso.total_placas if entregues >= total else entregues
        for total, entregues in (
            (caso.total_superior, inst.entregues_superior),
            (caso.total_inferior, inst.entregues_inferior),
        )
        if total > 0
    ]
    return min(cobertura) if cobertura else 0


def cronograma_trocas(caso: Caso) -> List[Dict[str, Any]]:
    """Data de troca de cada placa.

    A placa 1 é usada a partir da instalação e cada placa seguinte
    ``troca_dias`` depois da anterior. Uma data de troca real registrada
    para a placa N substitui a data prevista dela e reancora as seguintes.
    """
    inst = caso.instalacao
    if inst is None or not inst.instalada_em:
        return []

    reais = {t.placa: _data(t.trocada_em) for t in inst.trocas_reais}
    atual = _data(inst.instalada_em)
    out: List[Dict[str, Any]] = []
    for numero in range(1, caso.total_placas + 1):
        if numero > 1:
            atual = atual + timedelta(days=caso.troca_dias)
        real = reais.get(numero)
        if real is not None:
            atual = real
        out.append({"placa": numero, "data_prevista": atual, "data_real": real})
    return out


def data_troca_placa(caso: Caso, numero: int) -> Optional[date]:
    for linha in cronograma_trocas(caso):
        if linha["placa"] == numero:
            return linha["data_prevista"]
    return None


def proxima_placa_devida(caso: Caso) -> Optional[int]:
    if caso.instalacao is None:
        return None
    proxima = entregues_ao_paciente(caso) + 1
    if proxima > caso.total_placas:
        return None
    return proxima


def proxima_data_troca(caso: Caso) -> Optional[date]:
    numero = proxima_placa_devida(caso)
    if numero is None:
        return None
    return data_troca_placa(caso, numero)


def alertas_reposicao(
    caso: Caso,
    hoje: Optional[date] = None,
    aviso_dias: int = DEFAULTS.alerta_aviso_dias,
    elevado_dias: int = DEFAULTS.alerta_elevado_dias,
) -> List[Dict[str, Any]]:
    """Alerta de reposição do caso (no máximo um).

    Dias até a próxima troca devida:
        - ``< 0``                         → ``atrasado`` (urgente)
        - ``0 .. elevado_dias``           → ``elevado`` (alta)
        - ``elevado_dias+1 .. aviso_dias`` → ``aviso`` (media)
    """
    hoje = hoje or date.today()
    numero = proxima_placa_devida(caso)
    if numero is None:
        return []
    vencimento = data_troca_placa(caso, numero)
    if vencimento is None:
        return []

    dias = (vencimento - hoje).days
    if dias < 0:
        tipo, severidade = "atrasado", "urgente"
        titulo = "Reposição atrasada"
        mensagem = f"A placa #{numero} deveria ter sido entregue há {-dias} dia(s)."
    elif dias <= elevado_dias:
        tipo, severidade = "elevado", "alta"
        titulo = f"Reposição em até {elevado_dias} dias"
        mensagem = f"A placa #{numero} vence em {dias} dia(s)."
    elif dias <= aviso_dias:
        tipo, severidade = "aviso", "media"
        titulo = f"Reposição em até {aviso_dias} dias"
        mensagem = f"A placa #{numero} vence em {dias} dia(s)."
    else:
        return []

    return [{
        "id": f"{caso.id}_{tipo}_{vencimento.isoformat()}",
        "caso_id": caso.id,
        "paciente": caso.paciente,
        "tipo": tipo,
        "severidade": severidade,
        "titulo": titulo,
        "mensagem": mensagem,
        "placa": numero,
        "data_prevista": vencimento.isoformat(),
        "dias_restantes": dias,
    }]


def resumo_fornecimento(caso: Caso) -> Dict[str, Any]:
    entregues = entregues_ao_paciente(caso)
    total = caso.total_placas
    proxima = proxima_data_troca(caso)
    return {
        "caso_id": caso.id,
        "total_placas": total,
        "entregues_paciente": entregues,
        "restantes": max(total - entregues, 0),
        "proxima_placa": proxima_placa_devida(caso),
        "proxima_data": proxima.isoformat() if proxima else None,
    }
