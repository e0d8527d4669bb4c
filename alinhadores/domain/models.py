# alinhadores/domain/models.py
"""
Modelos (dataclasses) do domínio.

Observação importante:
- O caso (tratamento) é lido e gravado inteiro: placas, lotes e instalação
  são serializados como JSON em colunas da tabela `caso`.
- Datas trafegam como strings ISO (YYYY-MM-DD); timestamps como ISO completo.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
from uuid import uuid4


ARCADAS = ("superior", "inferior", "ambos")
ARCADAS_BANCO = ("superior", "inferior")

ESTADOS_PLACA = ("pendente", "em_producao", "pronta", "entregue", "rework")
STATUS_ITEM = ("aguardando_iniciar", "em_producao", "controle_qualidade", "prontas")
TIPOS_SOLICITACAO = ("producao", "reconfeccao", "reposicao_programada")
PRIORIDADES = ("Baixo", "Medio", "Urgente")
STATUS_BANCO = ("disponivel", "em_producao", "entregue", "rework", "defeituosa")
STATUS_CASO = ("planejamento", "em_producao", "em_entrega", "finalizado")


def novo_id(prefixo: str) -> str:
    return f"{prefixo}_{uuid4().hex[:12]}"


@dataclass
class Placa:
    """Uma placa do plano de tratamento (compartilhada pelas duas arcadas)."""
    numero: int
    estado: str = "pendente"
    data_prevista: Optional[str] = None
    entregue_em: Optional[str] = None
    notas: Optional[str] = None


@dataclass
class LoteEntrega:
    """Lote entregue pelo laboratório ao profissional."""
    id: str
    arcada: str
    placa_inicial: int
    placa_final: int
    quantidade: int
    entregue_profissional_em: str
    nota: Optional[str] = None


@dataclass
class LotePaciente:
    """Lote entregue pelo profissional ao paciente."""
    id: str
    placa_inicial: int
    placa_final: int
    quantidade: int
    entregue_em: str
    nota: Optional[str] = None


@dataclass
class TrocaReal:
    placa: int
    trocada_em: str


@dataclass
class Instalacao:
    instalada_em: str
    entregues_superior: int = 0
    entregues_inferior: int = 0
    lotes_paciente: List[LotePaciente] = field(default_factory=list)
    trocas_reais: List[TrocaReal] = field(default_factory=list)
    nota: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Instalacao":
        return cls(
            instalada_em=d["instalada_em"],
            entregues_superior=int(d.get("entregues_superior") or 0),
            entregues_inferior=int(d.get("entregues_inferior") or 0),
            lotes_paciente=[LotePaciente(**l) for l in d.get("lotes_paciente") or []],
            trocas_reais=[TrocaReal(**t) for t in d.get("trocas_reais") or []],
            nota=d.get("nota"),
        )


@dataclass
class Caso:
    """Plano de tratamento do paciente (livro-razão do caso)."""
    id: str
    paciente: Optional[str] = None
    codigo_tratamento: Optional[str] = None
    tipo_produto: Optional[str] = None
    total_superior: int = 0
    total_inferior: int = 0
    troca_dias: int = 7
    placas: List[Placa] = field(default_factory=list)
    lotes_entrega: List[LoteEntrega] = field(default_factory=list)
    instalacao: Optional[Instalacao] = None
    status: str = "planejamento"
    fase: str = "planejamento"
    ultima_revisao: int = 0
    criado_em: Optional[str] = None
    atualizado_em: Optional[str] = None

    @property
    def total_placas(self) -> int:
        return max(self.total_superior, self.total_inferior)

    @property
    def codigo_base(self) -> str:
        return self.codigo_tratamento or self.id

    def total_da_arcada(self, arcada: str) -> int:
        if arcada == "superior":
            return self.total_superior
        if arcada == "inferior":
            return self.total_inferior
        return self.total_placas

    def placa(self, numero: int) -> Optional[Placa]:
        for p in self.placas:
            if p.numero == numero:
                return p
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Caso":
        inst = d.get("instalacao")
        return cls(
            id=d["id"],
            paciente=d.get("paciente"),
            codigo_tratamento=d.get("codigo_tratamento"),
            tipo_produto=d.get("tipo_produto"),
            total_superior=int(d.get("total_superior") or 0),
            total_inferior=int(d.get("total_inferior") or 0),
            troca_dias=int(d.get("troca_dias") or 7),
            placas=[Placa(**p) for p in d.get("placas") or []],
            lotes_entrega=[LoteEntrega(**l) for l in d.get("lotes_entrega") or []],
            instalacao=Instalacao.from_dict(inst) if inst else None,
            status=d.get("status") or "planejamento",
            fase=d.get("fase") or "planejamento",
            ultima_revisao=int(d.get("ultima_revisao") or 0),
            criado_em=d.get("criado_em"),
            atualizado_em=d.get("atualizado_em"),
        )


@dataclass
class ItemLab:
    """Ordem de serviço (OS) na esteira do laboratório."""
    id: str
    numero_placa: int
    arcada: Optional[str] = None
    caso_id: Optional[str] = None
    qtd_superior: int = 0
    qtd_inferior: int = 0
    tipo_solicitacao: str = "producao"
    status: str = "aguardando_iniciar"
    prioridade: str = "Medio"
    data_prevista: Optional[str] = None
    codigo_solicitacao: Optional[str] = None
    tipo_produto: Optional[str] = None
    paciente: Optional[str] = None
    notas: Optional[str] = None
    rework: bool = False  # OS de produção gerada por rework de placa
    criado_em: Optional[str] = None
    atualizado_em: Optional[str] = None

    @property
    def qtd_total(self) -> int:
        return int(self.qtd_superior or 0) + int(self.qtd_inferior or 0)


@dataclass
class EntradaBanco:
    """Linha do banco de reposições: uma placa de uma arcada de um caso."""
    id: str
    caso_id: str
    arcada: str
    numero_placa: int
    status: str = "disponivel"
    item_origem_id: Optional[str] = None
    entregue_em: Optional[str] = None
    criado_em: Optional[str] = None
    atualizado_em: Optional[str] = None
