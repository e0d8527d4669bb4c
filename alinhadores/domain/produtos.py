# alinhadores/domain/produtos.py
"""
Catálogo de tipos de produto do laboratório.

Apenas os tipos `alinhador_*` participam do plano de placas e do banco de
reposições. Valores desconhecidos ou vazios caem no tipo padrão.
"""

from __future__ import annotations

from typing import Dict, Optional

from alinhadores.config import DEFAULTS


TIPOS_PRODUTO: Dict[str, str] = {
    "escaneamento": "Escaneamento",
    "alinhador_3m": "Alinhador 3 meses",
    "alinhador_6m": "Alinhador 6 meses",
    "alinhador_12m": "Alinhador 12 meses",
    "contencao": "Contenção",
    "guia_cirurgico": "Guia cirúrgico",
    "placa_bruxismo": "Placa de bruxismo",
    "placa_clareamento": "Placa de clareamento",
    "protetor_bucal": "Protetor bucal",
    "biomodelo": "Biomodelo",
}

# nomes antigos ainda presentes em cadastros
ALIASES: Dict[str, str] = {
    "protetor_esportivo": "protetor_bucal",
    "guia_implante": "guia_cirurgico",
    "guia_gengivoplastia": "guia_cirurgico",
    "protese_provisoria": "biomodelo",
}


def normaliza_tipo_produto(valor: Optional[str]) -> str:
    if valor is None:
        return DEFAULTS.tipo_produto
    s = str(valor).strip().lower()
    if not s:
        return DEFAULTS.tipo_produto
    s = ALIASES.get(s, s)
    return s if s in TIPOS_PRODUTO else DEFAULTS.tipo_produto


def eh_alinhador(tipo: Optional[str]) -> bool:
    return normaliza_tipo_produto(tipo).startswith("alinhador_")


def rotulo(tipo: Optional[str]) -> str:
    return TIPOS_PRODUTO[normaliza_tipo_produto(tipo)]
