"""
Utilidades de parsing para valores digitados pelo operador.

Este módulo interpreta datas, arcadas e inteiros no formato em que
chegam da CLI ou de cadastros antigos (por exemplo, "15/01/2024",
"Sup", "ambas"). O objetivo é devolver valores
normalizados ou None quando o valor não puder ser interpretado.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

_DATA_BR_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

_ARCADAS = {
    "superior": "superior",
    "sup": "superior",
    "s": "superior",
    "inferior": "inferior",
    "inf": "inferior",
    "i": "inferior",
    "ambos": "ambos",
    "ambas": "ambos",
    "a": "ambos",
}


def normalize_str(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = str(x).strip()
    return s or None


def parse_int(val: Any) -> Optional[int]:
    """Inteiro a partir de texto ("3", "3.0", " 3 "); None se não for possível."""
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    s = str(val).strip().replace(",", ".")
    if not s:
        return None
    try:
        f = float(s)
    except ValueError:
        return None
    return int(f) if f.is_integer() else None


def parse_data(val: Any) -> Optional[str]:
    """Normaliza uma data para ISO (YYYY-MM-DD).

    Aceita ``date``/``datetime``, ``YYYY-MM-DD`` (com ou sem hora) e
    ``DD/MM/AAAA``. Retorna None para vazio ou formato inválido.

    Exemplos:
        "2024-01-08"          → "2024-01-08"
        "2024-01-08T10:00:00" → "2024-01-08"
        "8/1/2024"            → "2024-01-08"
    """
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date().isoformat()
    if isinstance(val, date):
        return val.isoformat()
    s = str(val).strip()
    if not s:
        return None
    m = _DATA_BR_RE.match(s)
    try:
        if m:
            d, mth, y = (int(g) for g in m.groups())
            return date(y, mth, d).isoformat()
        return date.fromisoformat(s[:10]).isoformat()
    except ValueError:
        return None


def normaliza_arcada(val: Any) -> Optional[str]:
    """'Sup' → 'superior', 'ambas' → 'ambos'; None para vazio ou desconhecido."""
    s = normalize_str(val)
    if s is None:
        return None
    return _ARCADAS.get(s.lower())
