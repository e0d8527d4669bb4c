# alinhadores/config.py
"""
Configurações globais e valores padrão do motor de produção de alinhadores.
"""

import os
from dataclasses import dataclass


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("ALINHADORES_DB", os.path.join(os.getcwd(), "alinhadores.db"))


@dataclass
class DefaultConfig:
    """Valores padrão para parâmetros do sistema."""
    troca_dias: int = 7  # intervalo padrão entre trocas de placa
    alerta_aviso_dias: int = 15  # janela do aviso informativo de reposição
    alerta_elevado_dias: int = 10  # janela do aviso elevado
    prazo_os_dias: int = 7  # prazo padrão de uma OS sem data prevista
    antecedencia_reposicao_dias: int = 10  # reposição programada aberta N dias antes da troca
    tipo_produto: str = "alinhador_12m"


# Instância global dos valores padrão
DEFAULTS = DefaultConfig()
