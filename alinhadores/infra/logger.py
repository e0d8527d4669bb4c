# alinhadores/infra/logger.py
"""
Sistema de logging das operações do laboratório.

Este módulo configura e fornece loggers para registrar as operações
críticas do sistema: transações dos casos de uso, movimentos da esteira,
movimentos do banco de reposições e operações no banco de dados.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = False
# Flag global para habilitar/desabilitar output (também liga os arquivos de log)
ENABLE_OUTPUT = False

# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    O arquivo só é aberto na primeira mensagem (delay=True), então importar
    o módulo não cria arquivos.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger

# Diretório base para logs (na pasta do módulo, ou ALINHADORES_LOGS_DIR)
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = Path(os.environ.get("ALINHADORES_LOGS_DIR", str(BASE_DIR / "logs")))

LOG_FILES = {
    "transactions": LOGS_DIR / "transactions.log",
    "esteira": LOGS_DIR / "esteira.log",
    "banco": LOGS_DIR / "banco.log",
    "database": LOGS_DIR / "database.log",
    "system": LOGS_DIR / "system.log",
}

transaction_logger = setup_logger('alinhadores.transactions', str(LOG_FILES["transactions"]))
esteira_logger = setup_logger('alinhadores.esteira', str(LOG_FILES["esteira"]))
banco_logger = setup_logger('alinhadores.banco', str(LOG_FILES["banco"]))
database_logger = setup_logger('alinhadores.database', str(LOG_FILES["database"]))
system_logger = setup_logger('alinhadores.system', str(LOG_FILES["system"]))


def _ativo() -> bool:
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return False
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    return True

def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma transação completa no log.

    Args:
        operation: Nome do caso de uso (criar_item_lab, mover_item_lab, ...)
        data: Dados de entrada da transação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not _ativo():
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")

def log_esteira(action: str, item_id: str, status: Optional[str] = None, **kwargs) -> None:
    """
    Log específico para movimentos da esteira de produção.

    Args:
        action: Ação realizada (create, move, delete)
        item_id: ID da OS
        status: Status resultante (opcional)
        **kwargs: Dados adicionais
    """
    if not _ativo():
        return
    log_data = {"action": action, "item_id": item_id, "status": status, **kwargs}
    esteira_logger.info(f"ESTEIRA_{action.upper()}: {log_data}")

def log_banco(action: str, caso_id: str, quantidade: int = 0, **kwargs) -> None:
    """Log específico para movimentos do banco de reposições."""
    if not _ativo():
        return
    log_data = {"action": action, "caso_id": caso_id, "quantidade": quantidade, **kwargs}
    banco_logger.info(f"BANCO_{action.upper()}: {log_data}")

def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de dados.

    Args:
        table: Nome da tabela
        operation: Operação SQL (INSERT, UPDATE, DELETE, SELECT)
        affected_rows: Número de linhas afetadas
        **kwargs: Dados adicionais
    """
    if not _ativo():
        return
    log_data = {"table": table, "operation": operation, "affected_rows": affected_rows, **kwargs}
    database_logger.info(f"DB_{operation}: {log_data}")

def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not _ativo():
        return
    log_data = {"event": event, "details": details or {}}
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")

def get_log_summary(log_type: str = "transactions", lines: int = 100) -> Optional[str]:
    """
    Obtém um resumo dos logs recentes.

    Args:
        log_type: Tipo de log (transactions, esteira, banco, database, system)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return None

    log_file = LOG_FILES.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    with open(log_file, 'r', encoding='utf-8') as f:
        all_lines = f.readlines()
    return ''.join(all_lines[-lines:])
