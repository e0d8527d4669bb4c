# alinhadores/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: tabelas base (params, caso, item_lab, banco_reposicao, auditoria)
V2: coluna `rework` em item_lab e contador de revisões em caso
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    # Parâmetros K/V
    """
    CREATE TABLE IF NOT EXISTS params (
        chave TEXT PRIMARY KEY,
        valor TEXT
    );
    """,
    # Caso (plano de tratamento). Placas, lotes e instalação em JSON.
    """
    CREATE TABLE IF NOT EXISTS caso (
        id TEXT PRIMARY KEY,
        paciente TEXT,
        codigo_tratamento TEXT,
        tipo_produto TEXT,
        total_superior INTEGER NOT NULL DEFAULT 0,
        total_inferior INTEGER NOT NULL DEFAULT 0,
        troca_dias INTEGER NOT NULL DEFAULT 7,
        status TEXT NOT NULL DEFAULT 'planejamento',
        fase TEXT NOT NULL DEFAULT 'planejamento',
        placas_json TEXT NOT NULL DEFAULT '[]',
        lotes_json TEXT NOT NULL DEFAULT '[]',
        instalacao_json TEXT,
        criado_em TEXT,
        atualizado_em TEXT
    );
    """,
    # Ordens de serviço da esteira do laboratório
    """
    CREATE TABLE IF NOT EXISTS item_lab (
        id TEXT PRIMARY KEY,
        caso_id TEXT,
        arcada TEXT,          -- 'superior' | 'inferior' | 'ambos' | NULL
        numero_placa INTEGER NOT NULL,
        qtd_superior INTEGER NOT NULL DEFAULT 0,
        qtd_inferior INTEGER NOT NULL DEFAULT 0,
        tipo_solicitacao TEXT NOT NULL DEFAULT 'producao',
        status TEXT NOT NULL DEFAULT 'aguardando_iniciar',
        prioridade TEXT NOT NULL DEFAULT 'Medio',
        data_prevista TEXT,
        codigo_solicitacao TEXT,
        tipo_produto TEXT,
        paciente TEXT,
        notas TEXT,
        criado_em TEXT,
        atualizado_em TEXT,
        FOREIGN KEY (caso_id) REFERENCES caso(id)
    );
    """,
    # Banco de reposições: uma linha por placa por arcada
    """
    CREATE TABLE IF NOT EXISTS banco_reposicao (
        id TEXT PRIMARY KEY,
        caso_id TEXT NOT NULL,
        arcada TEXT NOT NULL,  -- 'superior' | 'inferior'
        numero_placa INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'disponivel',
        item_origem_id TEXT,
        entregue_em TEXT,
        criado_em TEXT,
        atualizado_em TEXT,
        FOREIGN KEY (caso_id) REFERENCES caso(id)
    );
    """,
    # Trilha de auditoria
    """
    CREATE TABLE IF NOT EXISTS auditoria (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        entidade TEXT NOT NULL,
        entidade_id TEXT NOT NULL,
        acao TEXT NOT NULL,
        mensagem TEXT,
        criado_em TEXT
    );
    """,
]


def _ensure_column(conn, table: str, column: str, ddl: str) -> None:
    """Adiciona coluna se não existir."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    cols = [r[1] for r in cur.fetchall()]  # r[1] é o nome da coluna
    if column not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {ddl};")


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.execute(sql)


def _apply_v2(conn) -> None:
    _ensure_column(conn, "item_lab", "rework", "rework INTEGER NOT NULL DEFAULT 0")
    _ensure_column(conn, "caso", "ultima_revisao", "ultima_revisao INTEGER NOT NULL DEFAULT 0")


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
