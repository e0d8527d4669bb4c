# alinhadores/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

Classes:
- ParamsRepo        (abre a própria conexão)
- CasoRepo          (recebe a conexão da transação)
- ItemLabRepo       (recebe a conexão da transação)
- BancoRepo         (recebe a conexão da transação)
- AuditoriaRepo     (recebe a conexão da transação)

Os repositórios do motor recebem a conexão aberta pelo caso de uso: a
sincronização, o débito no banco e a auditoria de uma mesma operação
gravam na mesma transação.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .db import agora_iso, connect
from alinhadores.domain.erros import NotFound
from alinhadores.domain.models import Caso, EntradaBanco, ItemLab


# -------------------------
# Helpers
# -------------------------

def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    if is_dataclass(row):
        return asdict(row)
    if isinstance(row, sqlite3.Row):
        return dict(row)
    raise TypeError("row must be dict, dataclass or sqlite3.Row")


def _execmany(conn, sql: str, rows: Iterable[Dict[str, Any]]) -> int:
    rows = list(rows)
    if not rows:
        return 0
    keys = list(rows[0].keys())
    placeholders = ",".join([f":{k}" for k in keys])
    sql_fmt = sql.format(cols=",".join(keys), vals=placeholders)
    conn.executemany(sql_fmt, rows)
    return len(rows)


# -------------------------
# Params
# -------------------------

class ParamsRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def set_many(self, items: Iterable[Tuple[str, str]]) -> None:
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO params (chave, valor)
                VALUES (?, ?)
                ON CONFLICT(chave) DO UPDATE SET valor=excluded.valor
                """,
                list(items),
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with connect(self.db_path) as c:
            row = c.execute("SELECT valor FROM params WHERE chave = ?", (key,)).fetchone()
            return row[0] if row else default

    def get_int(self, key: str, default: int) -> int:
        v = self.get(key, None)
        if v is None:
            return default
        try:
            return int(float(v))
        except ValueError:
            return default


# -------------------------
# Caso
# -------------------------

class CasoRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @staticmethod
    def _from_row(r: sqlite3.Row) -> Caso:
        d = dict(r)
        d["placas"] = json.loads(d.pop("placas_json") or "[]")
        d["lotes_entrega"] = json.loads(d.pop("lotes_json") or "[]")
        inst = d.pop("instalacao_json")
        d["instalacao"] = json.loads(inst) if inst else None
        return Caso.from_dict(d)

    def get(self, caso_id: str) -> Optional[Caso]:
        r = self.conn.execute("SELECT * FROM caso WHERE id = ?", (caso_id,)).fetchone()
        return self._from_row(r) if r else None

    def require(self, caso_id: str) -> Caso:
        caso = self.get(caso_id)
        if caso is None:
            raise NotFound("Caso vinculado não encontrado.", caso_id=caso_id)
        return caso

    def list_all(self) -> List[Caso]:
        cur = self.conn.execute("SELECT * FROM caso ORDER BY criado_em, id")
        return [self._from_row(r) for r in cur.fetchall()]

    def save(self, caso: Caso) -> None:
        d = caso.to_dict()
        row = {
            "id": caso.id,
            "paciente": caso.paciente,
            "codigo_tratamento": caso.codigo_tratamento,
            "tipo_produto": caso.tipo_produto,
            "total_superior": caso.total_superior,
            "total_inferior": caso.total_inferior,
            "troca_dias": caso.troca_dias,
            "status": caso.status,
            "fase": caso.fase,
            "placas_json": json.dumps(d["placas"], ensure_ascii=False),
            "lotes_json": json.dumps(d["lotes_entrega"], ensure_ascii=False),
            "instalacao_json": json.dumps(d["instalacao"], ensure_ascii=False) if caso.instalacao else None,
            "ultima_revisao": caso.ultima_revisao,
            "criado_em": caso.criado_em or agora_iso(),
            "atualizado_em": caso.atualizado_em or agora_iso(),
        }
        self.conn.execute(
            """
            INSERT INTO caso
                (id, paciente, codigo_tratamento, tipo_produto, total_superior, total_inferior,
                 troca_dias, status, fase, placas_json, lotes_json, instalacao_json,
                 ultima_revisao, criado_em, atualizado_em)
            VALUES
                (:id, :paciente, :codigo_tratamento, :tipo_produto, :total_superior, :total_inferior,
                 :troca_dias, :status, :fase, :placas_json, :lotes_json, :instalacao_json,
                 :ultima_revisao, :criado_em, :atualizado_em)
            ON CONFLICT(id) DO UPDATE SET
                paciente=excluded.paciente,
                codigo_tratamento=excluded.codigo_tratamento,
                tipo_produto=excluded.tipo_produto,
                total_superior=excluded.total_superior,
                total_inferior=excluded.total_inferior,
                troca_dias=excluded.troca_dias,
                status=excluded.status,
                fase=excluded.fase,
                placas_json=excluded.placas_json,
                lotes_json=excluded.lotes_json,
                instalacao_json=excluded.instalacao_json,
                ultima_revisao=excluded.ultima_revisao,
                atualizado_em=excluded.atualizado_em
            """,
            row,
        )


# -------------------------
# Item de laboratório (OS)
# -------------------------

_ITEM_COLS = (
    "id", "caso_id", "arcada", "numero_placa", "qtd_superior", "qtd_inferior",
    "tipo_solicitacao", "status", "prioridade", "data_prevista", "codigo_solicitacao",
    "tipo_produto", "paciente", "notas", "rework", "criado_em", "atualizado_em",
)


class ItemLabRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @staticmethod
    def _from_row(r: sqlite3.Row) -> ItemLab:
        d = dict(r)
        d["rework"] = bool(d.get("rework"))
        return ItemLab(**{k: d.get(k) for k in _ITEM_COLS})

    @staticmethod
    def _to_row(item: ItemLab) -> Dict[str, Any]:
        d = asdict(item)
        d["rework"] = 1 if item.rework else 0
        return {k: d[k] for k in _ITEM_COLS}

    def get(self, item_id: str) -> Optional[ItemLab]:
        r = self.conn.execute("SELECT * FROM item_lab WHERE id = ?", (item_id,)).fetchone()
        return self._from_row(r) if r else None

    def require(self, item_id: str) -> ItemLab:
        item = self.get(item_id)
        if item is None:
            raise NotFound("OS não encontrada.", item_id=item_id)
        return item

    def insert(self, item: ItemLab) -> None:
        _execmany(self.conn, "INSERT INTO item_lab ({cols}) VALUES ({vals})", [self._to_row(item)])

    def update(self, item: ItemLab) -> None:
        row = self._to_row(item)
        sets = ", ".join(f"{k} = :{k}" for k in _ITEM_COLS if k != "id")
        self.conn.execute(f"UPDATE item_lab SET {sets} WHERE id = :id", row)

    def delete(self, ids: Iterable[str]) -> int:
        ids = list(ids)
        self.conn.executemany("DELETE FROM item_lab WHERE id = ?", [(i,) for i in ids])
        return len(ids)

    def list_all(self, caso_id: Optional[str] = None) -> List[ItemLab]:
        if caso_id:
            cur = self.conn.execute(
                "SELECT * FROM item_lab WHERE caso_id = ? ORDER BY data_prevista, criado_em", (caso_id,)
            )
        else:
            cur = self.conn.execute("SELECT * FROM item_lab ORDER BY data_prevista, criado_em")
        return [self._from_row(r) for r in cur.fetchall()]

    def list_by_placa(self, caso_id: str, numero_placa: int) -> List[ItemLab]:
        cur = self.conn.execute(
            "SELECT * FROM item_lab WHERE caso_id = ? AND numero_placa = ? ORDER BY criado_em",
            (caso_id, numero_placa),
        )
        return [self._from_row(r) for r in cur.fetchall()]

    def existe_codigo(self, codigo: str) -> bool:
        r = self.conn.execute(
            "SELECT 1 FROM item_lab WHERE codigo_solicitacao = ? LIMIT 1", (codigo,)
        ).fetchone()
        return r is not None

    def existe_reposicao_programada(self, caso_id: str, numero_placa: int) -> bool:
        r = self.conn.execute(
            """SELECT 1 FROM item_lab
               WHERE caso_id = ? AND numero_placa = ? AND tipo_solicitacao = 'reposicao_programada'
               LIMIT 1""",
            (caso_id, numero_placa),
        ).fetchone()
        return r is not None

    def existe_producao(self, caso_id: str) -> bool:
        r = self.conn.execute(
            "SELECT 1 FROM item_lab WHERE caso_id = ? AND tipo_solicitacao = 'producao' LIMIT 1",
            (caso_id,),
        ).fetchone()
        return r is not None


# -------------------------
# Banco de reposições
# -------------------------

_BANCO_COLS = (
    "id", "caso_id", "arcada", "numero_placa", "status", "item_origem_id",
    "entregue_em", "criado_em", "atualizado_em",
)


class BancoRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def existe_para_caso(self, caso_id: str) -> bool:
        r = self.conn.execute(
            "SELECT 1 FROM banco_reposicao WHERE caso_id = ? LIMIT 1", (caso_id,)
        ).fetchone()
        return r is not None

    def existe_debito_do_item(self, item_id: str) -> bool:
        r = self.conn.execute(
            """SELECT 1 FROM banco_reposicao
               WHERE item_origem_id = ? AND status IN ('em_producao', 'entregue') LIMIT 1""",
            (item_id,),
        ).fetchone()
        return r is not None

    def list_by_caso(self, caso_id: str) -> List[EntradaBanco]:
        # rowid mantém a ordem de inserção para o desempate por placa
        cur = self.conn.execute(
            "SELECT * FROM banco_reposicao WHERE caso_id = ? ORDER BY rowid", (caso_id,)
        )
        return [EntradaBanco(**{k: r[k] for k in _BANCO_COLS}) for r in cur.fetchall()]

    def insert_many(self, entradas: Iterable[EntradaBanco]) -> int:
        rows = [{k: v for k, v in asdict(e).items() if k in _BANCO_COLS} for e in entradas]
        return _execmany(self.conn, "INSERT INTO banco_reposicao ({cols}) VALUES ({vals})", rows)

    def update_many(self, entradas: Iterable[EntradaBanco]) -> int:
        rows = [
            {"id": e.id, "status": e.status, "item_origem_id": e.item_origem_id,
             "entregue_em": e.entregue_em, "atualizado_em": e.atualizado_em}
            for e in entradas
        ]
        if not rows:
            return 0
        self.conn.executemany(
            """UPDATE banco_reposicao
               SET status = :status, item_origem_id = :item_origem_id,
                   entregue_em = :entregue_em, atualizado_em = :atualizado_em
               WHERE id = :id""",
            rows,
        )
        return len(rows)

    def saldo_por_arcada(self, caso_id: str) -> Dict[str, Dict[str, int]]:
        """Contagem por arcada e status (lida da view vw_banco_saldo)."""
        out: Dict[str, Dict[str, int]] = {}
        cur = self.conn.execute(
            "SELECT arcada, status, qtd FROM vw_banco_saldo WHERE caso_id = ?", (caso_id,)
        )
        for r in cur.fetchall():
            out.setdefault(r["arcada"], {})[r["status"]] = int(r["qtd"])
        return out


# -------------------------
# Auditoria
# -------------------------

class AuditoriaRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def registrar(self, entidade: str, entidade_id: str, acao: str, mensagem: str = "") -> None:
        self.conn.execute(
            """INSERT INTO auditoria (entidade, entidade_id, acao, mensagem, criado_em)
               VALUES (?, ?, ?, ?, ?)""",
            (entidade, entidade_id, acao, mensagem, agora_iso()),
        )

    def list_by_entidade(self, entidade_id: str) -> List[Dict[str, Any]]:
        cur = self.conn.execute(
            "SELECT * FROM auditoria WHERE entidade_id = ? ORDER BY id", (entidade_id,)
        )
        return [_as_dict(r) for r in cur.fetchall()]
