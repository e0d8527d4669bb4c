# alinhadores/infra/views.py
"""
Criação de views auxiliares para consultas frequentes.

Views criadas:
- vw_banco_saldo:  contagem do banco de reposições por caso, arcada e status.
- vw_esteira:      contagem de OS por status e tipo de solicitação.

Obs.:
- As views assumem que as migrações V1→V2 já foram aplicadas.
- Um conjunto de índices úteis também é criado, caso não existam.
"""

from __future__ import annotations

from .db import connect


def create_views(db_path: str) -> None:
    with connect(db_path) as c:
        c.executescript(
            """
            DROP VIEW IF EXISTS vw_banco_saldo;
            CREATE VIEW vw_banco_saldo AS
            SELECT
                caso_id,
                arcada,
                status,
                COUNT(*) AS qtd
            FROM banco_reposicao
            GROUP BY caso_id, arcada, status;

            DROP VIEW IF EXISTS vw_esteira;
            CREATE VIEW vw_esteira AS
            SELECT
                status,
                tipo_solicitacao,
                COUNT(*) AS qtd
            FROM item_lab
            GROUP BY status, tipo_solicitacao;
            """
        )

        c.executescript(
            """
            CREATE INDEX IF NOT EXISTS idx_item_lab_caso   ON item_lab(caso_id, numero_placa);
            CREATE INDEX IF NOT EXISTS idx_item_lab_status ON item_lab(status);
            CREATE INDEX IF NOT EXISTS idx_banco_caso      ON banco_reposicao(caso_id, arcada, numero_placa);
            CREATE INDEX IF NOT EXISTS idx_auditoria_ent   ON auditoria(entidade, entidade_id);
            """
        )
