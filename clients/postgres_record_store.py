"""
RecordStore backed by PostgreSQL.

All logical tables share one physical table of JSONB documents keyed by
(table_name, id). Partial updates use JSONB concatenation, which merges
top-level keys the same way the in-memory store does.
"""

import logging
from typing import Any, List

import psycopg2
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from clients.record_store import RecordStore, Row
from core.exceptions import StoreError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS ledger_rows (
    table_name TEXT NOT NULL,
    id INTEGER NOT NULL,
    data JSONB NOT NULL,
    PRIMARY KEY (table_name, id)
)
"""


def _to_row(record: dict) -> Row:
    data = dict(record["data"])
    data["id"] = record["id"]
    return data


class PostgresRecordStore(RecordStore):
    """
    Usage:
        store = PostgresRecordStore(PostgresClient(database_url))
        store.add("paymentCycles", {"customerId": 7})
    """

    def __init__(self, postgres: PostgresClient, create_schema: bool = True):
        self.postgres = postgres
        if create_schema:
            self._run(lambda: self.postgres.execute(SCHEMA))
            logger.info("PostgreSQL record store ready")

    def _run(self, operation):
        try:
            return operation()
        except psycopg2.Error as e:
            raise StoreError(f"Database operation failed: {e}") from e

    def list(self, table: str) -> List[Row]:
        records = self._run(lambda: self.postgres.execute(
            "SELECT id, data FROM ledger_rows WHERE table_name = %s ORDER BY id",
            (table,)
        ))
        return [_to_row(r) for r in records]

    def get(self, table: str, row_id: int) -> Row | None:
        record = self._run(lambda: self.postgres.execute_single(
            "SELECT id, data FROM ledger_rows WHERE table_name = %s AND id = %s",
            (table, row_id)
        ))
        return _to_row(record) if record else None

    def query(self, table: str, field: str, value: Any) -> List[Row]:
        records = self._run(lambda: self.postgres.execute(
            """
            SELECT id, data FROM ledger_rows
            WHERE table_name = %s AND data -> %s = %s::jsonb
            ORDER BY id
            """,
            (table, field, Json(value))
        ))
        return [_to_row(r) for r in records]

    def add(self, table: str, row: Row) -> Row:
        data = {k: v for k, v in row.items() if k != "id"}
        return _to_row(self._run(lambda: self._insert(table, data)))

    def _insert(self, table: str, data: Row) -> dict:
        # Concurrent inserts into one table would compute the same MAX(id)
        with self.postgres.transaction() as cur:
            cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (table,))
            cur.execute(
                """
                INSERT INTO ledger_rows (table_name, id, data)
                SELECT %s, COALESCE(MAX(id), 0) + 1, %s
                FROM ledger_rows WHERE table_name = %s
                RETURNING id, data
                """,
                (table, Json(data), table)
            )
            return cur.fetchone()

    def update(self, table: str, row_id: int, fields: Row) -> bool:
        data = {k: v for k, v in fields.items() if k != "id"}
        count = self._run(lambda: self.postgres.execute_rowcount(
            "UPDATE ledger_rows SET data = data || %s WHERE table_name = %s AND id = %s",
            (Json(data), table, row_id)
        ))
        return count > 0

    def delete(self, table: str, row_id: int) -> bool:
        count = self._run(lambda: self.postgres.execute_rowcount(
            "DELETE FROM ledger_rows WHERE table_name = %s AND id = %s",
            (table, row_id)
        ))
        return count > 0

    def delete_where(self, table: str, field: str, value: Any) -> int:
        return self._run(lambda: self.postgres.execute_rowcount(
            "DELETE FROM ledger_rows WHERE table_name = %s AND data -> %s = %s::jsonb",
            (table, field, Json(value))
        ))
