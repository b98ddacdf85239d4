"""
Key-indexed table storage for ledger rows.

A record store holds named tables of plain dict rows. Each row gets an
integer `id` on insert (max existing id + 1 within its table). The ledger
only depends on the methods of RecordStore, so any backend that implements
them can be swapped in without touching ledger logic.

Backends:
- InMemoryRecordStore: dict of lists, for tests and throwaway sessions
- JsonFileRecordStore: one JSON document on disk, same shape the desktop
  app writes ({"paymentCycles": [...], "settings": {...}, ...})
- PostgresRecordStore (clients.postgres_record_store): JSONB rows
"""

import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List

from core.exceptions import StoreError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class RecordStore:
    """
    Storage contract shared by all backends.

    Rows are returned as copies; mutating a returned row never changes
    stored state. Use update() for that.
    """

    def list(self, table: str) -> List[Row]:
        """All rows in a table, in insertion order. Empty list if none."""
        raise NotImplementedError

    def get(self, table: str, row_id: int) -> Row | None:
        """Row by id, or None."""
        raise NotImplementedError

    def query(self, table: str, field: str, value: Any) -> List[Row]:
        """Rows whose `field` equals `value`."""
        raise NotImplementedError

    def add(self, table: str, row: Row) -> Row:
        """Insert a row and return it with its assigned id."""
        raise NotImplementedError

    def update(self, table: str, row_id: int, fields: Row) -> bool:
        """Merge fields into an existing row. Returns False if absent."""
        raise NotImplementedError

    def delete(self, table: str, row_id: int) -> bool:
        """Delete one row. Returns False if absent."""
        raise NotImplementedError

    def delete_where(self, table: str, field: str, value: Any) -> int:
        """Delete all rows whose `field` equals `value`. Returns count."""
        raise NotImplementedError

    def table(self, name: str) -> "Table":
        """Bind a table name for callers that only ever touch one table."""
        return Table(self, name)


class Table:
    """
    A RecordStore scoped to one table.

    Usage:
        cycles = store.table("paymentCycles")
        row = cycles.add({"customerId": 7, ...})
        cycles.update(row["id"], {"status": "clear"})
    """

    def __init__(self, store: RecordStore, name: str):
        self.store = store
        self.name = name

    def list(self) -> List[Row]:
        return self.store.list(self.name)

    def get(self, row_id: int) -> Row | None:
        return self.store.get(self.name, row_id)

    def query(self, field: str, value: Any) -> List[Row]:
        return self.store.query(self.name, field, value)

    def add(self, row: Row) -> Row:
        return self.store.add(self.name, row)

    def update(self, row_id: int, fields: Row) -> bool:
        return self.store.update(self.name, row_id, fields)

    def delete(self, row_id: int) -> bool:
        return self.store.delete(self.name, row_id)

    def delete_where(self, field: str, value: Any) -> int:
        return self.store.delete_where(self.name, field, value)


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed store. Thread-safe; every method holds one re-entrant lock.

    Usage:
        store = InMemoryRecordStore()
        store.add("paymentCycles", {"customerId": 7})
    """

    def __init__(self, data: Dict[str, Any] | None = None):
        self._data: Dict[str, Any] = copy.deepcopy(data) if data else {}
        self._lock = threading.RLock()

    def _rows(self, table: str) -> List[Row]:
        rows = self._data.get(table)
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise StoreError(f"Table {table!r} is not a row list")
        return rows

    def _persist(self) -> None:
        """Hook for durable subclasses. Called after every mutation."""

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the whole data document."""
        with self._lock:
            return copy.deepcopy(self._data)

    def list(self, table: str) -> List[Row]:
        with self._lock:
            return copy.deepcopy(self._rows(table))

    def get(self, table: str, row_id: int) -> Row | None:
        with self._lock:
            for row in self._rows(table):
                if row.get("id") == row_id:
                    return copy.deepcopy(row)
            return None

    def query(self, table: str, field: str, value: Any) -> List[Row]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._rows(table) if r.get(field) == value]

    def add(self, table: str, row: Row) -> Row:
        with self._lock:
            rows = self._rows(table)
            max_id = max((int(r.get("id") or 0) for r in rows), default=0)
            new_row = {**copy.deepcopy(row), "id": max_id + 1}
            self._replace_rows(table, rows + [new_row])
            return copy.deepcopy(new_row)

    def update(self, table: str, row_id: int, fields: Row) -> bool:
        with self._lock:
            rows = self._rows(table)
            index = next((i for i, r in enumerate(rows) if r.get("id") == row_id), None)
            if index is None:
                return False

            updated = list(rows)
            updated[index] = {**rows[index], **copy.deepcopy(fields), "id": row_id}
            self._replace_rows(table, updated)
            return True

    def delete(self, table: str, row_id: int) -> bool:
        with self._lock:
            rows = self._rows(table)
            remaining = [r for r in rows if r.get("id") != row_id]
            if len(remaining) == len(rows):
                return False
            self._replace_rows(table, remaining)
            return True

    def delete_where(self, table: str, field: str, value: Any) -> int:
        with self._lock:
            rows = self._rows(table)
            remaining = [r for r in rows if r.get(field) != value]
            removed = len(rows) - len(remaining)
            if removed:
                self._replace_rows(table, remaining)
            return removed

    def _replace_rows(self, table: str, rows: List[Row]) -> None:
        """Swap in a new row list; roll back if persisting fails."""
        previous = self._data.get(table)
        self._data[table] = rows
        try:
            self._persist()
        except StoreError:
            self._restore(table, previous)
            raise

    def _restore(self, table: str, previous: Any) -> None:
        if previous is None:
            self._data.pop(table, None)
        else:
            self._data[table] = previous


class JsonFileRecordStore(InMemoryRecordStore):
    """
    Store backed by a single JSON file.

    The whole document is read once on open and rewritten after every
    mutation through a temp file + os.replace, so a crash mid-write leaves
    the previous file intact. A failed write rolls the in-memory copy back
    before StoreError propagates.

    Usage:
        store = JsonFileRecordStore("ledger-data.json")
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(self._read())
        logger.info("JSON record store opened: %s", self.path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read data file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreError(f"Data file {self.path} must contain a JSON object")
        return data

    def _persist(self) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreError(f"Could not write data file {self.path}: {e}") from e

    def reload(self) -> None:
        """Discard the in-memory copy and re-read the file."""
        with self._lock:
            self._data = self._read()


def open_record_store(config) -> RecordStore:
    """
    Build the store selected by a LedgerConfig.

    The PostgreSQL backend is imported lazily so psycopg2 is only needed
    when it is actually configured.
    """
    from core.config import StoreBackend

    if config.store_backend == StoreBackend.MEMORY:
        return InMemoryRecordStore()
    if config.store_backend == StoreBackend.JSON:
        return JsonFileRecordStore(config.data_file)

    from clients.postgres_client import PostgresClient
    from clients.postgres_record_store import PostgresRecordStore

    return PostgresRecordStore(PostgresClient(config.database_url))
