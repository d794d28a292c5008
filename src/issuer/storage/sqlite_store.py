"""SQLite storage implementation of the entity store."""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Any

from issuer.errors import ConflictError, DuplicateNameError, StoreError
from issuer.models import FIELDS_FOR_KIND, MODEL_FOR_KIND, Kind
from issuer.storage.interface import EntityStore, Transaction
from issuer.storage.schema import SCHEMA, TABLES

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT = 5.0

_LOCKED_MARKERS = ("database is locked", "database is busy", "database table is locked")


def _is_lock_error(error: sqlite3.Error) -> bool:
    return isinstance(error, sqlite3.OperationalError) and any(
        marker in str(error) for marker in _LOCKED_MARKERS
    )


def _table(kind: str) -> tuple[str, dict[str, str]]:
    try:
        return TABLES[kind]
    except KeyError:
        raise ValueError(f"unknown entity kind: {kind}") from None


def _column(kind: str, field: str) -> str:
    _, columns = _table(kind)
    try:
        return columns[field]
    except KeyError:
        raise ValueError(f"unknown field for {kind}: {field}") from None


class SQLiteTransaction(Transaction):
    """A transaction on the store's connection.

    Write transactions open with BEGIN IMMEDIATE. The reserved lock is held
    from the first read to commit, so every validation read and the writes
    that depend on it are serialized against other writers on the same
    database file.
    """

    def __init__(self, store: SQLiteStorage) -> None:
        super().__init__()
        self._store = store
        self._conn = store._conn

    # --- Helpers ---

    def _execute(self, sql: str, params: tuple | list = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            if _is_lock_error(e):
                raise ConflictError(f"concurrent write conflict: {e}") from e
            raise StoreError(f"failed to manipulate database resources: {e}") from e

    def _row_to_record(self, kind: str, row: sqlite3.Row) -> Any:
        _, columns = _table(kind)
        model = MODEL_FOR_KIND[kind]
        return model(**{attr: row[col] for attr, col in columns.items()})

    def _translate_integrity(self, kind: str, fields: dict[str, Any],
                             error: sqlite3.IntegrityError) -> Exception:
        message = str(error)
        if kind == Kind.STATUS and "issue_statuses.name" in message:
            return DuplicateNameError(fields.get("name", ""))
        return StoreError(f"constraint violated: {message}")

    # --- Transaction control ---

    def _commit(self) -> None:
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._safe_rollback()
            self._store._release()
            if _is_lock_error(e):
                raise ConflictError(f"commit failed under concurrent write: {e}") from e
            raise StoreError(f"failed to commit transaction: {e}") from e
        self._store._release()

    def _rollback(self) -> None:
        try:
            self._safe_rollback()
        finally:
            self._store._release()

    def _safe_rollback(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    # --- CRUD ---

    def get(self, kind: str, record_id: int) -> Any | None:
        table, _ = _table(kind)
        row = self._execute(
            f"SELECT * FROM {table} WHERE id = ?", (record_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_record(kind, row)

    def insert(self, kind: str, record: Any) -> int:
        table, columns = _table(kind)
        fields = {name: getattr(record, name) for name in FIELDS_FOR_KIND[kind]}
        cols = [columns[name] for name in fields]
        placeholders = ", ".join("?" * len(cols))
        sql = f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})"
        try:
            cur = self._conn.execute(sql, list(fields.values()))
        except sqlite3.IntegrityError as e:
            raise self._translate_integrity(kind, fields, e) from e
        except sqlite3.Error as e:
            if _is_lock_error(e):
                raise ConflictError(f"concurrent write conflict: {e}") from e
            raise StoreError(f"failed to insert {kind}: {e}") from e
        return cur.lastrowid or 0

    def update(self, kind: str, record_id: int, fields: dict[str, Any]) -> None:
        if not fields:
            return
        table, _ = _table(kind)
        set_clauses = []
        params: list[Any] = []
        for key, value in fields.items():
            set_clauses.append(f"{_column(kind, key)} = ?")
            params.append(value)
        params.append(record_id)
        sql = f"UPDATE {table} SET {', '.join(set_clauses)} WHERE id = ?"
        try:
            self._conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise self._translate_integrity(kind, fields, e) from e
        except sqlite3.Error as e:
            if _is_lock_error(e):
                raise ConflictError(f"concurrent write conflict: {e}") from e
            raise StoreError(f"failed to update {kind} {record_id}: {e}") from e

    def delete(self, kind: str, record_id: int) -> None:
        table, _ = _table(kind)
        try:
            self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
        except sqlite3.IntegrityError as e:
            raise StoreError(f"constraint violated deleting {kind} {record_id}: {e}") from e
        except sqlite3.Error as e:
            if _is_lock_error(e):
                raise ConflictError(f"concurrent write conflict: {e}") from e
            raise StoreError(f"failed to delete {kind} {record_id}: {e}") from e

    def query_by_field(self, kind: str, field: str, value: Any) -> list[Any]:
        table, _ = _table(kind)
        col = _column(kind, field)
        if value is None:
            rows = self._execute(
                f"SELECT * FROM {table} WHERE {col} IS NULL ORDER BY id"
            ).fetchall()
        else:
            rows = self._execute(
                f"SELECT * FROM {table} WHERE {col} = ? ORDER BY id", (value,)
            ).fetchall()
        return [self._row_to_record(kind, row) for row in rows]

    def all(self, kind: str) -> list[Any]:
        table, _ = _table(kind)
        rows = self._execute(f"SELECT * FROM {table} ORDER BY id").fetchall()
        return [self._row_to_record(kind, row) for row in rows]

    def count(self, kind: str) -> int:
        table, _ = _table(kind)
        row = self._execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return row[0]


class SQLiteStorage(EntityStore):
    """SQLite-based storage backend.

    One connection per instance. Concurrent callers should each open their
    own instance on the same database file; the instance lock only keeps
    threads sharing one instance from interleaving transactions.
    """

    def __init__(self, db_path: str, busy_timeout: float = DEFAULT_BUSY_TIMEOUT):
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(
                db_path,
                timeout=busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StoreError(f"failed to open database {db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute(f"PRAGMA busy_timeout={int(busy_timeout * 1000)}")
        self._init_schema()

    def _init_schema(self) -> None:
        try:
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            if _is_lock_error(e):
                raise ConflictError(f"database busy during schema setup: {e}") from e
            raise StoreError(f"failed to migrate database: {e}") from e

    def path(self) -> str:
        return self._db_path

    def close(self) -> None:
        self._conn.close()

    def begin_transaction(self, readonly: bool = False) -> SQLiteTransaction:
        if not self._lock.acquire(timeout=self._busy_timeout):
            raise ConflictError("timed out waiting for the store connection")
        try:
            # deferred for reads; writers take the reserved lock up front
            self._conn.execute("BEGIN" if readonly else "BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self._lock.release()
            if _is_lock_error(e):
                raise ConflictError(f"could not start write transaction: {e}") from e
            raise StoreError(f"failed to begin transaction: {e}") from e
        logger.debug("began transaction on %s", self._db_path)
        return SQLiteTransaction(self)

    def _release(self) -> None:
        self._lock.release()

    # --- Metadata ---

    def get_metadata(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM metadata WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None


def open_storage(db_path: str, busy_timeout: float = DEFAULT_BUSY_TIMEOUT) -> SQLiteStorage:
    """Open or create a SQLite storage at the given path."""
    return SQLiteStorage(db_path, busy_timeout=busy_timeout)
