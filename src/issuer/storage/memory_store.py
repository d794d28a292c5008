"""In-memory entity store for tests and embedding."""

from __future__ import annotations

import copy
import threading
from dataclasses import replace
from typing import Any

from issuer.errors import ConflictError, DuplicateNameError
from issuer.models import FIELDS_FOR_KIND, MODEL_FOR_KIND, Kind
from issuer.storage.interface import EntityStore, Transaction

DEFAULT_LOCK_TIMEOUT = 5.0


class _Tables:
    def __init__(self) -> None:
        self.rows: dict[str, dict[int, Any]] = {kind: {} for kind in MODEL_FOR_KIND}
        self.next_id: dict[str, int] = {kind: 1 for kind in MODEL_FOR_KIND}


def _check_kind(kind: str) -> None:
    if not Kind.is_valid(kind):
        raise ValueError(f"unknown entity kind: {kind}")


def _check_field(kind: str, field: str) -> None:
    if field != "id" and field not in FIELDS_FOR_KIND[kind]:
        raise ValueError(f"unknown field for {kind}: {field}")


class MemoryTransaction(Transaction):
    """Writes go to a private copy of the tables, swapped in on commit."""

    def __init__(self, store: MemoryStore, readonly: bool = False) -> None:
        super().__init__()
        self._store = store
        # readers share the committed tables; records are copied on the way out
        self._work = store._tables if readonly else copy.deepcopy(store._tables)

    def _commit(self) -> None:
        self._store._tables = self._work
        self._store._release()

    def _rollback(self) -> None:
        self._store._release()

    def _rows(self, kind: str) -> dict[int, Any]:
        _check_kind(kind)
        return self._work.rows[kind]

    def _check_unique(self, kind: str, record_id: int, fields: dict[str, Any]) -> None:
        # mirrors the UNIQUE constraint on status names in the SQL schema
        if kind != Kind.STATUS or "name" not in fields:
            return
        for other in self._work.rows[kind].values():
            if other.id != record_id and other.name == fields["name"]:
                raise DuplicateNameError(fields["name"])

    def get(self, kind: str, record_id: int) -> Any | None:
        record = self._rows(kind).get(record_id)
        return replace(record) if record is not None else None

    def insert(self, kind: str, record: Any) -> int:
        rows = self._rows(kind)
        fields = {name: getattr(record, name) for name in FIELDS_FOR_KIND[kind]}
        self._check_unique(kind, 0, fields)
        new_id = self._work.next_id[kind]
        self._work.next_id[kind] = new_id + 1
        rows[new_id] = MODEL_FOR_KIND[kind](id=new_id, **fields)
        return new_id

    def update(self, kind: str, record_id: int, fields: dict[str, Any]) -> None:
        rows = self._rows(kind)
        for key in fields:
            if key not in FIELDS_FOR_KIND[kind]:
                raise ValueError(f"unknown field for {kind}: {key}")
        if record_id not in rows:
            return
        self._check_unique(kind, record_id, fields)
        rows[record_id] = replace(rows[record_id], **fields)

    def delete(self, kind: str, record_id: int) -> None:
        self._rows(kind).pop(record_id, None)

    def query_by_field(self, kind: str, field: str, value: Any) -> list[Any]:
        rows = self._rows(kind)
        _check_field(kind, field)
        return [
            replace(rows[rid]) for rid in sorted(rows)
            if getattr(rows[rid], field) == value
        ]

    def all(self, kind: str) -> list[Any]:
        rows = self._rows(kind)
        return [replace(rows[rid]) for rid in sorted(rows)]

    def count(self, kind: str) -> int:
        return len(self._rows(kind))


class MemoryStore(EntityStore):
    """Process-local store; one transaction at a time, others wait or conflict."""

    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self._tables = _Tables()
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    def path(self) -> str:
        return ":memory:"

    def close(self) -> None:
        pass

    def begin_transaction(self, readonly: bool = False) -> MemoryTransaction:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise ConflictError("timed out waiting for a concurrent transaction")
        try:
            return MemoryTransaction(self, readonly=readonly)
        except BaseException:
            self._lock.release()
            raise

    def _release(self) -> None:
        self._lock.release()
