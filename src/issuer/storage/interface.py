"""Storage interface (abstract base) for the entity store adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transaction(ABC):
    """A scoped unit of work against the store.

    Used as a context manager: leaving the block without an explicit
    ``commit()`` rolls back, whatever the exit path.
    """

    def __init__(self) -> None:
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._finished:
            self.rollback()

    def commit(self) -> None:
        if self._finished:
            return
        # _commit cleans up after itself when it fails
        self._finished = True
        self._commit()

    def rollback(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._rollback()

    @abstractmethod
    def _commit(self) -> None:
        """Make the transaction's writes durable and visible.

        On failure the implementation must discard the writes and release
        anything it holds before raising.
        """

    @abstractmethod
    def _rollback(self) -> None:
        """Discard the transaction's writes."""

    # --- CRUD ---

    @abstractmethod
    def get(self, kind: str, record_id: int) -> Any | None:
        """Get a record by primary key. Returns None if not found."""

    @abstractmethod
    def insert(self, kind: str, record: Any) -> int:
        """Insert a record, ignoring its ``id``. Returns the new id."""

    @abstractmethod
    def update(self, kind: str, record_id: int, fields: dict[str, Any]) -> None:
        """Update the given fields of an existing record."""

    @abstractmethod
    def delete(self, kind: str, record_id: int) -> None:
        """Delete a record by primary key."""

    @abstractmethod
    def query_by_field(self, kind: str, field: str, value: Any) -> list[Any]:
        """Get all records whose ``field`` equals ``value``, ordered by id."""

    @abstractmethod
    def all(self, kind: str) -> list[Any]:
        """Get every record of a kind, ordered by id."""

    @abstractmethod
    def count(self, kind: str) -> int:
        """Count the records of a kind."""


class EntityStore(ABC):
    """Abstract base class for transactional entity stores."""

    @abstractmethod
    def path(self) -> str:
        """Return a description of where the data lives."""

    @abstractmethod
    def begin_transaction(self, readonly: bool = False) -> Transaction:
        """Open a transaction. Raises ConflictError if one cannot be started.

        A readonly transaction may run at a weaker isolation level and must
        not write.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the store's resources."""
