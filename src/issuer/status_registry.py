"""Status registry: the closed set of named lifecycle statuses."""

from __future__ import annotations

import logging

from issuer.errors import (
    DuplicateNameError, InvalidInputError, NotFoundError, StatusInUseError,
)
from issuer.models import IssueStatus, Kind
from issuer.storage.interface import Transaction

logger = logging.getLogger(__name__)


def _validate_name(name: str) -> str:
    if not name or not name.strip():
        raise InvalidInputError("status name cannot be empty")
    return name


class StatusRegistry:
    """Status CRUD with name uniqueness and in-use protection.

    Names are compared exactly (case-sensitive). Stateless: every method works
    against the transaction it is given.
    """

    def create_status(self, txn: Transaction, name: str) -> IssueStatus:
        _validate_name(name)
        if txn.query_by_field(Kind.STATUS, "name", name):
            raise DuplicateNameError(name)
        status = IssueStatus(name=name)
        status.id = txn.insert(Kind.STATUS, status)
        logger.debug("created status %d %r", status.id, name)
        return status

    def rename_status(self, txn: Transaction, status_id: int, new_name: str) -> IssueStatus:
        _validate_name(new_name)
        status = self.get_status(txn, status_id)
        if status.name == new_name:
            return status
        if txn.query_by_field(Kind.STATUS, "name", new_name):
            raise DuplicateNameError(new_name)
        txn.update(Kind.STATUS, status_id, {"name": new_name})
        logger.debug("renamed status %d %r -> %r", status_id, status.name, new_name)
        status.name = new_name
        return status

    def delete_status(self, txn: Transaction, status_id: int) -> IssueStatus:
        status = self.get_status(txn, status_id)
        users = txn.query_by_field(Kind.ISSUE, "status_id", status_id)
        if users:
            raise StatusInUseError(status_id, len(users))
        txn.delete(Kind.STATUS, status_id)
        logger.debug("deleted status %d %r", status_id, status.name)
        return status

    def get_status(self, txn: Transaction, status_id: int) -> IssueStatus:
        status = txn.get(Kind.STATUS, status_id)
        if status is None:
            raise NotFoundError("status", status_id)
        return status

    def get_status_by_name(self, txn: Transaction, name: str) -> IssueStatus:
        found = txn.query_by_field(Kind.STATUS, "name", name)
        if not found:
            raise NotFoundError("status", name)
        return found[0]

    def list_statuses(self, txn: Transaction) -> list[IssueStatus]:
        return txn.all(Kind.STATUS)

    def require_status(self, txn: Transaction, status_id: int) -> IssueStatus:
        """Alias of get_status used where an issue is about to reference the status."""
        return self.get_status(txn, status_id)
