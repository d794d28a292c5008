"""Integrity engine: the public mutation and query surface.

Every public call runs in exactly one store transaction. The transaction is
committed only when the whole operation, including its invariant checks,
succeeded; any exception rolls it back, so no partial write is ever visible.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, TypeVar

from issuer.blocking import BlockingGraphManager, ResolvedPredicate
from issuer.config import IssuerConfig
from issuer.errors import (
    ConflictError, InvalidInputError, IssuerError,
)
from issuer.hierarchy import HierarchyManager, require_issue
from issuer.models import (
    BlockingEdge, ConsistencyReport, DeletionResult, Issue, IssueStatus, Kind,
)
from issuer.status_registry import StatusRegistry
from issuer.storage.interface import EntityStore, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validate_title(title: str) -> str:
    if not title or not title.strip():
        raise InvalidInputError("title cannot be empty")
    return title


class IntegrityEngine:
    """Sequences the status registry and the two graph managers.

    The engine keeps no state between calls beyond its collaborators; every
    traversal reads the store as of the current transaction.
    """

    def __init__(self, store: EntityStore,
                 resolved_statuses: Iterable[str] = ("closed",),
                 max_conflict_retries: int = 0) -> None:
        if max_conflict_retries < 0:
            raise ValueError("max_conflict_retries cannot be negative")
        self.store = store
        self.resolved_statuses = frozenset(resolved_statuses)
        self.max_conflict_retries = max_conflict_retries
        self.statuses = StatusRegistry()
        self.hierarchy = HierarchyManager()
        self.blocking = BlockingGraphManager()

    @classmethod
    def from_config(cls, store: EntityStore, config: IssuerConfig) -> IntegrityEngine:
        return cls(
            store,
            resolved_statuses=config.resolved_statuses,
            max_conflict_retries=config.max_conflict_retries,
        )

    # --- Transactions ---

    def _run(self, op: str, fn: Callable[[Transaction], T], readonly: bool = False) -> T:
        """Run ``fn`` in one transaction, retrying the whole call on Conflict."""
        attempt = 0
        while True:
            try:
                with self.store.begin_transaction(readonly=readonly) as txn:
                    result = fn(txn)
                    txn.commit()
                return result
            except ConflictError as e:
                if attempt >= self.max_conflict_retries:
                    logger.warning("%s: giving up after %d conflict(s): %s",
                                   op, attempt + 1, e)
                    raise
                attempt += 1
                logger.info("%s: conflict, retrying (%d/%d)",
                            op, attempt, self.max_conflict_retries)
            except IssuerError as e:
                logger.info("%s rejected: %s: %s", op, e.kind, e)
                raise

    def _mutate(self, op: str, fn: Callable[[Transaction], T]) -> T:
        return self._run(op, fn)

    def _read(self, op: str, fn: Callable[[Transaction], T]) -> T:
        return self._run(op, fn, readonly=True)

    def is_resolved(self, status: IssueStatus) -> bool:
        """Default resolved-status predicate: membership in the configured names."""
        return status.name in self.resolved_statuses

    # --- Statuses ---

    def create_status(self, name: str) -> IssueStatus:
        return self._mutate(
            "create_status", lambda txn: self.statuses.create_status(txn, name)
        )

    def rename_status(self, status_id: int, new_name: str) -> IssueStatus:
        return self._mutate(
            "rename_status",
            lambda txn: self.statuses.rename_status(txn, status_id, new_name),
        )

    def delete_status(self, status_id: int) -> IssueStatus:
        return self._mutate(
            "delete_status", lambda txn: self.statuses.delete_status(txn, status_id)
        )

    def get_status(self, status_id: int) -> IssueStatus:
        return self._read(
            "get_status", lambda txn: self.statuses.get_status(txn, status_id)
        )

    def get_status_by_name(self, name: str) -> IssueStatus:
        return self._read(
            "get_status_by_name",
            lambda txn: self.statuses.get_status_by_name(txn, name),
        )

    def list_statuses(self) -> list[IssueStatus]:
        return self._read("list_statuses", self.statuses.list_statuses)

    # --- Issues ---

    def create_issue(self, title: str, description: str, status_id: int,
                     parent_id: int | None = None) -> Issue:
        """Create an issue, optionally under ``parent_id``.

        The row is inserted first and then attached to its parent inside the
        same transaction, so a failed parent check leaves nothing behind.
        """
        _validate_title(title)

        def op(txn: Transaction) -> Issue:
            self.statuses.require_status(txn, status_id)
            issue = Issue(title=title, description=description or "",
                          status_id=status_id)
            issue.id = txn.insert(Kind.ISSUE, issue)
            if parent_id is not None:
                issue = self.hierarchy.set_parent(txn, issue.id, parent_id)
            logger.debug("created issue %d %r", issue.id, title)
            return issue

        return self._mutate("create_issue", op)

    def get_issue(self, issue_id: int) -> Issue:
        return self._read("get_issue", lambda txn: require_issue(txn, issue_id))

    def list_issues(self, status_id: int | None = None,
                    roots_only: bool = False) -> list[Issue]:
        def op(txn: Transaction) -> list[Issue]:
            if status_id is not None:
                self.statuses.require_status(txn, status_id)
                issues = txn.query_by_field(Kind.ISSUE, "status_id", status_id)
            else:
                issues = txn.all(Kind.ISSUE)
            if roots_only:
                issues = [i for i in issues if i.is_root()]
            return issues

        return self._read("list_issues", op)

    def update_issue(self, issue_id: int, title: str | None = None,
                     description: str | None = None,
                     status_id: int | None = None) -> Issue:
        """Change any of title, description and status in one transaction."""
        if title is not None:
            _validate_title(title)

        def op(txn: Transaction) -> Issue:
            issue = require_issue(txn, issue_id)
            fields: dict[str, Any] = {}
            if status_id is not None:
                self.statuses.require_status(txn, status_id)
                if status_id != issue.status_id:
                    fields["status_id"] = status_id
            if title is not None and title != issue.title:
                fields["title"] = title
            if description is not None and description != issue.description:
                fields["description"] = description
            if fields:
                txn.update(Kind.ISSUE, issue_id, fields)
                for key, value in fields.items():
                    setattr(issue, key, value)
            return issue

        return self._mutate("update_issue", op)

    def update_status(self, issue_id: int, new_status_id: int) -> Issue:
        """Move an issue to another status.

        No blocking precondition is applied here; callers wanting "cannot
        resolve while blocked" check ``is_blocked`` first.
        """
        def op(txn: Transaction) -> Issue:
            issue = require_issue(txn, issue_id)
            self.statuses.require_status(txn, new_status_id)
            if issue.status_id != new_status_id:
                txn.update(Kind.ISSUE, issue_id, {"status_id": new_status_id})
                logger.debug("issue %d status %d -> %d",
                             issue_id, issue.status_id, new_status_id)
                issue.status_id = new_status_id
            return issue

        return self._mutate("update_status", op)

    def delete_issue(self, issue_id: int) -> DeletionResult:
        """Delete an issue with both cascades, atomically.

        Blocking edges touching the issue are deleted; direct children are
        promoted to roots.
        """
        def op(txn: Transaction) -> DeletionResult:
            issue = require_issue(txn, issue_id)
            removed = self.blocking.delete_issue_cascade(txn, issue_id)
            orphaned = self.hierarchy.delete_issue_cascade(txn, issue_id)
            txn.delete(Kind.ISSUE, issue_id)
            logger.debug("deleted issue %d (%d edge(s), %d child(ren))",
                         issue_id, len(removed), len(orphaned))
            return DeletionResult(issue=issue, removed_edges=removed,
                                  orphaned_children=orphaned)

        return self._mutate("delete_issue", op)

    # --- Hierarchy ---

    def reparent_issue(self, issue_id: int, new_parent_id: int | None = None) -> Issue:
        return self._mutate(
            "reparent_issue",
            lambda txn: self.hierarchy.set_parent(txn, issue_id, new_parent_id),
        )

    def get_children(self, issue_id: int) -> list[Issue]:
        return self._read(
            "get_children", lambda txn: self.hierarchy.get_children(txn, issue_id)
        )

    def get_ancestors(self, issue_id: int) -> list[Issue]:
        return self._read(
            "get_ancestors", lambda txn: self.hierarchy.get_ancestors(txn, issue_id)
        )

    # --- Blocking ---

    def link_blocking(self, blocker_id: int, blocked_id: int) -> BlockingEdge:
        return self._mutate(
            "link_blocking",
            lambda txn: self.blocking.add_blocking_edge(txn, blocker_id, blocked_id),
        )

    def unlink_blocking(self, edge_id: int) -> BlockingEdge:
        return self._mutate(
            "unlink_blocking",
            lambda txn: self.blocking.remove_blocking_edge(txn, edge_id),
        )

    def is_blocked(self, issue_id: int,
                   is_resolved: ResolvedPredicate | None = None) -> bool:
        predicate = is_resolved or self.is_resolved
        return self._read(
            "is_blocked",
            lambda txn: self.blocking.is_blocked(txn, issue_id, predicate),
        )

    def list_blocked_issues(
        self, is_resolved: ResolvedPredicate | None = None,
    ) -> list[tuple[Issue, list[int]]]:
        """Every blocked issue with the ids of its unresolved blockers."""
        predicate = is_resolved or self.is_resolved

        def op(txn: Transaction) -> list[tuple[Issue, list[int]]]:
            result = []
            for issue in txn.all(Kind.ISSUE):
                blockers = self.blocking.open_blockers(txn, issue.id, predicate)
                if blockers:
                    result.append((issue, blockers))
            return result

        return self._read("list_blocked_issues", op)

    def list_blockers(self, issue_id: int) -> list[BlockingEdge]:
        return self._read(
            "list_blockers", lambda txn: self.blocking.list_blockers(txn, issue_id)
        )

    def list_blocked(self, issue_id: int) -> list[BlockingEdge]:
        return self._read(
            "list_blocked", lambda txn: self.blocking.list_blocked(txn, issue_id)
        )

    def list_edges(self) -> list[BlockingEdge]:
        return self._read("list_edges", self.blocking.list_edges)

    # --- Consistency ---

    def check_consistency(self) -> ConsistencyReport:
        """Scan all stored data for forest, DAG and reference violations."""
        def op(txn: Transaction) -> ConsistencyReport:
            report = ConsistencyReport()
            report.parent_cycles, report.dangling_parents = self.hierarchy.find_cycles(txn)
            status_ids = {s.id for s in txn.all(Kind.STATUS)}
            report.dangling_statuses = [
                i.id for i in txn.all(Kind.ISSUE) if i.status_id not in status_ids
            ]
            report.blocking_cycle, report.dangling_edges = self.blocking.find_cycle(txn)
            if not report.ok:
                logger.warning("consistency check found violations: %s", report.to_dict())
            return report

        return self._read("check_consistency", op)


def open_engine(store: EntityStore, config: IssuerConfig | None = None) -> IntegrityEngine:
    """Build an engine over ``store`` with settings from ``config``."""
    if config is None:
        return IntegrityEngine(store)
    return IntegrityEngine.from_config(store, config)
