"""Hierarchy manager: the parent/child forest over issues.

Invariant: following ``parent_id`` from any issue reaches a root (an issue
without parent) in at most N steps, N being the total issue count. Every walk
here is capped at N so that corrupted data can never make it loop.
"""

from __future__ import annotations

import logging

from issuer.errors import (
    ConsistencyFault, CycleDetectedError, NotFoundError, SelfReferenceError,
)
from issuer.models import Issue, Kind
from issuer.storage.interface import Transaction

logger = logging.getLogger(__name__)


def require_issue(txn: Transaction, issue_id: int) -> Issue:
    """Get an issue or raise NotFoundError."""
    issue = txn.get(Kind.ISSUE, issue_id)
    if issue is None:
        raise NotFoundError("issue", issue_id)
    return issue


class HierarchyManager:
    """Maintains the forest invariant over ``Issue.parent_id``."""

    def set_parent(self, txn: Transaction, issue_id: int, parent_id: int | None) -> Issue:
        """Point ``issue_id`` at ``parent_id``, or make it a root when None.

        The ancestor chain of the new parent is walked; meeting ``issue_id``
        on it means the new edge would close a cycle.
        """
        issue = require_issue(txn, issue_id)
        if parent_id is None:
            if issue.parent_id is not None:
                txn.update(Kind.ISSUE, issue_id, {"parent_id": None})
                logger.debug("issue %d promoted to root (was under %d)",
                             issue_id, issue.parent_id)
            issue.parent_id = None
            return issue

        if parent_id == issue_id:
            raise SelfReferenceError(issue_id)
        require_issue(txn, parent_id)

        bound = txn.count(Kind.ISSUE)
        current: int | None = parent_id
        steps = 0
        while current is not None:
            if current == issue_id:
                raise CycleDetectedError(
                    f"making {parent_id} the parent of {issue_id} would create a cycle"
                )
            steps += 1
            if steps > bound:
                raise ConsistencyFault(
                    f"ancestor chain of issue {parent_id} exceeds {bound} steps"
                )
            ancestor = txn.get(Kind.ISSUE, current)
            if ancestor is None:
                raise ConsistencyFault(
                    f"issue {parent_id} has a dangling ancestor {current}"
                )
            current = ancestor.parent_id

        if issue.parent_id != parent_id:
            txn.update(Kind.ISSUE, issue_id, {"parent_id": parent_id})
            logger.debug("issue %d reparented under %d", issue_id, parent_id)
        issue.parent_id = parent_id
        return issue

    def delete_issue_cascade(self, txn: Transaction, issue_id: int) -> list[int]:
        """Orphan the direct children of ``issue_id``. Returns their ids.

        Only one level: grandchildren keep their parents.
        """
        orphaned = []
        for child in txn.query_by_field(Kind.ISSUE, "parent_id", issue_id):
            txn.update(Kind.ISSUE, child.id, {"parent_id": None})
            orphaned.append(child.id)
        if orphaned:
            logger.debug("orphaned children of %d: %s", issue_id, orphaned)
        return orphaned

    def get_children(self, txn: Transaction, issue_id: int) -> list[Issue]:
        require_issue(txn, issue_id)
        return txn.query_by_field(Kind.ISSUE, "parent_id", issue_id)

    def get_ancestors(self, txn: Transaction, issue_id: int) -> list[Issue]:
        """Ancestors of ``issue_id``, nearest first, ending at a root."""
        issue = require_issue(txn, issue_id)
        bound = txn.count(Kind.ISSUE)
        ancestors: list[Issue] = []
        seen = {issue_id}
        current = issue.parent_id
        while current is not None:
            if current in seen or len(ancestors) >= bound:
                raise ConsistencyFault(
                    f"parent chain of issue {issue_id} does not terminate"
                )
            seen.add(current)
            parent = txn.get(Kind.ISSUE, current)
            if parent is None:
                raise ConsistencyFault(
                    f"issue {issue_id} has a dangling ancestor {current}"
                )
            ancestors.append(parent)
            current = parent.parent_id
        return ancestors

    def find_cycles(self, txn: Transaction) -> tuple[list[list[int]], list[int]]:
        """Scan the whole forest.

        Returns ``(cycles, dangling)``: each parent cycle once, rotated to start
        at its smallest id, and the ids of issues whose parent does not exist.
        """
        parents = {issue.id: issue.parent_id for issue in txn.all(Kind.ISSUE)}
        dangling = sorted(
            iid for iid, pid in parents.items()
            if pid is not None and pid not in parents
        )

        cycles: list[list[int]] = []
        done: set[int] = set()
        for start in parents:
            if start in done:
                continue
            path: list[int] = []
            on_path: dict[int, int] = {}
            current: int | None = start
            while current is not None and current in parents and current not in done:
                if current in on_path:
                    cycle = path[on_path[current]:]
                    pivot = cycle.index(min(cycle))
                    cycles.append(cycle[pivot:] + cycle[:pivot])
                    break
                on_path[current] = len(path)
                path.append(current)
                current = parents[current]
            done.update(path)
        return cycles, dangling
