"""Blocking graph manager: the directed "blocks" relation between issues."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable

from issuer.errors import (
    ConsistencyFault, CycleDetectedError, DuplicateEdgeError, NotFoundError,
    SelfBlockError,
)
from issuer.hierarchy import require_issue
from issuer.models import BlockingEdge, IssueStatus, Kind
from issuer.storage.interface import Transaction

logger = logging.getLogger(__name__)

ResolvedPredicate = Callable[[IssueStatus], bool]


class BlockingGraphManager:
    """Maintains the DAG invariant over blocking edges.

    An edge ``blocker -> blocked`` may only be added if ``blocker`` is not
    already reachable from ``blocked``.
    """

    def add_blocking_edge(self, txn: Transaction, blocker_id: int,
                          blocked_id: int) -> BlockingEdge:
        require_issue(txn, blocker_id)
        require_issue(txn, blocked_id)
        if blocker_id == blocked_id:
            raise SelfBlockError(blocker_id)

        for edge in txn.query_by_field(Kind.BLOCKING_EDGE, "blocker_id", blocker_id):
            if edge.blocked_id == blocked_id:
                raise DuplicateEdgeError(blocker_id, blocked_id)

        if self.is_reachable(txn, blocked_id, blocker_id):
            raise CycleDetectedError(
                f"issue {blocked_id} already (transitively) blocks issue "
                f"{blocker_id}; adding {blocker_id} -> {blocked_id} would create a cycle"
            )

        edge = BlockingEdge(blocker_id=blocker_id, blocked_id=blocked_id)
        edge.id = txn.insert(Kind.BLOCKING_EDGE, edge)
        logger.debug("added blocking edge %d: %d -> %d", edge.id, blocker_id, blocked_id)
        return edge

    def is_reachable(self, txn: Transaction, start_id: int, target_id: int) -> bool:
        """Breadth-first search along blocker -> blocked edges.

        Visits at most as many nodes as there are issues.
        """
        bound = txn.count(Kind.ISSUE)
        visited = {start_id}
        queue = deque([start_id])
        while queue:
            node = queue.popleft()
            if node == target_id:
                return True
            for edge in txn.query_by_field(Kind.BLOCKING_EDGE, "blocker_id", node):
                if edge.blocked_id in visited:
                    continue
                visited.add(edge.blocked_id)
                if len(visited) > bound:
                    raise ConsistencyFault(
                        f"blocking traversal from {start_id} visited more than {bound} issues"
                    )
                queue.append(edge.blocked_id)
        return False

    def remove_blocking_edge(self, txn: Transaction, edge_id: int) -> BlockingEdge:
        edge = txn.get(Kind.BLOCKING_EDGE, edge_id)
        if edge is None:
            raise NotFoundError("blocking edge", edge_id)
        txn.delete(Kind.BLOCKING_EDGE, edge_id)
        logger.debug("removed blocking edge %d: %d -> %d",
                     edge_id, edge.blocker_id, edge.blocked_id)
        return edge

    def delete_issue_cascade(self, txn: Transaction, issue_id: int) -> list[BlockingEdge]:
        """Remove every edge where ``issue_id`` is blocker or blocked."""
        removed = {}
        for field in ("blocker_id", "blocked_id"):
            for edge in txn.query_by_field(Kind.BLOCKING_EDGE, field, issue_id):
                removed[edge.id] = edge
        for edge_id in removed:
            txn.delete(Kind.BLOCKING_EDGE, edge_id)
        if removed:
            logger.debug("removed %d blocking edge(s) of issue %d", len(removed), issue_id)
        return [removed[eid] for eid in sorted(removed)]

    def is_blocked(self, txn: Transaction, issue_id: int,
                   is_resolved: ResolvedPredicate) -> bool:
        """True if some blocker of ``issue_id`` has a status not counted as resolved."""
        for edge in self.list_blockers(txn, issue_id):
            blocker = require_issue(txn, edge.blocker_id)
            status = txn.get(Kind.STATUS, blocker.status_id)
            if status is None:
                raise ConsistencyFault(
                    f"issue {blocker.id} references missing status {blocker.status_id}"
                )
            if not is_resolved(status):
                return True
        return False

    def open_blockers(self, txn: Transaction, issue_id: int,
                      is_resolved: ResolvedPredicate) -> list[int]:
        """Ids of the blockers of ``issue_id`` whose status is not resolved."""
        unresolved = []
        for edge in self.list_blockers(txn, issue_id):
            blocker = require_issue(txn, edge.blocker_id)
            status = txn.get(Kind.STATUS, blocker.status_id)
            if status is None:
                raise ConsistencyFault(
                    f"issue {blocker.id} references missing status {blocker.status_id}"
                )
            if not is_resolved(status):
                unresolved.append(blocker.id)
        return unresolved

    def list_blockers(self, txn: Transaction, issue_id: int) -> list[BlockingEdge]:
        """Incoming edges: those whose ``blocked_id`` is ``issue_id``."""
        require_issue(txn, issue_id)
        return txn.query_by_field(Kind.BLOCKING_EDGE, "blocked_id", issue_id)

    def list_blocked(self, txn: Transaction, issue_id: int) -> list[BlockingEdge]:
        """Outgoing edges: those whose ``blocker_id`` is ``issue_id``."""
        require_issue(txn, issue_id)
        return txn.query_by_field(Kind.BLOCKING_EDGE, "blocker_id", issue_id)

    def list_edges(self, txn: Transaction) -> list[BlockingEdge]:
        return txn.all(Kind.BLOCKING_EDGE)

    def find_cycle(self, txn: Transaction) -> tuple[list[int] | None, list[int]]:
        """Scan the whole edge set.

        Returns ``(cycle, dangling)``: one directed cycle as a list of issue ids
        (or None), and the ids of edges with a missing endpoint.
        """
        issue_ids = {issue.id for issue in txn.all(Kind.ISSUE)}
        edges = txn.all(Kind.BLOCKING_EDGE)
        dangling = [
            e.id for e in edges
            if e.blocker_id not in issue_ids or e.blocked_id not in issue_ids
        ]

        adjacency: dict[int, list[int]] = {}
        for e in edges:
            adjacency.setdefault(e.blocker_id, []).append(e.blocked_id)

        # iterative DFS; 1 = on stack, 2 = finished
        state: dict[int, int] = {}
        for root in sorted(adjacency):
            if root in state:
                continue
            stack: list[tuple[int, int]] = [(root, 0)]
            path: list[int] = [root]
            state[root] = 1
            while stack:
                node, idx = stack[-1]
                successors = adjacency.get(node, [])
                if idx >= len(successors):
                    stack.pop()
                    path.pop()
                    state[node] = 2
                    continue
                stack[-1] = (node, idx + 1)
                nxt = successors[idx]
                if state.get(nxt) == 1:
                    return path[path.index(nxt):], dangling
                if nxt not in state:
                    state[nxt] = 1
                    stack.append((nxt, 0))
                    path.append(nxt)
        return None, dangling
