"""Tests for the blocking graph."""

import pytest

from issuer.blocking import BlockingGraphManager
from issuer.errors import (
    CycleDetectedError, DuplicateEdgeError, NotFoundError, SelfBlockError,
)
from issuer.models import BlockingEdge, Issue, IssueStatus, Kind
from issuer.storage.memory_store import MemoryStore


@pytest.fixture
def issues(engine, statuses):
    """Four unrelated open issues."""
    return [engine.create_issue(f"issue {n}", "", statuses["open"].id) for n in range(4)]


class TestLink:
    def test_link(self, engine, issues):
        a, b = issues[0], issues[1]
        edge = engine.link_blocking(a.id, b.id)
        assert (edge.blocker_id, edge.blocked_id) == (a.id, b.id)
        assert engine.list_blockers(b.id) == [edge]
        assert engine.list_blocked(a.id) == [edge]
        assert engine.list_edges() == [edge]

    def test_self_block(self, engine, issues):
        with pytest.raises(SelfBlockError):
            engine.link_blocking(issues[0].id, issues[0].id)

    def test_missing_endpoint(self, engine, issues):
        with pytest.raises(NotFoundError):
            engine.link_blocking(issues[0].id, 999)
        with pytest.raises(NotFoundError):
            engine.link_blocking(999, 999)

    def test_duplicate(self, engine, issues):
        a, b = issues[0], issues[1]
        engine.link_blocking(a.id, b.id)
        with pytest.raises(DuplicateEdgeError):
            engine.link_blocking(a.id, b.id)
        assert len(engine.list_edges()) == 1

    def test_two_cycle(self, engine, issues):
        a, b = issues[0], issues[1]
        engine.link_blocking(a.id, b.id)
        with pytest.raises(CycleDetectedError):
            engine.link_blocking(b.id, a.id)
        assert len(engine.list_edges()) == 1

    def test_transitive_cycle(self, engine, issues):
        a, b, c, _ = issues
        engine.link_blocking(a.id, b.id)
        engine.link_blocking(b.id, c.id)
        with pytest.raises(CycleDetectedError):
            engine.link_blocking(c.id, a.id)

    def test_diamond_is_allowed(self, engine, issues):
        a, b, c, d = issues
        engine.link_blocking(a.id, b.id)
        engine.link_blocking(a.id, c.id)
        engine.link_blocking(b.id, d.id)
        engine.link_blocking(c.id, d.id)
        with pytest.raises(CycleDetectedError):
            engine.link_blocking(d.id, a.id)
        assert len(engine.list_edges()) == 4

    def test_independent_of_hierarchy(self, engine, statuses):
        parent = engine.create_issue("parent", "", statuses["open"].id)
        child = engine.create_issue("child", "", statuses["open"].id, parent_id=parent.id)
        engine.link_blocking(child.id, parent.id)
        engine.link_blocking(parent.id, engine.create_issue("x", "", statuses["open"].id).id)
        assert len(engine.list_edges()) == 2


class TestUnlink:
    def test_unlink(self, engine, issues):
        a, b = issues[0], issues[1]
        edge = engine.link_blocking(a.id, b.id)
        assert engine.unlink_blocking(edge.id) == edge
        assert engine.list_edges() == []
        # the reverse edge is now fine
        engine.link_blocking(b.id, a.id)

    def test_unlink_missing(self, engine, issues):
        with pytest.raises(NotFoundError):
            engine.unlink_blocking(12345)


class TestIsBlocked:
    def test_unblocked_by_default(self, engine, issues):
        assert not engine.is_blocked(issues[0].id)

    def test_open_blocker_blocks(self, engine, statuses, issues):
        a, b = issues[0], issues[1]
        engine.link_blocking(a.id, b.id)
        assert engine.is_blocked(b.id)
        assert not engine.is_blocked(a.id)
        engine.update_status(a.id, statuses["closed"].id)
        assert not engine.is_blocked(b.id)

    def test_any_unresolved_blocker(self, engine, statuses, issues):
        a, b, c, _ = issues
        engine.link_blocking(a.id, c.id)
        engine.link_blocking(b.id, c.id)
        engine.update_status(a.id, statuses["closed"].id)
        assert engine.is_blocked(c.id)

    def test_custom_predicate(self, engine, statuses, issues):
        a, b = issues[0], issues[1]
        engine.link_blocking(a.id, b.id)
        engine.update_status(a.id, statuses["in_progress"].id)
        assert engine.is_blocked(b.id)
        assert not engine.is_blocked(b.id, lambda s: s.name != "open")

    def test_missing_issue(self, engine):
        with pytest.raises(NotFoundError):
            engine.is_blocked(7)

    def test_list_blocked_issues(self, engine, statuses, issues):
        a, b, c, _ = issues
        engine.link_blocking(a.id, c.id)
        engine.link_blocking(b.id, c.id)
        engine.update_status(b.id, statuses["closed"].id)
        blocked = engine.list_blocked_issues()
        assert [(issue.id, ids) for issue, ids in blocked] == [(c.id, [a.id])]


class TestDeleteCascade:
    def test_edges_removed_both_directions(self, engine, issues):
        a, b, c, d = issues
        engine.link_blocking(a.id, b.id)
        engine.link_blocking(b.id, c.id)
        keep = engine.link_blocking(c.id, d.id)
        result = engine.delete_issue(b.id)
        assert sorted((e.blocker_id, e.blocked_id) for e in result.removed_edges) == [
            (a.id, b.id), (b.id, c.id),
        ]
        assert engine.list_edges() == [keep]
        assert not engine.is_blocked(c.id)
        with pytest.raises(NotFoundError):
            engine.list_blockers(b.id)


class TestFindCycle:
    def test_clean_graph(self, engine, issues):
        engine.link_blocking(issues[0].id, issues[1].id)
        assert engine.check_consistency().blocking_cycle is None

    def test_corrupt_graph(self):
        store = MemoryStore()
        with store.begin_transaction() as txn:
            sid = txn.insert(Kind.STATUS, IssueStatus(name="open"))
            one = txn.insert(Kind.ISSUE, Issue(title="one", status_id=sid))
            two = txn.insert(Kind.ISSUE, Issue(title="two", status_id=sid))
            txn.insert(Kind.BLOCKING_EDGE, BlockingEdge(blocker_id=one, blocked_id=two))
            txn.insert(Kind.BLOCKING_EDGE, BlockingEdge(blocker_id=two, blocked_id=one))
            stray = txn.insert(Kind.BLOCKING_EDGE, BlockingEdge(blocker_id=one, blocked_id=50))
            txn.commit()
        manager = BlockingGraphManager()
        with store.begin_transaction(readonly=True) as txn:
            cycle, dangling = manager.find_cycle(txn)
            # traversal still terminates on cyclic data
            assert manager.is_reachable(txn, two, one)
        assert sorted(cycle) == [one, two]
        assert dangling == [stray]
