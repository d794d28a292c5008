"""Tests for the integrity engine: atomicity, retries and concurrency."""

import os
import random
import tempfile
import threading

import pytest

from issuer.config import IssuerConfig
from issuer.engine import IntegrityEngine, open_engine
from issuer.errors import (
    ConflictError, CycleDetectedError, DuplicateEdgeError, InvalidInputError,
    NotFoundError, SelfBlockError, SelfReferenceError, StoreError,
)
from issuer.models import Issue, IssueStatus, Kind
from issuer.storage.memory_store import MemoryStore
from issuer.storage.sqlite_store import SQLiteStorage


class TestIssues:
    def test_create_and_get(self, engine, statuses):
        issue = engine.create_issue("Write docs", "all of them", statuses["open"].id)
        got = engine.get_issue(issue.id)
        assert got == issue
        assert got.description == "all of them"
        assert got.is_root()

    def test_create_with_missing_status(self, engine):
        with pytest.raises(NotFoundError):
            engine.create_issue("x", "", 3)
        assert engine.list_issues() == []

    @pytest.mark.parametrize("title", ["", "  "])
    def test_blank_title(self, engine, statuses, title):
        with pytest.raises(InvalidInputError):
            engine.create_issue(title, "", statuses["open"].id)

    def test_get_missing(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_issue(1)

    def test_list_filters(self, engine, statuses):
        a = engine.create_issue("a", "", statuses["open"].id)
        b = engine.create_issue("b", "", statuses["closed"].id, parent_id=a.id)
        c = engine.create_issue("c", "", statuses["closed"].id)
        assert [i.id for i in engine.list_issues()] == [a.id, b.id, c.id]
        assert [i.id for i in engine.list_issues(status_id=statuses["closed"].id)] == [b.id, c.id]
        assert [i.id for i in engine.list_issues(roots_only=True)] == [a.id, c.id]
        assert [i.id for i in engine.list_issues(status_id=statuses["closed"].id,
                                                  roots_only=True)] == [c.id]

    def test_update_fields(self, engine, statuses):
        issue = engine.create_issue("old", "", statuses["open"].id)
        updated = engine.update_issue(issue.id, title="new", description="more")
        assert (updated.title, updated.description) == ("new", "more")
        assert engine.get_issue(issue.id) == updated

    def test_update_blank_title(self, engine, statuses):
        issue = engine.create_issue("keep", "", statuses["open"].id)
        with pytest.raises(InvalidInputError):
            engine.update_issue(issue.id, title="")
        assert engine.get_issue(issue.id).title == "keep"

    def test_update_fields_and_status_together(self, engine, statuses):
        issue = engine.create_issue("old", "", statuses["open"].id)
        updated = engine.update_issue(issue.id, title="new",
                                      status_id=statuses["closed"].id)
        assert (updated.title, updated.status_id) == ("new", statuses["closed"].id)
        assert engine.get_issue(issue.id) == updated

    def test_update_with_bad_status_changes_nothing(self, engine, statuses):
        issue = engine.create_issue("old", "", statuses["open"].id)
        with pytest.raises(NotFoundError):
            engine.update_issue(issue.id, title="new", status_id=99)
        assert engine.get_issue(issue.id) == issue

    def test_update_status(self, engine, statuses):
        issue = engine.create_issue("t", "", statuses["open"].id)
        moved = engine.update_status(issue.id, statuses["closed"].id)
        assert moved.status_id == statuses["closed"].id
        assert engine.get_issue(issue.id).status_id == statuses["closed"].id

    def test_update_status_missing(self, engine, statuses):
        issue = engine.create_issue("t", "", statuses["open"].id)
        with pytest.raises(NotFoundError):
            engine.update_status(issue.id, 99)
        assert engine.get_issue(issue.id).status_id == statuses["open"].id

    def test_update_status_ignores_blockers(self, engine, statuses):
        a = engine.create_issue("a", "", statuses["open"].id)
        b = engine.create_issue("b", "", statuses["open"].id)
        engine.link_blocking(a.id, b.id)
        engine.update_status(b.id, statuses["closed"].id)
        assert engine.get_issue(b.id).status_id == statuses["closed"].id

    def test_delete_missing(self, engine):
        with pytest.raises(NotFoundError):
            engine.delete_issue(5)

    def test_delete_both_cascades(self, engine, statuses):
        open_id = statuses["open"].id
        parent = engine.create_issue("parent", "", open_id)
        child = engine.create_issue("child", "", open_id, parent_id=parent.id)
        other = engine.create_issue("other", "", open_id)
        engine.link_blocking(parent.id, other.id)
        engine.link_blocking(other.id, child.id)

        result = engine.delete_issue(parent.id)

        assert result.issue.id == parent.id
        assert result.orphaned_children == [child.id]
        assert [(e.blocker_id, e.blocked_id) for e in result.removed_edges] == [
            (parent.id, other.id),
        ]
        assert engine.get_issue(child.id).is_root()
        assert not engine.is_blocked(other.id)
        assert engine.is_blocked(child.id)
        assert engine.check_consistency().ok


class TestAtomicity:
    def test_failed_cascade_rolls_back(self, engine, statuses, monkeypatch):
        open_id = statuses["open"].id
        parent = engine.create_issue("parent", "", open_id)
        child = engine.create_issue("child", "", open_id, parent_id=parent.id)
        other = engine.create_issue("other", "", open_id)
        edge = engine.link_blocking(parent.id, other.id)

        def fail(txn, issue_id):
            raise StoreError("disk on fire")

        monkeypatch.setattr(engine.hierarchy, "delete_issue_cascade", fail)
        with pytest.raises(StoreError):
            engine.delete_issue(parent.id)

        # the blocking cascade ran first and must have been undone
        assert engine.list_edges() == [edge]
        assert engine.get_issue(parent.id).title == "parent"
        assert engine.get_issue(child.id).parent_id == parent.id

    def test_rejected_reparent_keeps_old_parent(self, engine, statuses):
        open_id = statuses["open"].id
        a = engine.create_issue("a", "", open_id)
        b = engine.create_issue("b", "", open_id, parent_id=a.id)
        with pytest.raises(CycleDetectedError):
            engine.reparent_issue(a.id, b.id)
        assert engine.get_issue(b.id).parent_id == a.id
        assert engine.get_issue(a.id).is_root()


class FlakyStore(MemoryStore):
    """Memory store that reports a conflict for the first ``failures`` begins."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def begin_transaction(self, readonly: bool = False):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConflictError("simulated conflict")
        return super().begin_transaction(readonly=readonly)


class TestConflictRetry:
    def test_retries_then_succeeds(self):
        store = FlakyStore(failures=2)
        engine = IntegrityEngine(store, max_conflict_retries=2)
        created = engine.create_status("open")
        assert created.name == "open"
        assert store.attempts == 3

    def test_surfaces_when_exhausted(self):
        store = FlakyStore(failures=2)
        engine = IntegrityEngine(store, max_conflict_retries=1)
        with pytest.raises(ConflictError):
            engine.create_status("open")
        assert store.attempts == 2

    def test_no_retry_by_default(self):
        store = FlakyStore(failures=1)
        engine = IntegrityEngine(store)
        with pytest.raises(ConflictError):
            engine.list_statuses()
        assert engine.list_statuses() == []

    def test_negative_retries(self):
        with pytest.raises(ValueError):
            IntegrityEngine(MemoryStore(), max_conflict_retries=-1)


class TestConsistency:
    def test_clean(self, engine, statuses):
        a = engine.create_issue("a", "", statuses["open"].id)
        b = engine.create_issue("b", "", statuses["open"].id, parent_id=a.id)
        engine.link_blocking(a.id, b.id)
        report = engine.check_consistency()
        assert report.ok
        assert report.to_dict()["blocking_cycle"] is None

    def test_reports_corruption(self):
        store = MemoryStore()
        with store.begin_transaction() as txn:
            sid = txn.insert(Kind.STATUS, IssueStatus(name="open"))
            one = txn.insert(Kind.ISSUE, Issue(title="one", status_id=sid))
            two = txn.insert(Kind.ISSUE, Issue(title="two", status_id=sid, parent_id=one))
            txn.update(Kind.ISSUE, one, {"parent_id": two})
            ghost = txn.insert(Kind.ISSUE, Issue(title="ghost", status_id=77))
            txn.commit()
        report = IntegrityEngine(store).check_consistency()
        assert not report.ok
        assert report.parent_cycles == [[one, two]]
        assert report.dangling_statuses == [ghost]
        assert report.dangling_parents == []

    @pytest.mark.parametrize("seed", range(6))
    def test_random_mutations_keep_invariants(self, engine, statuses, seed):
        rng = random.Random(seed)
        open_id = statuses["open"].id
        live = [engine.create_issue(f"i{n}", "", open_id).id for n in range(8)]
        rejected = (NotFoundError, SelfReferenceError, SelfBlockError,
                    CycleDetectedError, DuplicateEdgeError)
        for _ in range(120):
            roll = rng.random()
            try:
                if roll < 0.35:
                    parent = rng.choice(live + [None])
                    engine.reparent_issue(rng.choice(live), parent)
                elif roll < 0.7:
                    engine.link_blocking(rng.choice(live), rng.choice(live))
                elif roll < 0.8:
                    edges = engine.list_edges()
                    if edges:
                        engine.unlink_blocking(rng.choice(edges).id)
                elif roll < 0.9 and len(live) > 2:
                    victim = rng.choice(live)
                    engine.delete_issue(victim)
                    live.remove(victim)
                else:
                    parent = rng.choice(live + [None])
                    live.append(engine.create_issue("new", "", open_id,
                                                    parent_id=parent).id)
            except rejected:
                pass
        report = engine.check_consistency()
        assert report.ok, report.to_dict()
        for issue_id in live:
            assert len(engine.get_ancestors(issue_id)) < len(live)
        known = set(live)
        for edge in engine.list_edges():
            assert {edge.blocker_id, edge.blocked_id} <= known


class TestConfig:
    def test_from_config(self):
        config = IssuerConfig(resolved_statuses=["done", "wontfix"], max_conflict_retries=5)
        engine = open_engine(MemoryStore(), config)
        assert engine.resolved_statuses == {"done", "wontfix"}
        assert engine.max_conflict_retries == 5

    def test_default_predicate(self):
        engine = open_engine(MemoryStore())
        assert engine.is_resolved(IssueStatus(1, "closed"))
        assert not engine.is_resolved(IssueStatus(2, "open"))


@pytest.fixture
def db_file():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.unlink(path + suffix)


def _race(make_engine, a_id: int, b_id: int):
    """Link a->b and b->a from two threads at once; return both outcomes."""
    engines = [make_engine(), make_engine()]
    barrier = threading.Barrier(2)
    outcomes: list = [None, None]

    def worker(slot: int, blocker: int, blocked: int) -> None:
        barrier.wait()
        try:
            outcomes[slot] = engines[slot].link_blocking(blocker, blocked)
        except Exception as e:  # collected for the assertions below
            outcomes[slot] = e

    threads = [
        threading.Thread(target=worker, args=(0, a_id, b_id)),
        threading.Thread(target=worker, args=(1, b_id, a_id)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return engines, outcomes


class TestConcurrency:
    def test_concurrent_opposite_edges_sqlite(self, db_file: str):
        setup = IntegrityEngine(SQLiteStorage(db_file))
        open_id = setup.create_status("open").id
        a = setup.create_issue("a", "", open_id)
        b = setup.create_issue("b", "", open_id)

        engines, outcomes = _race(lambda: IntegrityEngine(SQLiteStorage(db_file)), a.id, b.id)

        successes = [o for o in outcomes if not isinstance(o, Exception)]
        failures = [o for o in outcomes if isinstance(o, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], (CycleDetectedError, ConflictError))
        assert len(setup.list_edges()) == 1
        assert setup.check_consistency().ok

        for e in engines + [setup]:
            e.store.close()

    def test_concurrent_opposite_edges_memory(self):
        store = MemoryStore()
        engine = IntegrityEngine(store)
        open_id = engine.create_status("open").id
        a = engine.create_issue("a", "", open_id)
        b = engine.create_issue("b", "", open_id)

        _, outcomes = _race(lambda: IntegrityEngine(store), a.id, b.id)

        assert sum(isinstance(o, CycleDetectedError) for o in outcomes) == 1
        assert len(engine.list_edges()) == 1
