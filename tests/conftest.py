"""Shared fixtures: every engine-level test runs against both store adapters."""

import os
import tempfile

import pytest

from issuer.engine import IntegrityEngine
from issuer.storage.memory_store import MemoryStore
from issuer.storage.sqlite_store import SQLiteStorage


@pytest.fixture(params=["sqlite", "memory"])
def store(request):
    if request.param == "memory":
        s = MemoryStore()
        yield s
        s.close()
        return
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    s = SQLiteStorage(path)
    yield s
    s.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.unlink(path + suffix)


@pytest.fixture
def engine(store):
    return IntegrityEngine(store, resolved_statuses=("closed",))


@pytest.fixture
def statuses(engine):
    """The usual three statuses, by name."""
    return {name: engine.create_status(name) for name in ("open", "in_progress", "closed")}
