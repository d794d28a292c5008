"""Core data models for statuses, issues and blocking edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# --- Entity kinds ---

class Kind:
    STATUS = "status"
    ISSUE = "issue"
    BLOCKING_EDGE = "blocking_edge"

    _ALL = (STATUS, ISSUE, BLOCKING_EDGE)

    @classmethod
    def is_valid(cls, kind: str) -> bool:
        return kind in cls._ALL


# --- Dataclasses ---

@dataclass
class IssueStatus:
    id: int = 0
    name: str = ""

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, d: dict) -> IssueStatus:
        return cls(id=d.get("id", 0), name=d.get("name", ""))


@dataclass
class Issue:
    """An issue row. ``parent_id`` of None marks a root of the forest."""

    id: int = 0
    title: str = ""
    description: str = ""
    status_id: int = 0
    parent_id: int | None = None

    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status_id": self.status_id,
        }
        # parent is omitted for roots
        if self.parent_id is not None:
            d["parent_id"] = self.parent_id
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Issue:
        return cls(
            id=d.get("id", 0),
            title=d.get("title", ""),
            description=d.get("description", ""),
            status_id=d.get("status_id", 0),
            parent_id=d.get("parent_id"),
        )


@dataclass
class BlockingEdge:
    """``blocker_id`` blocks ``blocked_id``."""

    id: int = 0
    blocker_id: int = 0
    blocked_id: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "blocker_id": self.blocker_id,
            "blocked_id": self.blocked_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> BlockingEdge:
        return cls(
            id=d.get("id", 0),
            blocker_id=d.get("blocker_id", 0),
            blocked_id=d.get("blocked_id", 0),
        )


MODEL_FOR_KIND: dict[str, type] = {
    Kind.STATUS: IssueStatus,
    Kind.ISSUE: Issue,
    Kind.BLOCKING_EDGE: BlockingEdge,
}

# Mutable fields per kind; ``id`` is assigned by the store and never updated.
FIELDS_FOR_KIND: dict[str, tuple[str, ...]] = {
    Kind.STATUS: ("name",),
    Kind.ISSUE: ("title", "description", "status_id", "parent_id"),
    Kind.BLOCKING_EDGE: ("blocker_id", "blocked_id"),
}


@dataclass
class DeletionResult:
    """What a single issue deletion took with it."""
    issue: Issue
    removed_edges: list[BlockingEdge] = field(default_factory=list)
    orphaned_children: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "issue": self.issue.to_dict(),
            "removed_edges": [e.to_dict() for e in self.removed_edges],
            "orphaned_children": self.orphaned_children,
        }


@dataclass
class ConsistencyReport:
    """Result of a full scan of the forest and DAG invariants."""
    parent_cycles: list[list[int]] = field(default_factory=list)
    dangling_parents: list[int] = field(default_factory=list)
    dangling_statuses: list[int] = field(default_factory=list)
    blocking_cycle: list[int] | None = None
    dangling_edges: list[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (
            self.parent_cycles
            or self.dangling_parents
            or self.dangling_statuses
            or self.blocking_cycle
            or self.dangling_edges
        )

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "parent_cycles": self.parent_cycles,
            "dangling_parents": self.dangling_parents,
            "dangling_statuses": self.dangling_statuses,
            "blocking_cycle": self.blocking_cycle,
            "dangling_edges": self.dangling_edges,
        }
