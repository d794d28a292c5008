"""Error kinds raised by the integrity engine and the store adapters.

Every error aborts the transaction it was raised in. Only ``ConflictError`` is
transient; callers may retry the whole operation.
"""

from __future__ import annotations


class IssuerError(Exception):
    """Base class for all engine errors."""

    kind = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(IssuerError):
    kind = "NotFound"

    def __init__(self, entity: str, ident: object) -> None:
        super().__init__(f"{entity} not found: {ident}")
        self.entity = entity
        self.ident = ident


class DuplicateNameError(IssuerError):
    kind = "DuplicateName"

    def __init__(self, name: str) -> None:
        super().__init__(f"status with name {name!r} already exists")
        self.name = name


class SelfReferenceError(IssuerError):
    kind = "SelfReference"

    def __init__(self, issue_id: int) -> None:
        super().__init__(f"issue {issue_id} cannot be its own parent")
        self.issue_id = issue_id


class SelfBlockError(IssuerError):
    kind = "SelfBlock"

    def __init__(self, issue_id: int) -> None:
        super().__init__(f"issue {issue_id} cannot block itself")
        self.issue_id = issue_id


class CycleDetectedError(IssuerError):
    kind = "CycleDetected"


class DuplicateEdgeError(IssuerError):
    kind = "DuplicateEdge"

    def __init__(self, blocker_id: int, blocked_id: int) -> None:
        super().__init__(f"issue {blocker_id} already blocks issue {blocked_id}")
        self.blocker_id = blocker_id
        self.blocked_id = blocked_id


class StatusInUseError(IssuerError):
    kind = "StatusInUse"

    def __init__(self, status_id: int, issue_count: int) -> None:
        super().__init__(
            f"status {status_id} cannot be deleted: "
            f"in use by {issue_count} issue(s)"
        )
        self.status_id = status_id
        self.issue_count = issue_count


class ConflictError(IssuerError):
    """Transaction serialization failure under concurrent mutation."""

    kind = "Conflict"


class InvalidInputError(IssuerError):
    kind = "InvalidInput"


class ConsistencyFault(IssuerError):
    """A bounded traversal exceeded its bound: stored data violates an invariant."""

    kind = "ConsistencyFault"


class StoreError(IssuerError):
    """The storage backend failed for a reason other than a conflict."""

    kind = "StoreError"
