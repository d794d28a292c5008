"""Utility functions for issuer CLI output."""

from __future__ import annotations

from issuer.models import BlockingEdge, Issue


def truncate(s: str, max_len: int = 60) -> str:
    """Truncate a string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[:max_len - 3] + "..."


def status_label(status_id: int, names: dict[int, str]) -> str:
    return names.get(status_id, f"?{status_id}")


def format_issue_row(issue: Issue, names: dict[int, str]) -> str:
    """Format an issue as a single-line row for list display."""
    status = status_label(issue.status_id, names)
    parent = f"^{issue.parent_id}" if issue.parent_id is not None else "-"
    return f"  {issue.id:>5}  {status:<12} {parent:<6} {truncate(issue.title, 50)}"


def format_edge(edge: BlockingEdge) -> str:
    return f"  [{edge.id}] {edge.blocker_id} blocks {edge.blocked_id}"
