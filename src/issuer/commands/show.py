"""issuer show - display issue details."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError
from issuer.utils import status_label, truncate


@click.command("show")
@click.argument("issue_id", type=int)
@pass_ctx
def show(ctx: IssuerContext, issue_id: int) -> None:
    """Show detailed view of an issue."""
    ctx.ensure_initialized()
    assert ctx.engine is not None
    engine = ctx.engine

    try:
        issue = engine.get_issue(issue_id)
        children = engine.get_children(issue_id)
        blockers = engine.list_blockers(issue_id)
        blocking = engine.list_blocked(issue_id)
        is_blocked = engine.is_blocked(issue_id)
    except IssuerError as e:
        ctx.fail(e)
    names = ctx.status_names()

    if ctx.json_output:
        data = issue.to_dict()
        data["status"] = status_label(issue.status_id, names)
        data["blocked"] = is_blocked
        data["_children"] = [c.id for c in children]
        data["_blockers"] = [edge.to_dict() for edge in blockers]
        data["_blocking"] = [edge.to_dict() for edge in blocking]
        ctx.output(data)
        return

    click.echo(f"{'─' * 60}")
    click.echo(f"  Issue {issue.id}")
    click.echo(f"{'─' * 60}")
    click.echo(f"  Title:    {issue.title}")
    click.echo(f"  Status:   {status_label(issue.status_id, names)}")
    click.echo(f"  Parent:   {issue.parent_id if issue.parent_id is not None else '(root)'}")
    if is_blocked:
        click.echo("  Blocked:  yes")

    if issue.description:
        click.echo("\n  Description:")
        for line in issue.description.split("\n"):
            click.echo(f"    {line}")

    if children:
        click.echo(f"\n  Children ({len(children)}):")
        for child in children:
            click.echo(f"    {child.id} {truncate(child.title)}")

    if blockers:
        click.echo(f"\n  Blocked by ({len(blockers)}):")
        for edge in blockers:
            click.echo(f"    ← {edge.blocker_id} (edge {edge.id})")

    if blocking:
        click.echo(f"\n  Blocks ({len(blocking)}):")
        for edge in blocking:
            click.echo(f"    → {edge.blocked_id} (edge {edge.id})")
