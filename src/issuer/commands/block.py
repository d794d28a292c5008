"""issuer block - manage blocking edges."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError
from issuer.utils import format_edge, truncate


@click.group("block")
def block() -> None:
    """Manage which issues block which."""


@block.command("add")
@click.argument("blocker_id", type=int)
@click.argument("blocked_id", type=int)
@pass_ctx
def block_add(ctx: IssuerContext, blocker_id: int, blocked_id: int) -> None:
    """Record that BLOCKER_ID blocks BLOCKED_ID."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    try:
        edge = ctx.engine.link_blocking(blocker_id, blocked_id)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(edge.to_dict())
    elif not ctx.quiet:
        click.echo(f"Added blocking edge {edge.id}: {blocker_id} blocks {blocked_id}")


@block.command("remove")
@click.argument("edge_id", type=int)
@pass_ctx
def block_remove(ctx: IssuerContext, edge_id: int) -> None:
    """Remove a blocking edge by its id."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    try:
        edge = ctx.engine.unlink_blocking(edge_id)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(edge.to_dict())
    elif not ctx.quiet:
        click.echo(f"Removed blocking edge {edge.id}: "
                   f"{edge.blocker_id} → {edge.blocked_id}")


@block.command("list")
@click.argument("issue_id", type=int, required=False)
@pass_ctx
def block_list(ctx: IssuerContext, issue_id: int | None) -> None:
    """List blocking edges, all of them or those touching ISSUE_ID."""
    ctx.ensure_initialized()
    assert ctx.engine is not None
    engine = ctx.engine

    if issue_id is None:
        edges = engine.list_edges()
        if ctx.json_output:
            ctx.output([e.to_dict() for e in edges])
            return
        if not edges:
            click.echo("No blocking edges.")
            return
        for edge in edges:
            click.echo(format_edge(edge))
        if not ctx.quiet:
            click.echo(f"\n{len(edges)} edge(s)")
        return

    try:
        blockers = engine.list_blockers(issue_id)
        blocking = engine.list_blocked(issue_id)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output({
            "blockers": [e.to_dict() for e in blockers],
            "blocking": [e.to_dict() for e in blocking],
        })
        return

    if blockers:
        click.echo(f"Issue {issue_id} is blocked by:")
        for edge in blockers:
            title = engine.get_issue(edge.blocker_id).title
            click.echo(f"  ← {edge.blocker_id} [{edge.id}] {truncate(title)}")
    else:
        click.echo(f"Nothing blocks issue {issue_id}")

    if blocking:
        click.echo(f"\nIssue {issue_id} blocks:")
        for edge in blocking:
            title = engine.get_issue(edge.blocked_id).title
            click.echo(f"  → {edge.blocked_id} [{edge.id}] {truncate(title)}")
