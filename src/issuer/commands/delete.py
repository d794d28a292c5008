"""issuer delete - delete an issue."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError


@click.command("delete")
@click.argument("issue_id", type=int)
@pass_ctx
def delete(ctx: IssuerContext, issue_id: int) -> None:
    """Delete an issue.

    Its blocking edges are removed and its children become roots.
    """
    ctx.ensure_initialized()
    assert ctx.engine is not None

    try:
        result = ctx.engine.delete_issue(issue_id)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(result.to_dict())
        return
    if ctx.quiet:
        return

    click.echo(f"Deleted issue {result.issue.id}: {result.issue.title}")
    if result.removed_edges:
        click.echo(f"  Removed {len(result.removed_edges)} blocking edge(s)")
    if result.orphaned_children:
        orphans = ", ".join(str(c) for c in result.orphaned_children)
        click.echo(f"  Promoted to root: {orphans}")
