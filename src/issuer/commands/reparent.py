"""issuer reparent - move an issue within the hierarchy."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError


@click.command("reparent")
@click.argument("issue_id", type=int)
@click.argument("parent_id", type=int, required=False)
@click.option("--root", "make_root", is_flag=True, help="Detach the issue from its parent")
@pass_ctx
def reparent(ctx: IssuerContext, issue_id: int, parent_id: int | None,
             make_root: bool) -> None:
    """Make PARENT_ID the parent of ISSUE_ID, or make ISSUE_ID a root."""
    if (parent_id is None) == (not make_root):
        raise click.UsageError("give exactly one of PARENT_ID or --root")

    ctx.ensure_initialized()
    assert ctx.engine is not None

    try:
        issue = ctx.engine.reparent_issue(issue_id, parent_id)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(issue.to_dict())
    elif not ctx.quiet:
        if issue.parent_id is None:
            click.echo(f"Issue {issue.id} is now a root")
        else:
            click.echo(f"Issue {issue.id} moved under {issue.parent_id}")
