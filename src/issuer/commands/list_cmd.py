"""issuer list - list issues."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError
from issuer.utils import format_issue_row


@click.command("list")
@click.option("--status", "-s", "status_ident", default=None,
              help="Filter by status id or name")
@click.option("--roots", is_flag=True, help="Only show issues without a parent")
@pass_ctx
def list_cmd(ctx: IssuerContext, status_ident: str | None, roots: bool) -> None:
    """List issues with filters."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    status_id = ctx.resolve_status(status_ident).id if status_ident else None
    try:
        issues = ctx.engine.list_issues(status_id=status_id, roots_only=roots)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output([i.to_dict() for i in issues])
        return

    if not issues:
        click.echo("No issues found.")
        return

    names = ctx.status_names()
    for issue in issues:
        click.echo(format_issue_row(issue, names))

    if not ctx.quiet:
        click.echo(f"\n{len(issues)} issue(s)")
