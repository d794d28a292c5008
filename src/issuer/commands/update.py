"""issuer update - update an issue."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError


@click.command("update")
@click.argument("issue_id", type=int)
@click.option("--status", "-s", "status_ident", default=None,
              help="New status id or name")
@click.option("--title", "-t", default=None, help="New title")
@click.option("--description", "-d", default=None, help="New description")
@pass_ctx
def update(ctx: IssuerContext, issue_id: int, status_ident: str | None,
           title: str | None, description: str | None) -> None:
    """Update an existing issue.

    The parent is changed with 'issuer reparent', blocking edges with
    'issuer block'.
    """
    ctx.ensure_initialized()
    assert ctx.engine is not None

    if status_ident is None and title is None and description is None:
        click.echo("No updates specified.")
        return

    new_status = ctx.resolve_status(status_ident) if status_ident is not None else None
    try:
        issue = ctx.engine.update_issue(
            issue_id, title=title, description=description,
            status_id=new_status.id if new_status is not None else None,
        )
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(issue.to_dict())
    elif not ctx.quiet:
        click.echo(f"Updated issue {issue.id}")
