"""issuer create - create a new issue."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError


@click.command("create")
@click.option("--title", "-t", required=True, help="Issue title")
@click.option("--description", "-d", default="", help="Issue description")
@click.option("--status", "-s", "status_ident", default=None,
              help="Status id or name (default: first configured default status)")
@click.option("--parent", type=int, default=None, help="Parent issue id")
@click.option("--silent", is_flag=True, help="Only output the issue id")
@pass_ctx
def create(ctx: IssuerContext, title: str, description: str,
           status_ident: str | None, parent: int | None, silent: bool) -> None:
    """Create a new issue."""
    ctx.ensure_initialized()
    assert ctx.engine is not None and ctx.config is not None

    if status_ident is None:
        if not ctx.config.default_statuses:
            ctx.fail("no --status given and no default statuses configured")
        status_ident = ctx.config.default_statuses[0]
    issue_status = ctx.resolve_status(status_ident)

    try:
        issue = ctx.engine.create_issue(title, description, issue_status.id,
                                        parent_id=parent)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(issue.to_dict())
    elif silent:
        click.echo(issue.id)
    else:
        click.echo(f"Created issue {issue.id}: {issue.title}")
        if issue.parent_id is not None:
            click.echo(f"  Parent: {issue.parent_id}")
