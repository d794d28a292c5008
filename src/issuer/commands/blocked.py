"""issuer blocked - show blocked issues."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError
from issuer.utils import truncate


@click.command("blocked")
@click.argument("issue_id", type=int, required=False)
@pass_ctx
def blocked(ctx: IssuerContext, issue_id: int | None) -> None:
    """Show whether ISSUE_ID is blocked, or list every blocked issue.

    A blocker stops counting once its status is one of the configured
    resolved statuses.
    """
    ctx.ensure_initialized()
    assert ctx.engine is not None

    if issue_id is not None:
        try:
            is_blocked = ctx.engine.is_blocked(issue_id)
        except IssuerError as e:
            ctx.fail(e)
        if ctx.json_output:
            ctx.output({"id": issue_id, "blocked": is_blocked})
        elif is_blocked:
            click.echo(f"Issue {issue_id} is blocked")
        else:
            click.echo(f"Issue {issue_id} is not blocked")
        return

    try:
        blocked_list = ctx.engine.list_blocked_issues()
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        data = []
        for issue, blocker_ids in blocked_list:
            d = issue.to_dict()
            d["blocked_by"] = blocker_ids
            data.append(d)
        ctx.output(data)
        return

    if not blocked_list:
        click.echo("No blocked issues.")
        return

    for issue, blocker_ids in blocked_list:
        blockers = ", ".join(str(b) for b in blocker_ids)
        click.echo(f"  {issue.id:>5}  {truncate(issue.title, 45)}")
        click.echo(f"    blocked by: {blockers}")

    if not ctx.quiet:
        click.echo(f"\n{len(blocked_list)} blocked issue(s)")
