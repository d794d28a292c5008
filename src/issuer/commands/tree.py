"""issuer tree - show an issue's place in the hierarchy."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError
from issuer.utils import truncate


@click.command("tree")
@click.argument("issue_id", type=int)
@pass_ctx
def tree(ctx: IssuerContext, issue_id: int) -> None:
    """Show the root-to-issue path and the issue's direct children."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    try:
        issue = ctx.engine.get_issue(issue_id)
        ancestors = ctx.engine.get_ancestors(issue_id)
        children = ctx.engine.get_children(issue_id)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output({
            "issue": issue.to_dict(),
            "ancestors": [a.to_dict() for a in ancestors],
            "children": [c.to_dict() for c in children],
        })
        return

    path = list(reversed(ancestors)) + [issue]
    for depth, node in enumerate(path):
        marker = "*" if node.id == issue.id else " "
        click.echo(f"{'  ' * depth}{marker} {node.id} {truncate(node.title)}")
    indent = "  " * len(path)
    for child in children:
        click.echo(f"{indent}  {child.id} {truncate(child.title)}")
