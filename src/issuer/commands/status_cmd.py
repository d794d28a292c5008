"""issuer status - manage the set of issue statuses."""

from __future__ import annotations

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError


@click.group("status")
def status() -> None:
    """Manage issue statuses.

    Commands taking IDENT accept either a numeric id or a status name.
    """


@status.command("create")
@click.argument("name")
@pass_ctx
def status_create(ctx: IssuerContext, name: str) -> None:
    """Create a status named NAME."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    try:
        created = ctx.engine.create_status(name)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(created.to_dict())
    elif not ctx.quiet:
        click.echo(f"Created status {created.id}: {created.name}")


@status.command("rename")
@click.argument("ident")
@click.argument("new_name")
@pass_ctx
def status_rename(ctx: IssuerContext, ident: str, new_name: str) -> None:
    """Rename a status. Issues keep referring to it by id."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    current = ctx.resolve_status(ident)
    try:
        renamed = ctx.engine.rename_status(current.id, new_name)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(renamed.to_dict())
    elif not ctx.quiet:
        click.echo(f"Renamed status {renamed.id}: {current.name} -> {renamed.name}")


@status.command("delete")
@click.argument("ident")
@pass_ctx
def status_delete(ctx: IssuerContext, ident: str) -> None:
    """Delete a status no issue uses."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    current = ctx.resolve_status(ident)
    try:
        deleted = ctx.engine.delete_status(current.id)
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        ctx.output(deleted.to_dict())
    elif not ctx.quiet:
        click.echo(f"Deleted status {deleted.id}: {deleted.name}")


@status.command("show")
@click.argument("ident")
@pass_ctx
def status_show(ctx: IssuerContext, ident: str) -> None:
    """Show a status and how many issues use it."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    found = ctx.resolve_status(ident)
    users = ctx.engine.list_issues(status_id=found.id)

    if ctx.json_output:
        data = found.to_dict()
        data["issue_count"] = len(users)
        ctx.output(data)
        return

    click.echo(f"  Id:     {found.id}")
    click.echo(f"  Name:   {found.name}")
    click.echo(f"  Issues: {len(users)}")


@status.command("list")
@pass_ctx
def status_list(ctx: IssuerContext) -> None:
    """List all statuses."""
    ctx.ensure_initialized()
    assert ctx.engine is not None

    statuses = ctx.engine.list_statuses()
    resolved = ctx.engine.resolved_statuses

    if ctx.json_output:
        ctx.output([s.to_dict() for s in statuses])
        return

    if not statuses:
        click.echo("No statuses defined.")
        return

    for s in statuses:
        marker = " (resolved)" if s.name in resolved else ""
        click.echo(f"  {s.id:>4}  {s.name}{marker}")

    if not ctx.quiet:
        click.echo(f"\n{len(statuses)} status(es)")
