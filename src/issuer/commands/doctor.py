"""issuer doctor - health checks."""

from __future__ import annotations

import os
import sys

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.errors import IssuerError
from issuer.storage.schema import SCHEMA_VERSION


@click.command("doctor")
@pass_ctx
def doctor(ctx: IssuerContext) -> None:
    """Run health checks on the issuer project.

    Exits with status 1 when the stored hierarchy or blocking graph violates
    its invariants.
    """
    ctx.ensure_initialized()
    assert ctx.store is not None and ctx.engine is not None
    assert ctx.issuer_dir is not None and ctx.db_path is not None

    version = ctx.store.get_metadata("schema_version")
    try:
        report = ctx.engine.check_consistency()
    except IssuerError as e:
        ctx.fail(e)

    if ctx.json_output:
        data = report.to_dict()
        data["schema_version"] = version
        ctx.output(data)
        if not report.ok:
            sys.exit(1)
        return

    problems = 0

    click.echo("issuer doctor")
    click.echo("─" * 40)
    click.echo(f"  .issuer/ directory: {ctx.issuer_dir}")
    click.echo(f"  Database: {ctx.db_path}")
    if os.path.exists(ctx.db_path):
        click.echo("    [OK] exists")
    click.echo(f"    Schema version: {version or 'unknown'}")
    if version != SCHEMA_VERSION:
        click.echo(f"    [WARN] expected schema version {SCHEMA_VERSION}")
        problems += 1

    click.echo("\n  Checking the parent hierarchy...")
    for cycle in report.parent_cycles:
        click.echo(f"    [ERROR] parent cycle: {' -> '.join(map(str, cycle))}")
    for issue_id in report.dangling_parents:
        click.echo(f"    [ERROR] issue {issue_id} points at a missing parent")
    if not (report.parent_cycles or report.dangling_parents):
        click.echo("    [OK] forest")

    click.echo("\n  Checking status references...")
    for issue_id in report.dangling_statuses:
        click.echo(f"    [ERROR] issue {issue_id} points at a missing status")
    if not report.dangling_statuses:
        click.echo("    [OK] all statuses exist")

    click.echo("\n  Checking for blocking cycles...")
    if report.blocking_cycle:
        click.echo(f"    [ERROR] blocking cycle: {' -> '.join(map(str, report.blocking_cycle))}")
    else:
        click.echo("    [OK] no cycles")
    for edge_id in report.dangling_edges:
        click.echo(f"    [ERROR] blocking edge {edge_id} has a missing endpoint")

    problems += (
        len(report.parent_cycles) + len(report.dangling_parents)
        + len(report.dangling_statuses) + len(report.dangling_edges)
        + (1 if report.blocking_cycle else 0)
    )

    click.echo()
    if problems:
        click.echo(f"Found {problems} problem(s)")
    else:
        click.echo("All checks passed!")
    if not report.ok:
        sys.exit(1)
