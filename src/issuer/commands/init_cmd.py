"""issuer init - initialize a new .issuer/ directory."""

from __future__ import annotations

import os

import click

from issuer.cli import IssuerContext, pass_ctx
from issuer.config import DEFAULT_STATUSES, ISSUER_DIR, IssuerConfig, get_db_path
from issuer.engine import IntegrityEngine
from issuer.errors import DuplicateNameError, IssuerError
from issuer.storage.sqlite_store import open_storage


@click.command("init")
@click.option("--status", "-s", "statuses", multiple=True,
              help="Status to seed (repeatable; default: open, in_progress, closed)")
@pass_ctx
def init_cmd(ctx: IssuerContext, statuses: tuple[str, ...]) -> None:
    """Initialize a new issuer project in the current directory."""
    issuer_dir = os.path.join(os.getcwd(), ISSUER_DIR)

    if os.path.exists(issuer_dir):
        click.echo(f"issuer already initialized at {issuer_dir}")
        return

    config = IssuerConfig(default_statuses=list(statuses or DEFAULT_STATUSES))
    if ctx.db_path:
        config.db = os.path.abspath(ctx.db_path)

    os.makedirs(issuer_dir, exist_ok=True)
    config.save(issuer_dir)

    gitignore_path = os.path.join(issuer_dir, ".gitignore")
    with open(gitignore_path, "w") as f:
        f.write("# issuer local files\n")
        f.write("*.db\n")
        f.write("*.db-wal\n")
        f.write("*.db-shm\n")

    db_path = get_db_path(issuer_dir, config)
    try:
        store = open_storage(db_path, busy_timeout=config.busy_timeout)
    except IssuerError as e:
        ctx.fail(e)
    try:
        engine = IntegrityEngine.from_config(store, config)
        for name in config.default_statuses:
            try:
                engine.create_status(name)
            except DuplicateNameError:
                pass
        seeded = [s.to_dict() for s in engine.list_statuses()]
    except IssuerError as e:
        ctx.fail(e)
    finally:
        store.close()

    if ctx.json_output:
        ctx.output({"path": issuer_dir, "database": db_path, "statuses": seeded})
        return

    click.echo(f"Initialized issuer in {issuer_dir}")
    click.echo(f"  Database: {db_path}")
    click.echo(f"  Statuses: {', '.join(s['name'] for s in seeded)}")
