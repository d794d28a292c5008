"""Click CLI root and global flags for issuer."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import NoReturn

import click

from issuer import __version__
from issuer.config import (
    ENV_LOG, IssuerConfig, find_issuer_dir, get_db_path, parse_log_level,
)
from issuer.engine import IntegrityEngine
from issuer.errors import IssuerError
from issuer.models import IssueStatus
from issuer.storage.sqlite_store import SQLiteStorage, open_storage


class ClickEchoHandler(logging.Handler):
    """Log handler that writes through click so CliRunner captures it."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def setup_logging(level: int) -> None:
    """Route the ``issuer`` loggers to stderr at ``level``."""
    root = logging.getLogger("issuer")
    for handler in list(root.handlers):
        if isinstance(handler, ClickEchoHandler):
            root.removeHandler(handler)
    handler = ClickEchoHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


class IssuerContext:
    """Shared context for all commands."""

    def __init__(self) -> None:
        self.issuer_dir: str | None = None
        self.db_path: str | None = None
        self.store: SQLiteStorage | None = None
        self.engine: IntegrityEngine | None = None
        self.config: IssuerConfig | None = None
        self.json_output: bool = False
        self.verbose: bool = False
        self.quiet: bool = False

    def log_level(self, config: IssuerConfig | None = None) -> int:
        if self.verbose:
            return logging.DEBUG
        if self.quiet:
            return logging.ERROR
        if config is not None:
            return parse_log_level(config.log_level)
        return parse_log_level(os.environ.get(ENV_LOG))

    def ensure_initialized(self) -> None:
        """Ensure the .issuer/ directory, storage and engine are available."""
        if self.engine is not None:
            return
        self.issuer_dir = find_issuer_dir()
        if self.issuer_dir is None:
            click.echo("Error: not in an issuer project (no .issuer/ directory found)",
                       err=True)
            click.echo("Run 'issuer init' to create one", err=True)
            sys.exit(1)
        try:
            self.config = IssuerConfig.load(self.issuer_dir)
        except (OSError, ValueError) as e:
            self.fail(f"could not load config: {e}")
        setup_logging(self.log_level(self.config))
        if not self.json_output:
            self.json_output = self.config.json_output
        if not self.db_path:
            self.db_path = get_db_path(self.issuer_dir, self.config)
        try:
            self.store = open_storage(self.db_path, busy_timeout=self.config.busy_timeout)
        except IssuerError as e:
            self.fail(e)
        self.engine = IntegrityEngine.from_config(self.store, self.config)

    def resolve_status(self, ident: str) -> IssueStatus:
        """Look a status up by numeric id or, failing that, by name."""
        assert self.engine is not None
        try:
            if ident.isdigit():
                return self.engine.get_status(int(ident))
            return self.engine.get_status_by_name(ident)
        except IssuerError as e:
            self.fail(e)

    def status_names(self) -> dict[int, str]:
        assert self.engine is not None
        return {s.id: s.name for s in self.engine.list_statuses()}

    def fail(self, error: object) -> NoReturn:
        """Report ``error`` on stderr and exit 1; typed errors as JSON under --json."""
        if self.json_output and isinstance(error, IssuerError):
            click.echo(json.dumps({"error": error.to_dict()}, indent=2), err=True)
        else:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    def output(self, data: dict | list) -> None:
        """Output data as JSON."""
        click.echo(json.dumps(data, indent=2, default=str))

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store = None
            self.engine = None


pass_ctx = click.make_pass_decorator(IssuerContext, ensure=True)


@click.group(invoke_without_command=True)
@click.option("--db", help="Path to database file (default: .issuer/issuer.db)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(__version__, prog_name="issuer")
@click.pass_context
def cli(ctx: click.Context, db: str | None, json_output: bool,
        verbose: bool, quiet: bool) -> None:
    """issuer - issue tracker with a consistent hierarchy and blocking graph"""
    ictx = ctx.ensure_object(IssuerContext)
    ictx.verbose = verbose
    ictx.quiet = quiet
    if json_output:
        ictx.json_output = True
    if db:
        ictx.db_path = db
    setup_logging(ictx.log_level())
    ctx.call_on_close(ictx.close)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# --- Register all command groups ---

from issuer.commands.init_cmd import init_cmd  # noqa: E402
from issuer.commands.status_cmd import status  # noqa: E402
from issuer.commands.create import create  # noqa: E402
from issuer.commands.show import show  # noqa: E402
from issuer.commands.list_cmd import list_cmd  # noqa: E402
from issuer.commands.update import update  # noqa: E402
from issuer.commands.delete import delete  # noqa: E402
from issuer.commands.reparent import reparent  # noqa: E402
from issuer.commands.tree import tree  # noqa: E402
from issuer.commands.block import block  # noqa: E402
from issuer.commands.blocked import blocked  # noqa: E402
from issuer.commands.doctor import doctor  # noqa: E402

cli.add_command(init_cmd, "init")
cli.add_command(status, "status")
cli.add_command(create, "create")
cli.add_command(create, "new")  # Alias
cli.add_command(show, "show")
cli.add_command(list_cmd, "list")
cli.add_command(update, "update")
cli.add_command(delete, "delete")
cli.add_command(reparent, "reparent")
cli.add_command(tree, "tree")
cli.add_command(block, "block")
cli.add_command(blocked, "blocked")
cli.add_command(doctor, "doctor")


def main() -> None:
    cli(auto_envvar_prefix="ISSUER")
