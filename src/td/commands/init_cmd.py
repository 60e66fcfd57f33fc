"""td init - initialize a new .todos/ directory."""

from __future__ import annotations

import os

import click

from td.cli import TdContext, pass_ctx
from td.config import DEFAULT_DB_NAME, TODOS_DIR, TdConfig, find_todos_dir
from td.log import get_logger, setup_logging
from td.storage.sqlite_store import SQLiteStorage

log = get_logger("init")


@click.command("init")
@pass_ctx
def init_cmd(ctx: TdContext) -> None:
    """Initialize a td project in the current (or --work-dir) directory."""
    root = os.path.abspath(ctx.work_dir or os.environ.get("TD_WORK_DIR") or os.getcwd())
    todos_dir = os.path.join(root, TODOS_DIR)

    if os.path.isdir(todos_dir):
        click.echo(f"td already initialized at {todos_dir}")
        return

    enclosing = find_todos_dir(os.path.dirname(root))
    if enclosing and not ctx.quiet:
        click.echo(f"Note: an enclosing project exists at {enclosing}", err=True)

    os.makedirs(todos_dir, exist_ok=True)

    config = TdConfig()
    config.save(todos_dir)

    gitignore_path = os.path.join(todos_dir, ".gitignore")
    with open(gitignore_path, "w") as f:
        f.write("# td local state (not shared via git)\n")
        f.write("*.db\n")
        f.write("*.db-wal\n")
        f.write("*.db-shm\n")
        f.write("config.json\n")
        f.write("td.log*\n")

    db_path = os.path.join(todos_dir, DEFAULT_DB_NAME)
    store = SQLiteStorage(db_path)
    store.close()

    setup_logging(todos_dir, config.log_level)
    log.info("project initialized", extra={"command": "init"})

    if ctx.json_output:
        ctx.output({"root": root, "todos_dir": todos_dir, "database": DEFAULT_DB_NAME})
        return
    click.echo(f"Initialized td in {todos_dir}")
    click.echo(f"  Database: {DEFAULT_DB_NAME}")
