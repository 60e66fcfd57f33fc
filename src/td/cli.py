"""Click CLI root and global flags for td."""

from __future__ import annotations

import json
import os
import sqlite3
import sys
from typing import Any, Callable, NoReturn

import click

from td import __version__
from td.config import (
    TODOS_DIR, TdConfig, get_active_work_session, get_db_path, resolve_project_root,
)
from td.errors import NotFoundError, StoreError, TdError
from td.lifecycle import Actor, Outcome
from td.log import get_logger, setup_logging
from td.models import Issue, SessionRecord
from td import session as sessions
from td.storage.sqlite_store import SQLiteStorage
from td.utils import validate_issue_id
from td.workflow import StateMachine

log = get_logger("cli")


class TdContext:
    """Shared context for all commands."""

    def __init__(self) -> None:
        self.work_dir: str | None = None
        self.root: str | None = None
        self.todos_dir: str | None = None
        self.store: SQLiteStorage | None = None
        self.config: TdConfig | None = None
        self.session_flag: str | None = None
        self.session: SessionRecord | None = None
        self.json_output: bool = False
        self.verbose: bool = False
        self.quiet: bool = False

    def ensure_initialized(self) -> None:
        """Ensure the .todos directory and storage are available."""
        if self.store is not None:
            return
        root = resolve_project_root(self.work_dir)
        if root is None:
            click.echo("Error: not in a td project (no .todos/ directory found)", err=True)
            click.echo("Run 'td init' to create one", err=True)
            sys.exit(1)
        self.root = root
        self.todos_dir = os.path.join(root, TODOS_DIR)
        self.config = TdConfig.load(self.todos_dir)
        if not self.json_output:
            self.json_output = self.config.json_output
        setup_logging(self.todos_dir, self.config.log_level)
        try:
            self.store = SQLiteStorage(get_db_path(self.todos_dir))
        except StoreError as e:
            self.fail(e)
        click.get_current_context().find_root().call_on_close(self.close)

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store = None

    def ensure_session(self) -> SessionRecord:
        """Resolve the acting session, creating it if absent."""
        self.ensure_initialized()
        if self.session is None:
            assert self.store is not None
            try:
                self.session = sessions.get_or_create(self.store, self.session_flag)
            except TdError as e:
                self.fail(e)
        return self.session

    def actor(self) -> Actor:
        record = self.ensure_session()
        assert self.store is not None and self.config is not None and self.todos_dir
        return Actor(
            store=self.store,
            session_id=record.id,
            machine=StateMachine(self.config.workflow_mode),
            todos_dir=self.todos_dir,
            work_session_id=get_active_work_session(self.todos_dir) or None,
        )

    def resolve_issue_id(self, raw: str) -> str:
        """Validate and resolve an issue ID or exit with error."""
        assert self.store is not None
        try:
            issue_id = validate_issue_id(raw)
        except TdError as e:
            self.fail(e)
        full_id = self.store.resolve_id(issue_id)
        if full_id is None:
            self.fail(NotFoundError(f"issue not found: {issue_id}", issue_id))
        return full_id

    def get_issue(self, raw: str, include_deleted: bool = False) -> Issue:
        """Fetch a single target issue or exit with error."""
        assert self.store is not None
        issue_id = self.resolve_issue_id(raw)
        issue = self.store.get_issue(issue_id, include_deleted=include_deleted)
        if issue is None:
            self.fail(NotFoundError(f"issue not found: {issue_id}", issue_id))
        return issue

    def output(self, data: dict | list) -> None:
        """Output data as JSON."""
        click.echo(json.dumps(data, indent=2, default=str))

    def emit(self, data: dict) -> None:
        """One JSON object per line."""
        click.echo(json.dumps(data, default=str))

    def _error_record(self, err: TdError, action: str) -> dict[str, Any]:
        return {
            "id": err.issue_id or "",
            "status": "error",
            "action": action,
            "session": self.session.id if self.session else "",
            "error_code": err.code,
            "message": err.message,
        }

    def fail(self, err: TdError | str, action: str = "") -> NoReturn:
        """Report an error and exit 1."""
        if isinstance(err, str):
            err = TdError(err)
        log.error(err.message, extra={"issue_id": err.issue_id, "error": err.code})
        if self.json_output:
            self.emit(self._error_record(err, action))
        else:
            click.echo(f"Error: {err.message}", err=True)
        sys.exit(1)

    def warn(self, err: TdError, action: str = "", as_error: bool = False) -> None:
        """Report a per-item failure and carry on."""
        log.warning(err.message, extra={"issue_id": err.issue_id, "error": err.code})
        if self.json_output:
            self.emit(self._error_record(err, action))
        else:
            label = "Error" if as_error else "Warning"
            click.echo(f"{label}: {err.message}", err=True)

    def skip(self, err: TdError, action: str, verb: str) -> None:
        """Report one item a bulk verb could not process."""
        log.warning(err.message, extra={"issue_id": err.issue_id, "error": err.code})
        if self.json_output:
            self.emit(self._error_record(err, action))
        else:
            click.echo(f"{verb} skipped {err.issue_id}: {err.message}", err=True)

    def for_each_issue(self, raw_ids: tuple[str, ...] | list[str], action: str, summary: str,
                       fn: Callable[[Issue], None], verb: str | None = None) -> int:
        """Apply fn to each issue, never stopping on a single failure.

        Misses print ``<VERB> skipped <id>: <reason>``, where VERB defaults to
        the upper-cased summary word. Multi-ID runs end with
        ``<summary> N, skipped M``; exits 1 when nothing was processed.
        Returns the processed count.
        """
        verb = verb or summary.upper()
        self.ensure_initialized()
        assert self.store is not None
        processed = 0
        skipped = 0
        for raw in raw_ids:
            try:
                issue_id = validate_issue_id(raw)
                issue_id = self.store.resolve_id(issue_id) or issue_id
                issue = self.store.get_issue(issue_id)
                if issue is None:
                    raise NotFoundError("issue not found", issue_id)
                fn(issue)
            except sqlite3.Error as e:
                self.skip(StoreError(str(e), raw), action, verb)
                skipped += 1
                continue
            except TdError as e:
                if e.issue_id is None:
                    e.issue_id = raw
                self.skip(e, action, verb)
                skipped += 1
                continue
            processed += 1
        if len(raw_ids) > 1 and not self.json_output:
            click.echo(f"\n{summary} {processed}, skipped {skipped}")
        if raw_ids and processed == 0:
            sys.exit(1)
        return processed

    def report(self, outcome: Outcome, line: str, action: str, reason: str = "") -> None:
        """Print a verb's success line and any cascade annotations.

        An unchanged outcome prints the line with an ``(already <status>)``
        suffix and nothing else.
        """
        if outcome.unchanged and not self.json_output:
            click.echo(f"{line} (already {outcome.issue.status})")
            return
        for warning in outcome.warnings:
            if not self.json_output:
                click.echo(f"Warning: {warning}", err=True)
        if self.json_output:
            record: dict[str, Any] = {
                "id": outcome.issue.id,
                "status": outcome.issue.status,
                "action": action,
                "session": self.session.id if self.session else "",
            }
            if outcome.unchanged:
                record["unchanged"] = True
            if reason:
                record["reason"] = reason
            if outcome.descendants:
                record["descendants"] = outcome.descendants
            if outcome.cascaded_parents:
                record["cascaded_parents"] = [
                    {"id": pid, "status": status} for pid, status in outcome.cascaded_parents
                ]
            if outcome.unblocked:
                record["unblocked"] = outcome.unblocked
            self.emit(record)
            return
        click.echo(line)
        if outcome.descendants:
            click.echo(f"  + {len(outcome.descendants)} descendant(s) also marked for review")
        for parent_id, status in outcome.cascaded_parents:
            click.echo(f"  ↑ Parent {parent_id} auto-cascaded to {status}")
        for dependent_id in outcome.unblocked:
            click.echo(f"  ↓ Dependent {dependent_id} auto-unblocked")


pass_ctx = click.make_pass_decorator(TdContext, ensure=True)


@click.group(invoke_without_command=True)
@click.option("--work-dir", "-w", envvar="TD_WORK_DIR", help="Project root containing .todos/")
@click.option("--session", "session_id", envvar="TD_SESSION_ID", help="Act as this session ID")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(__version__, prog_name="td")
@click.pass_context
def cli(ctx: click.Context, work_dir: str | None, session_id: str | None,
        json_output: bool, verbose: bool, quiet: bool) -> None:
    """td - task tracking for AI-assisted development sessions"""
    tctx = ctx.ensure_object(TdContext)
    tctx.verbose = verbose
    tctx.quiet = quiet
    if json_output:
        tctx.json_output = True
    if work_dir:
        tctx.work_dir = work_dir
    if session_id:
        tctx.session_flag = session_id

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# --- Register all command groups ---

from td.commands.init_cmd import init_cmd
from td.commands.create import create
from td.commands.update import update
from td.commands.delete import delete, restore
from td.commands.show import show
from td.commands.list_cmd import list_cmd
from td.commands.start import start, unstart
from td.commands.block import block, unblock, reopen
from td.commands.handoff import handoff
from td.commands.review import review, approve, reject
from td.commands.close import close
from td.commands.dep import dep
from td.commands.link import link, unlink
from td.commands.board import board
from td.commands.focus import focus
from td.commands.comments import comment, log_cmd
from td.commands.undo import undo, last
from td.commands.session_cmd import security, session, ws

cli.add_command(init_cmd, "init")
cli.add_command(create, "create")
cli.add_command(create, "add")  # Alias
cli.add_command(create, "new")  # Alias
cli.add_command(update, "update")
cli.add_command(update, "edit")  # Alias
cli.add_command(delete, "delete")
cli.add_command(restore, "restore")
cli.add_command(show, "show")
cli.add_command(list_cmd, "list")
cli.add_command(start, "start")
cli.add_command(unstart, "unstart")
cli.add_command(unstart, "stop")  # Alias
cli.add_command(block, "block")
cli.add_command(unblock, "unblock")
cli.add_command(reopen, "reopen")
cli.add_command(handoff, "handoff")
cli.add_command(review, "review")
cli.add_command(review, "submit")  # Alias
cli.add_command(review, "finish")  # Alias
cli.add_command(approve, "approve")
cli.add_command(reject, "reject")
cli.add_command(close, "close")
cli.add_command(close, "done")  # Alias
cli.add_command(close, "complete")  # Alias
cli.add_command(dep, "dep")
cli.add_command(link, "link")
cli.add_command(unlink, "unlink")
cli.add_command(board, "board")
cli.add_command(focus, "focus")
cli.add_command(log_cmd, "log")
cli.add_command(comment, "comment")
cli.add_command(undo, "undo")
cli.add_command(last, "last")
cli.add_command(session, "session")
cli.add_command(ws, "ws")
cli.add_command(security, "security")


def main() -> None:
    cli(auto_envvar_prefix="TD")
