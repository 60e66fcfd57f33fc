"""td start / td unstart - begin and abandon work on issues."""

from __future__ import annotations

import click

from td import lifecycle
from td.cli import TdContext, pass_ctx
from td.config import set_focus
from td.models import Issue
from td.utils import first_non_empty


@click.command("start")
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--reason", "-r", default="", help="Why work is starting")
@click.option("--force", is_flag=True, help="Start even if the issue is blocked")
@pass_ctx
def start(ctx: TdContext, issue_ids: tuple[str, ...], reason: str, force: bool) -> None:
    """Start work on issues; the current session becomes the implementer."""
    actor = ctx.actor()

    def do_start(issue: Issue) -> None:
        outcome = lifecycle.start(actor, issue, reason, force=force)
        ctx.report(outcome, f"STARTED {issue.id} (session: {actor.session_id})", "start", reason)
        if len(issue_ids) == 1 and actor.todos_dir:
            set_focus(actor.todos_dir, issue.id)

    ctx.for_each_issue(issue_ids, "start", "Started", do_start)


@click.command("unstart")
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--reason", "-r", default=None, help="Why work is stopping")
@click.option("--message", "-m", default=None, hidden=True)
@pass_ctx
def unstart(ctx: TdContext, issue_ids: tuple[str, ...], reason: str | None,
            message: str | None) -> None:
    """Return in-progress issues to open and release the implementer."""
    actor = ctx.actor()
    reason = first_non_empty(reason, message)

    def do_unstart(issue: Issue) -> None:
        outcome = lifecycle.unstart(actor, issue, reason)
        ctx.report(outcome, f"UNSTARTED {issue.id} → open", "unstart", reason)

    ctx.for_each_issue(issue_ids, "unstart", "Unstarted", do_unstart)
