"""td block / td unblock / td reopen - status toggles."""

from __future__ import annotations

import click

from td import lifecycle
from td.cli import TdContext, pass_ctx
from td.models import Issue
from td.utils import first_non_empty


def reason_options(f):
    """--reason plus the aliases agents tend to reach for."""
    for name in ("--notes", "--note", "--comment", "--message"):
        f = click.option(name, name.lstrip("-") + "_", default=None, hidden=True)(f)
    return click.option("--reason", "-r", default=None, help="Reason for the change")(f)


def _reason(reason: str | None, message_: str | None, comment_: str | None,
            note_: str | None, notes_: str | None) -> str:
    return first_non_empty(reason, message_, comment_, note_, notes_)


@click.command("block")
@click.argument("issue_ids", nargs=-1, required=True)
@reason_options
@pass_ctx
def block(ctx: TdContext, issue_ids: tuple[str, ...], reason: str | None,
          message_: str | None, comment_: str | None, note_: str | None,
          notes_: str | None) -> None:
    """Mark issues as blocked."""
    actor = ctx.actor()
    why = _reason(reason, message_, comment_, note_, notes_)

    def do_block(issue: Issue) -> None:
        outcome = lifecycle.block(actor, issue, why)
        ctx.report(outcome, f"BLOCKED {issue.id}", "block", why)

    ctx.for_each_issue(issue_ids, "block", "Blocked", do_block)


@click.command("unblock")
@click.argument("issue_ids", nargs=-1, required=True)
@reason_options
@pass_ctx
def unblock(ctx: TdContext, issue_ids: tuple[str, ...], reason: str | None,
            message_: str | None, comment_: str | None, note_: str | None,
            notes_: str | None) -> None:
    """Return blocked issues to open."""
    actor = ctx.actor()
    why = _reason(reason, message_, comment_, note_, notes_)

    def do_unblock(issue: Issue) -> None:
        outcome = lifecycle.unblock(actor, issue, why)
        ctx.report(outcome, f"UNBLOCKED {issue.id}", "unblock", why)

    ctx.for_each_issue(issue_ids, "unblock", "Unblocked", do_unblock)


@click.command("reopen")
@click.argument("issue_ids", nargs=-1, required=True)
@reason_options
@pass_ctx
def reopen(ctx: TdContext, issue_ids: tuple[str, ...], reason: str | None,
           message_: str | None, comment_: str | None, note_: str | None,
           notes_: str | None) -> None:
    """Reopen closed issues."""
    actor = ctx.actor()
    why = _reason(reason, message_, comment_, note_, notes_)

    def do_reopen(issue: Issue) -> None:
        outcome = lifecycle.reopen(actor, issue, why)
        ctx.report(outcome, f"REOPENED {issue.id}", "reopen", why)

    ctx.for_each_issue(issue_ids, "reopen", "Reopened", do_reopen)
