"""td comment / td log - append-only notes on issues."""

from __future__ import annotations

import click

from td.actions import add_comment_logged, add_log_logged
from td.cli import TdContext, pass_ctx
from td.config import get_focus
from td.errors import InvalidInputError, TdError
from td.models import Comment, LogEntry, LogType


@click.command("comment")
@click.argument("issue_id")
@click.argument("text", nargs=-1, required=True)
@pass_ctx
def comment(ctx: TdContext, issue_id: str, text: tuple[str, ...]) -> None:
    """Add a comment to an issue."""
    actor = ctx.actor()
    issue = ctx.get_issue(issue_id)
    body = " ".join(text).strip()
    if not body:
        ctx.fail(InvalidInputError("comment text is required", issue.id), "comment")

    record = Comment(issue_id=issue.id, session_id=actor.session_id, text=body)
    try:
        add_comment_logged(actor.store, record)
    except TdError as e:
        ctx.fail(e, "comment")

    if ctx.json_output:
        ctx.output(record.to_dict())
    elif not ctx.quiet:
        click.echo(f"COMMENTED {issue.id}")


_TYPE_FLAGS = (
    ("blocker", LogType.BLOCKER),
    ("decision", LogType.DECISION),
    ("hypothesis", LogType.HYPOTHESIS),
    ("tried", LogType.TRIED),
    ("result", LogType.RESULT),
)


@click.command("log")
@click.argument("message", nargs=-1)
@click.option("--issue", "-i", "issue_id", default=None, help="Issue ID (default: focused issue)")
@click.option("--type", "-t", "log_type", default=None,
              help="Log type: progress, blocker, decision, hypothesis, tried, result")
@click.option("--blocker", is_flag=True, help="Mark as blocker")
@click.option("--decision", is_flag=True, help="Mark as decision")
@click.option("--hypothesis", is_flag=True, help="Mark as hypothesis")
@click.option("--tried", is_flag=True, help="Mark as attempted approach")
@click.option("--result", is_flag=True, help="Mark as result")
@pass_ctx
def log_cmd(ctx: TdContext, message: tuple[str, ...], issue_id: str | None,
            log_type: str | None, **type_flags: bool) -> None:
    """Log progress on an issue. Reads the message from stdin when piped."""
    actor = ctx.actor()
    assert ctx.todos_dir is not None

    if not issue_id:
        issue_id = get_focus(ctx.todos_dir)
        if not issue_id:
            ctx.fail(InvalidInputError("no issue given and no focused issue (use --issue)"), "log")
    issue = ctx.get_issue(issue_id)

    text = " ".join(message).strip()
    if not text:
        stdin = click.get_text_stream("stdin")
        if not stdin.isatty():
            text = stdin.read().strip()
    if not text:
        ctx.fail(InvalidInputError("no message provided (td log \"message\" or pipe input)",
                                   issue.id), "log")

    kind = LogType.PROGRESS
    for flag, flag_type in _TYPE_FLAGS:
        if type_flags.get(flag):
            kind = flag_type
            break
    if log_type:
        kind = log_type.strip().lower()
        if not LogType.is_valid(kind) or kind in (LogType.SECURITY, LogType.ORCHESTRATION):
            ctx.fail(InvalidInputError(f"invalid log type: {log_type}", issue.id), "log")

    entry = LogEntry(
        issue_id=issue.id,
        session_id=actor.session_id,
        message=text,
        log_type=kind,
        work_session_id=actor.work_session_id,
    )
    try:
        add_log_logged(actor.store, entry)
    except TdError as e:
        ctx.fail(e, "log")

    if ctx.json_output:
        ctx.output(entry.to_dict())
    elif not ctx.quiet:
        label = "" if kind == LogType.PROGRESS else f" [{kind}]"
        click.echo(f"LOGGED {issue.id}{label}")
