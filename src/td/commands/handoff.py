"""td handoff - record a structured progress snapshot."""

from __future__ import annotations

import click

from td.actions import add_handoff_logged
from td.cascade import cascade_handoff
from td.cli import TdContext, pass_ctx
from td.errors import InvalidInputError, TdError
from td.handoff_input import build_handoff
from td.log import get_logger

log = get_logger("handoff")


@click.command("handoff")
@click.argument("issue_id")
@click.option("--done", multiple=True, help="Completed item (repeatable; @file or - for stdin)")
@click.option("--remaining", multiple=True, help="Remaining item (repeatable)")
@click.option("--decision", "decisions", multiple=True, help="Decision made (repeatable)")
@click.option("--uncertain", multiple=True, help="Uncertainty (repeatable)")
@click.option("--note", "-n", default="", help="Simple note, recorded as done")
@pass_ctx
def handoff(ctx: TdContext, issue_id: str, done: tuple[str, ...], remaining: tuple[str, ...],
            decisions: tuple[str, ...], uncertain: tuple[str, ...], note: str) -> None:
    """Record a handoff for an issue.

    Without item flags, piped stdin may carry sections:

    \b
        done:
          - item
        remaining:
          - item
    """
    actor = ctx.actor()
    store = actor.store
    issue = ctx.get_issue(issue_id)

    stdin = click.get_text_stream("stdin")
    record, warnings = build_handoff(
        issue.id, actor.session_id, stdin,
        done=done, remaining=remaining, decisions=decisions, uncertain=uncertain,
        note=note, read_sections=not stdin.isatty(),
    )
    for warning in warnings:
        click.echo(f"Warning: {warning}", err=True)

    try:
        if record.is_empty():
            raise InvalidInputError(
                f"handoff for {issue.id} is empty (use --done, --remaining, --decision, "
                "--uncertain or --note)", issue.id)
        with store.transaction():
            record.id = add_handoff_logged(store, record, actor.session_id)
            store.update_issue(issue)
    except TdError as e:
        ctx.fail(e, "handoff")
    log.info("handoff recorded", extra={"issue_id": issue.id, "session": actor.session_id})

    created, skipped, cascade_warnings = cascade_handoff(actor, issue.id)
    for warning in cascade_warnings:
        click.echo(f"Warning: {warning}", err=True)

    if ctx.json_output:
        data = record.to_dict()
        data["cascaded"] = created
        ctx.output(data)
        return

    click.echo(f"HANDOFF RECORDED {issue.id}")
    if created:
        click.echo(f"  + {created} descendant(s) also received handoffs")
    if skipped:
        click.echo(f"  - {skipped} descendant(s) skipped (existing handoffs)")
    if not ctx.quiet:
        click.echo(f"\nNext: `td review {issue.id}` to submit for review")
