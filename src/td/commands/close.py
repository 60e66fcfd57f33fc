"""td close - close one or more issues."""

from __future__ import annotations

import click

from td import review as protocol
from td.cli import TdContext, pass_ctx
from td.models import Issue


@click.command("close")
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--reason", "-r", default="", help="Close reason")
@click.option("--self-close-exception", "self_close_exception", default="",
              help="Close your own work anyway, recording why (audited)")
@pass_ctx
def close(ctx: TdContext, issue_ids: tuple[str, ...], reason: str,
          self_close_exception: str) -> None:
    """Close issues without review.

    Sessions that implemented an issue cannot close it unless it is minor
    or --self-close-exception is given.
    """
    actor = ctx.actor()

    def do_close(issue: Issue) -> None:
        outcome = protocol.close(actor, issue, reason, self_close_exception)
        ctx.report(outcome, f"CLOSED {issue.id}", "close", reason)

    ctx.for_each_issue(issue_ids, "close", "Closed", do_close)
