"""td review / td approve / td reject - the review protocol verbs."""

from __future__ import annotations

import click

from td import review as protocol
from td.cli import TdContext, pass_ctx
from td.models import Issue


@click.command("review")
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--reason", "-r", default="", help="Note for the reviewer")
@click.option("--minor", is_flag=True, help="Mark as minor so the implementer may self-review")
@pass_ctx
def review(ctx: TdContext, issue_ids: tuple[str, ...], reason: str, minor: bool) -> None:
    """Submit issues for review.

    A minimal handoff is created for issues without one. Open and
    in-progress descendants move to review with their parent, and an epic
    whose children are all in review follows them.
    """
    actor = ctx.actor()
    assert ctx.config is not None
    strict = ctx.config.strict_handoff

    def do_review(issue: Issue) -> None:
        outcome = protocol.submit_for_review(actor, issue, reason, minor=minor,
                                             strict_handoff=strict)
        ctx.report(outcome, f"REVIEW REQUESTED {issue.id} (session: {actor.session_id})",
                   "review", reason)

    ctx.for_each_issue(issue_ids, "review", "Reviewed", do_review, verb="REVIEW REQUESTED")


@click.command("approve")
@click.argument("issue_ids", nargs=-1)
@click.option("--all", "approve_all", is_flag=True,
              help="Approve every in-review issue this session may approve")
@click.option("--reason", "-r", default="", help="Approval note")
@pass_ctx
def approve(ctx: TdContext, issue_ids: tuple[str, ...], approve_all: bool, reason: str) -> None:
    """Approve and close reviewed issues. The implementer cannot approve."""
    actor = ctx.actor()

    if approve_all:
        issue_ids = tuple(i.id for i in protocol.reviewable_issues(actor))
        if not issue_ids:
            click.echo("No reviewable issues.")
            return
    elif not issue_ids:
        ctx.fail("no issue IDs given (use --all to approve every reviewable issue)", "approve")

    def do_approve(issue: Issue) -> None:
        outcome = protocol.approve(actor, issue, reason)
        ctx.report(outcome, f"APPROVED {issue.id} (reviewer: {actor.session_id})",
                   "approve", reason)

    ctx.for_each_issue(issue_ids, "approve", "Approved", do_approve)


@click.command("reject")
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--reason", "-r", default="", help="What needs to change")
@pass_ctx
def reject(ctx: TdContext, issue_ids: tuple[str, ...], reason: str) -> None:
    """Send reviewed issues back to in progress."""
    actor = ctx.actor()

    def do_reject(issue: Issue) -> None:
        outcome = protocol.reject(actor, issue, reason)
        ctx.report(outcome, f"REJECTED {issue.id} → in_progress", "reject", reason)

    ctx.for_each_issue(issue_ids, "reject", "Rejected", do_reject)
