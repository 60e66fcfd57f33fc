"""td update - update an issue."""

from __future__ import annotations

import click

from td.actions import clone, update_issue_logged
from td.cli import TdContext, pass_ctx
from td.errors import InvalidInputError, TdError
from td.lifecycle import set_status
from td.models import ActionKind
from td.utils import (
    parse_labels, parse_points, parse_priority, parse_status, parse_type,
)


@click.command("update")
@click.argument("issue_id")
@click.option("--status", "-s", default=None, help="New status (open, in_progress, blocked)")
@click.option("--priority", "-p", default=None, help="New priority (P0-P4)")
@click.option("--title", "-t", default=None, help="New title")
@click.option("--type", "issue_type", default=None, help="New issue type")
@click.option("--points", type=int, default=None, help="New story points")
@click.option("--description", "-d", default=None, help="New description")
@click.option("--acceptance", default=None, help="New acceptance criteria")
@click.option("--parent", default=None, help="New parent issue ID (empty to clear)")
@click.option("--sprint", default=None, help="New sprint (empty to clear)")
@click.option("--labels", default=None, help="Replace labels (comma-separated, empty to clear)")
@click.option("--add-label", multiple=True, help="Add label")
@click.option("--remove-label", multiple=True, help="Remove label")
@click.option("--minor/--no-minor", default=None, help="Mark as self-reviewable")
@pass_ctx
def update(ctx: TdContext, issue_id: str, status: str | None, priority: str | None,
           title: str | None, issue_type: str | None, points: int | None,
           description: str | None, acceptance: str | None, parent: str | None,
           sprint: str | None, labels: str | None, add_label: tuple[str, ...],
           remove_label: tuple[str, ...], minor: bool | None) -> None:
    """Update fields of an existing issue."""
    actor = ctx.actor()
    issue = ctx.get_issue(issue_id)
    previous = clone(issue)

    try:
        if title is not None:
            if not title.strip():
                raise InvalidInputError("title cannot be empty", issue.id)
            issue.title = title.strip()
        if description is not None:
            issue.description = description
        if acceptance is not None:
            issue.acceptance = acceptance
        if issue_type is not None:
            issue.issue_type = parse_type(issue_type)
        if priority is not None:
            issue.priority = parse_priority(priority)
        if points is not None:
            issue.points = parse_points(points)
        if sprint is not None:
            issue.sprint = sprint or None
        if minor is not None:
            issue.minor = minor
        if labels is not None:
            issue.labels = parse_labels([labels])
        for lbl in parse_labels(add_label):
            if lbl not in issue.labels:
                issue.labels.append(lbl)
        removed = set(parse_labels(remove_label))
        if removed:
            issue.labels = [lbl for lbl in issue.labels if lbl not in removed]
        if parent is not None:
            if parent == "":
                issue.parent_id = None
            else:
                parent_id = ctx.resolve_issue_id(parent)
                if parent_id == issue.id:
                    raise InvalidInputError("an issue cannot be its own parent", issue.id)
                issue.parent_id = parent_id
        target_status = parse_status(status) if status is not None else None
    except TdError as e:
        ctx.fail(e, "update")

    changed = issue.to_dict() != previous.to_dict()
    if not changed and target_status is None:
        click.echo("No updates specified.", err=True)
        raise SystemExit(1)

    try:
        if changed:
            err = issue.validate()
            if err:
                raise InvalidInputError(err, issue.id)
            update_issue_logged(actor.store, issue, previous, actor.session_id, ActionKind.UPDATE)
        if target_status is not None:
            outcome = set_status(actor, issue, target_status)
            if outcome is not None:
                for warning in outcome.warnings:
                    click.echo(f"Warning: {warning}", err=True)
    except TdError as e:
        ctx.fail(e, "update")

    if ctx.json_output:
        ctx.output(issue.to_dict())
    elif not ctx.quiet:
        click.echo(f"UPDATED {issue.id}")
