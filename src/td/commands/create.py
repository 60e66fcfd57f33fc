"""td create - create a new issue."""

from __future__ import annotations

import click

from td.actions import add_dependency_logged, create_issue_logged
from td.cli import TdContext, pass_ctx
from td.errors import ConflictError, InvalidInputError, NotFoundError, TdError
from td.id_gen import MAX_ID_LENGTH, MIN_ID_LENGTH, generate_hash_id, make_issue_id
from td.models import Issue, Status, now_utc
from td.utils import (
    parse_labels, parse_points, parse_priority, parse_type, validate_issue_id,
)


@click.command("create")
@click.argument("title", required=False)
@click.option("--title", "-t", "title_opt", default=None, help="Issue title")
@click.option("--type", "issue_type", default="task",
              help="Issue type (bug, feature, task, epic, chore)")
@click.option("--priority", "-p", default="P2", help="Priority (P0-P4 or critical/high/medium/low)")
@click.option("--points", default=0, type=int, help="Story points (Fibonacci: 1,2,3,5,8,13,21)")
@click.option("--labels", "-l", multiple=True, help="Labels (repeatable or comma-separated)")
@click.option("--description", "-d", default="", help="Issue description")
@click.option("--acceptance", default="", help="Acceptance criteria")
@click.option("--parent", default="", help="Parent issue ID")
@click.option("--sprint", default="", help="Sprint name")
@click.option("--minor", is_flag=True, help="Allow the implementer to self-review")
@click.option("--depends-on", "depends_on", multiple=True, help="Issue IDs this one depends on")
@click.option("--id", "custom_id", default="", help="Explicit issue ID (td-xxxxxx)")
@click.option("--silent", is_flag=True, help="Only output the issue ID")
@pass_ctx
def create(ctx: TdContext, title: str | None, title_opt: str | None, issue_type: str,
           priority: str, points: int, labels: tuple[str, ...], description: str,
           acceptance: str, parent: str, sprint: str, minor: bool,
           depends_on: tuple[str, ...], custom_id: str, silent: bool) -> None:
    """Create a new issue."""
    actor = ctx.actor()
    store = actor.store

    title = (title_opt or title or "").strip()
    try:
        if not title:
            raise InvalidInputError("title is required")
        issue_type = parse_type(issue_type)
        priority = parse_priority(priority)
        points = parse_points(points)
    except TdError as e:
        ctx.fail(e, "create")

    parent_id = None
    if parent:
        parent_id = ctx.get_issue(parent).id

    now = now_utc()
    if custom_id:
        try:
            issue_id = validate_issue_id(custom_id)
        except TdError as e:
            ctx.fail(e, "create")
        if store.get_issue(issue_id, include_deleted=True) is not None:
            ctx.fail(ConflictError(f"issue already exists: {issue_id}", issue_id), "create")
    else:
        full_hash = generate_hash_id(title, description, now)
        # Progressive collision handling
        for length in range(MIN_ID_LENGTH, MAX_ID_LENGTH + 1):
            issue_id = make_issue_id(full_hash, length)
            if store.get_issue(issue_id, include_deleted=True) is None:
                break
        else:
            ctx.fail(ConflictError("could not allocate a unique issue ID"), "create")

    issue = Issue(
        id=issue_id,
        title=title,
        description=description,
        acceptance=acceptance,
        issue_type=issue_type,
        priority=priority,
        points=points,
        status=Status.OPEN,
        labels=parse_labels(labels),
        parent_id=parent_id,
        creator_session=actor.session_id,
        minor=minor,
        sprint=sprint or None,
        created_at=now,
        updated_at=now,
    )
    err = issue.validate()
    if err:
        ctx.fail(InvalidInputError(err), "create")

    try:
        create_issue_logged(store, issue, actor.session_id)
    except TdError as e:
        ctx.fail(e, "create")

    for raw in depends_on:
        try:
            dep_id = store.resolve_id(validate_issue_id(raw))
            if dep_id is None:
                raise NotFoundError(f"issue not found: {raw}", raw)
            add_dependency_logged(store, issue_id, dep_id, actor.session_id)
        except TdError as e:
            click.echo(f"Warning: could not add dependency on {raw}: {e.message}", err=True)

    if ctx.json_output:
        ctx.output(issue.to_dict())
    elif silent:
        click.echo(issue_id)
    else:
        click.echo(f"CREATED {issue_id}")
        if not ctx.quiet:
            click.echo(f"  {issue_type} {priority}: {title}")
