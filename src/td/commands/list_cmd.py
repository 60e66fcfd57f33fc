"""td list - list issues."""

from __future__ import annotations

import click

from td.cli import TdContext, pass_ctx
from td.errors import TdError
from td.models import IssueFilter
from td.utils import format_issue_row, parse_priority, parse_status, parse_type


@click.command("list")
@click.option("--status", "-s", "statuses", multiple=True, help="Filter by status (repeatable)")
@click.option("--type", "issue_type", default=None, help="Filter by issue type")
@click.option("--priority", "-p", default=None, help="Filter by priority")
@click.option("--parent", default=None, help="Only direct children of this issue")
@click.option("--label", "-l", default=None, help="Filter by label")
@click.option("--limit", default=0, type=int, help="Max issues to show")
@click.option("--all", "show_all", is_flag=True, help="Include closed issues")
@click.option("--deleted", is_flag=True, help="Show only soft-deleted issues")
@pass_ctx
def list_cmd(ctx: TdContext, statuses: tuple[str, ...], issue_type: str | None,
             priority: str | None, parent: str | None, label: str | None, limit: int,
             show_all: bool, deleted: bool) -> None:
    """List issues with filters. Closed issues are hidden unless asked for."""
    ctx.ensure_initialized()
    assert ctx.store is not None

    f = IssueFilter(include_closed=show_all, deleted_only=deleted, limit=limit, label=label)
    try:
        f.status = [parse_status(s) for s in statuses]
        if issue_type:
            f.issue_type = parse_type(issue_type)
        if priority:
            f.priority = parse_priority(priority)
    except TdError as e:
        ctx.fail(e, "list")
    if parent:
        f.parent_id = ctx.resolve_issue_id(parent)

    issues = ctx.store.list_issues(f)

    if ctx.json_output:
        ctx.output([i.to_dict() for i in issues])
        return

    if not issues:
        click.echo("No issues found.")
        return

    for issue in issues:
        click.echo(format_issue_row(issue))

    if not ctx.quiet:
        click.echo(f"\n{len(issues)} issue(s)")
