"""td show - display issue details."""

from __future__ import annotations

import click

from td.cli import TdContext, pass_ctx
from td.utils import format_time_ago, priority_label, truncate


def _section(title: str, items: list[str]) -> None:
    if not items:
        return
    click.echo(f"\n  {title}:")
    for item in items:
        click.echo(f"    - {item}")


@click.command("show")
@click.argument("issue_id")
@click.option("--logs", "log_limit", default=10, type=int, help="Number of recent log entries")
@pass_ctx
def show(ctx: TdContext, issue_id: str, log_limit: int) -> None:
    """Show detailed view of an issue."""
    ctx.ensure_initialized()
    store = ctx.store
    assert store is not None

    issue = ctx.get_issue(issue_id, include_deleted=True)
    full_id = issue.id
    handoff = store.get_latest_handoff(full_id)
    deps = store.get_dependencies(full_id)
    dependents = store.get_blocked_by(full_id)
    history = store.get_session_history(full_id)
    logs = store.get_logs(full_id, limit=log_limit)
    files = store.get_linked_files(full_id)
    comments = store.get_comments(full_id)

    if ctx.json_output:
        data = issue.to_dict()
        data["handoff"] = handoff.to_dict() if handoff else None
        data["dependencies"] = deps
        data["dependents"] = dependents
        data["session_history"] = [h.to_dict() for h in history]
        data["logs"] = [entry.to_dict() for entry in logs]
        data["files"] = [f.to_dict() for f in files]
        data["comments"] = [c.to_dict() for c in comments]
        ctx.output(data)
        return

    # Header
    click.echo(f"{'─' * 60}")
    click.echo(f"  {issue.id}{'  [deleted]' if issue.is_deleted() else ''}")
    click.echo(f"{'─' * 60}")
    click.echo(f"  Title:    {issue.title}")
    click.echo(f"  Status:   {issue.status}")
    click.echo(f"  Priority: {issue.priority} ({priority_label(issue.priority)})")
    click.echo(f"  Type:     {issue.issue_type}")
    if issue.points:
        click.echo(f"  Points:   {issue.points}")
    if issue.minor:
        click.echo("  Minor:    yes (self-review allowed)")
    if issue.parent_id:
        click.echo(f"  Parent:   {issue.parent_id}")
    if issue.sprint:
        click.echo(f"  Sprint:   {issue.sprint}")
    if issue.labels:
        click.echo(f"  Labels:   {', '.join(issue.labels)}")

    click.echo(f"  Created:  {format_time_ago(issue.created_at)}")
    if issue.creator_session:
        click.echo(f"  Creator:  {issue.creator_session}")
    if issue.implementer_session:
        click.echo(f"  Implementer: {issue.implementer_session}")
    if issue.reviewer_session:
        click.echo(f"  Reviewer: {issue.reviewer_session}")
    click.echo(f"  Updated:  {format_time_ago(issue.updated_at)}")
    if issue.closed_at:
        click.echo(f"  Closed:   {format_time_ago(issue.closed_at)}")

    if issue.description:
        click.echo("\n  Description:")
        for line in issue.description.split("\n"):
            click.echo(f"    {line}")

    if issue.acceptance:
        click.echo("\n  Acceptance Criteria:")
        for line in issue.acceptance.split("\n"):
            click.echo(f"    {line}")

    if handoff:
        click.echo(f"\n  Latest handoff ({handoff.session_id}, {format_time_ago(handoff.timestamp)}):")
        for label, items in (("Done", handoff.done), ("Remaining", handoff.remaining),
                             ("Decisions", handoff.decisions), ("Uncertain", handoff.uncertain)):
            for item in items:
                click.echo(f"    {label}: {item}")

    if deps:
        click.echo("\n  Depends on:")
        for dep_id in deps:
            dep_issue = store.get_issue(dep_id)
            title = dep_issue.title if dep_issue else "(deleted)"
            status = dep_issue.status if dep_issue else "?"
            click.echo(f"    → {dep_id} ({status}) {truncate(title)}")

    if dependents:
        click.echo("\n  Blocking:")
        for dep_id in dependents:
            dep_issue = store.get_issue(dep_id)
            title = dep_issue.title if dep_issue else "(deleted)"
            status = dep_issue.status if dep_issue else "?"
            click.echo(f"    ← {dep_id} ({status}) {truncate(title)}")

    if files:
        click.echo("\n  Files:")
        for f in files:
            click.echo(f"    [{f.role}] {f.file_path}")

    _section("Session history", [f"{h.session_id} {h.action} {format_time_ago(h.created_at)}"
                                 for h in history])

    if logs:
        click.echo(f"\n  Recent logs ({len(logs)}):")
        for entry in logs:
            click.echo(f"    [{format_time_ago(entry.timestamp)}] ({entry.log_type}) {entry.message}")

    if comments:
        click.echo(f"\n  Comments ({len(comments)}):")
        for c in comments:
            click.echo(f"    [{format_time_ago(c.created_at)}] {c.session_id}: {c.text}")

    click.echo()
