"""td delete / td restore - soft-delete and restore issues."""

from __future__ import annotations

import click

from td.actions import delete_issue_logged, restore_issue_logged
from td.cli import TdContext, pass_ctx
from td.errors import NotFoundError, TdError
from td.models import Issue
from td.utils import validate_issue_id


@click.command("delete")
@click.argument("issue_ids", nargs=-1, required=True)
@pass_ctx
def delete(ctx: TdContext, issue_ids: tuple[str, ...]) -> None:
    """Soft-delete one or more issues."""
    actor = ctx.actor()

    def do_delete(issue: Issue) -> None:
        delete_issue_logged(actor.store, issue.id, actor.session_id)
        if ctx.json_output:
            ctx.emit({"id": issue.id, "status": issue.status, "action": "delete",
                      "session": actor.session_id})
        elif not ctx.quiet:
            click.echo(f"DELETED {issue.id}")

    ctx.for_each_issue(issue_ids, "delete", "Deleted", do_delete)


@click.command("restore")
@click.argument("issue_ids", nargs=-1, required=True)
@pass_ctx
def restore(ctx: TdContext, issue_ids: tuple[str, ...]) -> None:
    """Restore soft-deleted issues."""
    actor = ctx.actor()
    store = actor.store
    restored = 0
    skipped = 0
    # for_each_issue only sees live issues
    for raw in issue_ids:
        try:
            issue_id = validate_issue_id(raw)
            issue = store.get_issue(issue_id, include_deleted=True)
            if issue is None or not issue.is_deleted():
                raise NotFoundError(f"no deleted issue: {issue_id}", issue_id)
            restore_issue_logged(store, issue_id, actor.session_id)
        except TdError as e:
            ctx.skip(e, "restore", "RESTORED")
            skipped += 1
            continue
        restored += 1
        if ctx.json_output:
            ctx.emit({"id": issue_id, "status": issue.status, "action": "restore",
                      "session": actor.session_id})
        elif not ctx.quiet:
            click.echo(f"RESTORED {issue_id}")

    if len(issue_ids) > 1 and not ctx.json_output:
        click.echo(f"\nRestored {restored}, skipped {skipped}")
    if restored == 0:
        raise SystemExit(1)
