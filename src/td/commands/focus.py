"""td focus - read, set or clear the focused issue."""

from __future__ import annotations

import click

from td.cli import TdContext, pass_ctx
from td.config import clear_focus, get_focus, set_focus


@click.command("focus")
@click.argument("issue_id", required=False)
@click.option("--clear", is_flag=True, help="Clear the focused issue")
@pass_ctx
def focus(ctx: TdContext, issue_id: str | None, clear: bool) -> None:
    """Show the focused issue, or focus ISSUE_ID."""
    ctx.ensure_initialized()
    assert ctx.todos_dir is not None and ctx.store is not None

    if clear:
        clear_focus(ctx.todos_dir)
        if ctx.json_output:
            ctx.output({"focused_issue_id": None})
        else:
            click.echo("UNFOCUSED")
        return

    if issue_id:
        issue = ctx.get_issue(issue_id)
        set_focus(ctx.todos_dir, issue.id)
        if ctx.json_output:
            ctx.output({"focused_issue_id": issue.id})
        else:
            click.echo(f"FOCUSED {issue.id}")
        return

    current = get_focus(ctx.todos_dir)
    if ctx.json_output:
        ctx.output({"focused_issue_id": current or None})
        return
    if not current:
        click.echo("No focused issue")
        return
    issue = ctx.store.get_issue(current)
    title = issue.title if issue else "(deleted)"
    click.echo(f"{current}: {title}")
