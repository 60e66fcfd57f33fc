"""td undo / td last - revert and inspect recent actions."""

from __future__ import annotations

import click

from td.cli import TdContext, pass_ctx
from td.errors import TdError
from td.models import ActionLogEntry
from td.undo import is_undoable, recent_actions, undo_last
from td.utils import format_time_ago


def _action_row(entry: ActionLogEntry) -> str:
    flag = "  [undone]" if entry.undone else ""
    return (f"  #{entry.rowid:<5} {format_time_ago(entry.timestamp):<9} "
            f"{entry.action_kind:<20} {entry.entity_kind} {entry.entity_id}{flag}")


@click.command("undo")
@click.option("--list", "list_only", is_flag=True, help="List undoable actions instead")
@pass_ctx
def undo(ctx: TdContext, list_only: bool) -> None:
    """Undo the last action of the current session."""
    actor = ctx.actor()

    if list_only:
        entries = [e for e in recent_actions(actor, limit=20) if is_undoable(e)]
        if ctx.json_output:
            ctx.output([e.to_dict() for e in entries])
            return
        if not entries:
            click.echo("Nothing to undo.")
            return
        click.echo(f"Undoable actions for {actor.session_id} (newest first):")
        for e in entries:
            click.echo(_action_row(e))
        return

    try:
        result = undo_last(actor)
    except TdError as e:
        ctx.fail(e, "undo")

    if ctx.json_output:
        ctx.emit({
            "id": result.original.entity_id,
            "status": "undone",
            "action": "undo",
            "session": actor.session_id,
            "undone_action": result.original.action_kind,
            "entity_kind": result.original.entity_kind,
        })
    else:
        click.echo(f"UNDONE: {result.describe()}")


@click.command("last")
@click.option("-n", "limit", default=10, type=int, help="Number of actions to show")
@click.option("--all", "all_sessions", is_flag=True, help="Include every session")
@pass_ctx
def last(ctx: TdContext, limit: int, all_sessions: bool) -> None:
    """Show the most recent actions."""
    actor = ctx.actor()
    entries = recent_actions(actor, limit=limit, all_sessions=all_sessions)
    if ctx.json_output:
        ctx.output([e.to_dict() for e in entries])
        return
    if not entries:
        click.echo("No actions recorded.")
        return
    for e in entries:
        session = f"  ({e.session_id})" if all_sessions else ""
        click.echo(_action_row(e) + session)
