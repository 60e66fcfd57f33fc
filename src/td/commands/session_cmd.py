"""td session / td ws / td security - session identity and audit."""

from __future__ import annotations

import click

from td import session as sessions
from td.actions import record_work_session
from td.cli import TdContext, pass_ctx
from td.config import (
    clear_security_events, get_active_work_session, read_security_events,
    set_active_work_session,
)
from td.errors import NoActiveSessionError, TdError
from td.id_gen import generate_work_session_id
from td.models import ActionKind
from td.utils import format_time_ago


@click.command("session")
@click.option("--new", "new_session", is_flag=True, help="Start a fresh session for this context")
@click.option("--name", default=None, help="Name the current session")
@pass_ctx
def session(ctx: TdContext, new_session: bool, name: str | None) -> None:
    """Show, rotate or name the current session."""
    ctx.ensure_initialized()
    assert ctx.store is not None

    try:
        if new_session:
            record = sessions.force_new_session(ctx.store)
            ctx.session = record
        else:
            record = ctx.ensure_session()
        if name is not None:
            record = sessions.set_name(ctx.store, record, name.strip())
    except TdError as e:
        ctx.fail(e, "session")

    if ctx.json_output:
        ctx.output(record.to_dict())
        return
    if new_session:
        previous = f" (previous: {record.previous_session_id})" if record.previous_session_id else ""
        click.echo(f"NEW SESSION: {record.id}{previous}")
    elif name is not None:
        click.echo(f"SESSION NAMED {record.id} \"{record.name}\"")
    else:
        click.echo(f"SESSION: {record.display()}")
        click.echo(f"STARTED: {format_time_ago(record.started_at)}")
        if record.previous_session_id:
            click.echo(f"PREVIOUS SESSION: {record.previous_session_id}")


@click.group("ws")
def ws() -> None:
    """Minimal work-session marker; logs are tagged while one is active."""


@ws.command("start")
@click.argument("name", required=False, default="")
@pass_ctx
def ws_start(ctx: TdContext, name: str) -> None:
    """Start a work session."""
    actor = ctx.actor()
    assert actor.todos_dir is not None
    current = get_active_work_session(actor.todos_dir)
    if current:
        ctx.fail(f"work session already active: {current} (run 'td ws end' first)", "ws_start")

    ws_id = generate_work_session_id()
    try:
        record_work_session(actor.store, actor.session_id, ActionKind.CREATE, ws_id, None,
                            {"id": ws_id, "name": name, "session_id": actor.session_id})
    except TdError as e:
        ctx.fail(e, "ws_start")
    set_active_work_session(actor.todos_dir, ws_id)

    if ctx.json_output:
        ctx.output({"id": ws_id, "name": name})
        return
    click.echo(f"WORK SESSION STARTED: {ws_id}")
    if name:
        click.echo(f"Name: {name}")


@ws.command("end")
@pass_ctx
def ws_end(ctx: TdContext) -> None:
    """End the active work session."""
    actor = ctx.actor()
    assert actor.todos_dir is not None
    ws_id = get_active_work_session(actor.todos_dir)
    if not ws_id:
        ctx.fail(NoActiveSessionError("no active work session"), "ws_end")
    try:
        record_work_session(actor.store, actor.session_id, ActionKind.UPDATE, ws_id,
                            {"id": ws_id, "active": True}, {"id": ws_id, "active": False})
    except TdError as e:
        ctx.fail(e, "ws_end")
    set_active_work_session(actor.todos_dir, "")

    if ctx.json_output:
        ctx.output({"id": ws_id, "ended": True})
    else:
        click.echo("WORK SESSION ENDED")


@ws.command("current")
@pass_ctx
def ws_current(ctx: TdContext) -> None:
    """Show the active work session."""
    ctx.ensure_initialized()
    assert ctx.todos_dir is not None
    ws_id = get_active_work_session(ctx.todos_dir)
    if ctx.json_output:
        ctx.output({"id": ws_id or None})
    elif ws_id:
        click.echo(f"WORK SESSION: {ws_id}")
    else:
        click.echo("No active work session")


@click.command("security")
@click.option("--clear", is_flag=True, help="Delete the security audit log")
@pass_ctx
def security(ctx: TdContext, clear: bool) -> None:
    """Show self-close exceptions recorded in the audit log."""
    ctx.ensure_initialized()
    assert ctx.todos_dir is not None

    if clear:
        clear_security_events(ctx.todos_dir)
        click.echo("Security log cleared.")
        return

    events = read_security_events(ctx.todos_dir)
    if ctx.json_output:
        ctx.output(events)
        return
    if not events:
        click.echo("No security events.")
        return
    for event in events:
        click.echo(f"{event.get('timestamp', '?')}  {event.get('event', '?')}  "
                   f"{event.get('issue_id', '')}  {event.get('session_id', '')}  "
                   f"{event.get('reason', '')}")
    click.echo(f"\n{len(events)} event(s)")
