"""td board - named boards with ordered issue positions."""

from __future__ import annotations

import copy

import click

from td.actions import (
    create_board_logged, delete_board_logged, set_position_logged, unposition_logged,
    update_board_logged,
)
from td.cli import TdContext, pass_ctx
from td.errors import ConflictError, InvalidInputError, NotFoundError, TdError
from td.id_gen import generate_board_id
from td.models import Board, BoardPosition
from td.utils import format_issue_row


def _resolve_board(ctx: TdContext, ref: str) -> Board:
    assert ctx.store is not None
    board = ctx.store.get_board(ref)
    if board is None:
        ctx.fail(NotFoundError(f"board not found: {ref}"), "board")
    return board


@click.group("board")
def board() -> None:
    """Manage issue boards."""


@board.command("list")
@pass_ctx
def board_list(ctx: TdContext) -> None:
    """List all boards."""
    ctx.ensure_initialized()
    assert ctx.store is not None
    boards = ctx.store.list_boards()
    if ctx.json_output:
        ctx.output([b.to_dict() for b in boards])
        return
    if not boards:
        click.echo("No boards.")
        return
    for b in boards:
        query = f"  [{b.query}]" if b.query else ""
        click.echo(f"{b.id}: {b.name}{query}")


@board.command("create")
@click.argument("name")
@click.option("--query", "-q", default="", help="Saved query text for the board")
@pass_ctx
def board_create(ctx: TdContext, name: str, query: str) -> None:
    """Create a new board."""
    actor = ctx.actor()
    name = name.strip()
    try:
        if not name:
            raise InvalidInputError("board name is required")
        if actor.store.get_board(name) is not None:
            raise ConflictError(f"board already exists: {name}")
        record = Board(id=generate_board_id(), name=name, query=query)
        create_board_logged(actor.store, record, actor.session_id)
    except TdError as e:
        ctx.fail(e, "board_create")

    if ctx.json_output:
        ctx.output(record.to_dict())
    else:
        click.echo(f"CREATED board {record.name} ({record.id})")


@board.command("edit")
@click.argument("ref")
@click.option("--name", default=None, help="New board name")
@click.option("--query", default=None, help="New saved query")
@pass_ctx
def board_edit(ctx: TdContext, ref: str, name: str | None, query: str | None) -> None:
    """Rename a board or change its query."""
    actor = ctx.actor()
    record = _resolve_board(ctx, ref)
    previous = copy.deepcopy(record)
    try:
        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidInputError("board name cannot be empty")
            other = actor.store.get_board(name)
            if other is not None and other.id != record.id:
                raise ConflictError(f"board already exists: {name}")
            record.name = name
        if query is not None:
            record.query = query
        if record.to_dict() == previous.to_dict():
            raise InvalidInputError("no changes specified (use --name or --query)")
        update_board_logged(actor.store, record, previous, actor.session_id)
    except TdError as e:
        ctx.fail(e, "board_update")

    if ctx.json_output:
        ctx.output(record.to_dict())
    else:
        click.echo(f"UPDATED board {record.name}")


@board.command("delete")
@click.argument("ref")
@pass_ctx
def board_delete(ctx: TdContext, ref: str) -> None:
    """Delete a board and its positions."""
    actor = ctx.actor()
    record = _resolve_board(ctx, ref)
    try:
        delete_board_logged(actor.store, record, actor.session_id)
    except TdError as e:
        ctx.fail(e, "board_delete")
    if ctx.json_output:
        ctx.output({"id": record.id, "name": record.name, "deleted": True})
    else:
        click.echo(f"DELETED board {record.name}")


@board.command("show")
@click.argument("ref")
@pass_ctx
def board_show(ctx: TdContext, ref: str) -> None:
    """Show positioned issues on a board."""
    ctx.ensure_initialized()
    store = ctx.store
    assert store is not None
    record = _resolve_board(ctx, ref)
    positions = store.get_board_positions(record.id)

    if ctx.json_output:
        data = record.to_dict()
        data["positions"] = [p.to_dict() for p in positions]
        ctx.output(data)
        return

    click.echo(f"Board: {record.name} ({record.id})")
    if record.query:
        click.echo(f"Query: {record.query}")
    if not positions:
        click.echo("No positioned issues.")
        return
    for p in positions:
        issue = store.get_issue(p.issue_id)
        row = format_issue_row(issue) if issue else f"{p.issue_id} (deleted)"
        click.echo(f"{p.position:>3}. {row}")


@board.command("move")
@click.argument("ref")
@click.argument("issue_id")
@click.argument("position", type=int)
@pass_ctx
def board_move(ctx: TdContext, ref: str, issue_id: str, position: int) -> None:
    """Set an issue's position on a board."""
    actor = ctx.actor()
    record = _resolve_board(ctx, ref)
    issue = ctx.get_issue(issue_id)
    try:
        if position < 1:
            raise InvalidInputError("position must be a positive integer", issue.id)
        set_position_logged(actor.store, BoardPosition(record.id, issue.id, position),
                            actor.session_id)
    except TdError as e:
        ctx.fail(e, "board_set_position")
    if ctx.json_output:
        ctx.output({"board_id": record.id, "issue_id": issue.id, "position": position})
    else:
        click.echo(f"MOVED {issue.id} to position {position} on {record.name}")


@board.command("unposition")
@click.argument("ref")
@click.argument("issue_id")
@pass_ctx
def board_unposition(ctx: TdContext, ref: str, issue_id: str) -> None:
    """Remove an issue's explicit position on a board."""
    actor = ctx.actor()
    record = _resolve_board(ctx, ref)
    issue = ctx.get_issue(issue_id)
    try:
        unposition_logged(actor.store, record.id, issue.id, actor.session_id)
    except TdError as e:
        ctx.fail(e, "board_unposition")
    if ctx.json_output:
        ctx.output({"board_id": record.id, "issue_id": issue.id, "position": None})
    else:
        click.echo(f"UNPOSITIONED {issue.id} on {record.name}")
