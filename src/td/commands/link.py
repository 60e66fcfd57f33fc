"""td link / td unlink - associate files with issues."""

from __future__ import annotations

import os

import click

from td.actions import link_file_logged, unlink_file_logged
from td.cli import TdContext, pass_ctx
from td.errors import InvalidInputError, TdError
from td.id_gen import content_hash
from td.models import FileRole, IssueFile


def _project_path(root: str, path: str) -> str:
    """Path relative to the project root when inside it, else absolute."""
    absolute = os.path.abspath(path)
    rel = os.path.relpath(absolute, root)
    return absolute if rel.startswith("..") else rel


@click.command("link")
@click.argument("issue_id")
@click.argument("files", nargs=-1, required=True)
@click.option("--role", default=FileRole.IMPLEMENTATION,
              help="File role: implementation, test, reference, config")
@pass_ctx
def link(ctx: TdContext, issue_id: str, files: tuple[str, ...], role: str) -> None:
    """Link files to an issue, recording their content hash."""
    actor = ctx.actor()
    issue = ctx.get_issue(issue_id)
    assert ctx.root is not None

    role = role.strip().lower()
    if not FileRole.is_valid(role):
        ctx.fail(InvalidInputError(
            f"invalid role: {role} (valid: implementation, test, reference, config)"), "link_file")

    linked = []
    for path in files:
        if not os.path.isfile(path):
            click.echo(f"Warning: not a file: {path}", err=True)
            continue
        record = IssueFile(
            issue_id=issue.id,
            file_path=_project_path(ctx.root, path),
            role=role,
            content_hash=content_hash(path),
        )
        try:
            link_file_logged(actor.store, record, actor.session_id)
        except TdError as e:
            ctx.warn(e, "link_file")
            continue
        linked.append(record)

    if ctx.json_output:
        ctx.output([r.to_dict() for r in linked])
    elif linked:
        noun = "file" if len(linked) == 1 else "files"
        click.echo(f"LINKED {len(linked)} {noun} to {issue.id}")
    if not linked:
        raise SystemExit(1)


@click.command("unlink")
@click.argument("issue_id")
@click.argument("files", nargs=-1, required=True)
@pass_ctx
def unlink(ctx: TdContext, issue_id: str, files: tuple[str, ...]) -> None:
    """Remove file links from an issue."""
    actor = ctx.actor()
    issue = ctx.get_issue(issue_id)
    assert ctx.root is not None

    count = 0
    for path in files:
        try:
            unlink_file_logged(actor.store, issue.id, _project_path(ctx.root, path),
                               actor.session_id)
        except TdError as e:
            ctx.warn(e, "unlink_file")
            continue
        count += 1

    if ctx.json_output:
        ctx.output({"id": issue.id, "unlinked": count})
    elif count:
        noun = "file" if count == 1 else "files"
        click.echo(f"UNLINKED {count} {noun} from {issue.id}")
    if count == 0:
        raise SystemExit(1)
