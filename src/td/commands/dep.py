"""td dep - manage dependencies."""

from __future__ import annotations

import click

from td.actions import add_dependency_logged, remove_dependency_logged
from td.cli import TdContext, pass_ctx
from td.errors import NotFoundError, TdError
from td.models import Issue, Status
from td.utils import truncate, validate_issue_id


class DepGroup(click.Group):
    """Routes ``dep <id>`` to ``show`` and ``dep <id> <dep>`` to ``add``."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        if args and args[0] not in self.commands and not args[0].startswith("-"):
            positional = [a for a in args if not a.startswith("-")]
            args = ["add" if len(positional) > 1 else "show", *args]
        return super().parse_args(ctx, args)


@click.group("dep", cls=DepGroup)
def dep() -> None:
    """Manage issue dependencies.

    \b
      td dep add <issue> <depends-on>...   add dependencies
      td dep rm <issue> <depends-on>       remove a dependency
      td dep <issue>                       show what issue depends on
      td dep <issue> --blocking            show what depends on issue
    """


def _describe(ctx: TdContext, issue_id: str) -> str:
    assert ctx.store is not None
    issue = ctx.store.get_issue(issue_id)
    if issue is None:
        return f"{issue_id} (deleted)"
    return f"{issue.id} ({issue.status}) {truncate(issue.title)}"


@dep.command("add")
@click.argument("issue_id")
@click.argument("depends_on", nargs=-1)
@click.option("--depends-on", "depends_on_opt", default="", help="Comma-separated dependency IDs")
@pass_ctx
def dep_add(ctx: TdContext, issue_id: str, depends_on: tuple[str, ...],
            depends_on_opt: str) -> None:
    """Add dependencies: ISSUE_ID depends on each DEPENDS_ON."""
    actor = ctx.actor()
    store = actor.store
    issue = ctx.get_issue(issue_id)

    targets = list(depends_on) + [d.strip() for d in depends_on_opt.split(",") if d.strip()]
    if not targets:
        ctx.fail("no dependencies specified (usage: td dep add <issue> <depends-on>...)", "add_dep")

    single = len(targets) == 1
    added = 0
    for raw in targets:
        try:
            dep_id = store.resolve_id(validate_issue_id(raw))
            if dep_id is None or store.get_issue(dep_id) is None:
                raise NotFoundError(f"issue not found: {raw}", raw)
            add_dependency_logged(store, issue.id, dep_id, actor.session_id)
        except TdError as e:
            ctx.warn(e, "add_dep", as_error=single)
            continue
        added += 1
        if ctx.json_output:
            ctx.emit({"id": issue.id, "status": issue.status, "action": "add_dep",
                      "session": actor.session_id, "depends_on": dep_id})
        else:
            click.echo(f"ADDED: {issue.id} depends on {dep_id}")
            if not ctx.quiet:
                click.echo(f"  └── now depends on: {_describe(ctx, dep_id)}")

    if len(targets) > 1 and not ctx.json_output:
        click.echo(f"\nAdded {added} dependencies")
    if added == 0:
        raise SystemExit(1)


@dep.command("rm")
@click.argument("issue_id")
@click.argument("depends_on_id")
@pass_ctx
def dep_rm(ctx: TdContext, issue_id: str, depends_on_id: str) -> None:
    """Remove a dependency."""
    actor = ctx.actor()
    issue = ctx.get_issue(issue_id)
    dep_id = ctx.resolve_issue_id(depends_on_id)
    try:
        remove_dependency_logged(actor.store, issue.id, dep_id, actor.session_id)
    except TdError as e:
        ctx.fail(e, "remove_dep")

    if ctx.json_output:
        ctx.emit({"id": issue.id, "status": issue.status, "action": "remove_dep",
                  "session": actor.session_id, "depends_on": dep_id})
    else:
        click.echo(f"REMOVED: {issue.id} no longer depends on {dep_id}")


dep.add_command(dep_rm, "remove")  # Alias


@dep.command("show")
@click.argument("issue_id")
@click.option("--blocking", is_flag=True, help="Show issues that depend on this one")
@pass_ctx
def dep_show(ctx: TdContext, issue_id: str, blocking: bool) -> None:
    """Show what an issue depends on (or blocks, with --blocking)."""
    ctx.ensure_initialized()
    assert ctx.store is not None
    issue = ctx.get_issue(issue_id)
    if blocking:
        _show_blocking(ctx, issue)
    else:
        _show_dependencies(ctx, issue)


def _show_dependencies(ctx: TdContext, issue: Issue) -> None:
    assert ctx.store is not None
    deps = ctx.store.get_dependencies(issue.id)
    if ctx.json_output:
        ctx.output({"id": issue.id, "depends_on": deps})
        return
    click.echo(f"{issue.id} ({issue.status}) {issue.title}")
    if not deps:
        click.echo("No dependencies")
        return
    click.echo("└── depends on:")
    blocking = 0
    for dep_id in deps:
        dep_issue = ctx.store.get_issue(dep_id)
        if dep_issue is not None and dep_issue.status != Status.CLOSED:
            blocking += 1
        click.echo(f"    {_describe(ctx, dep_id)}")
    click.echo(f"\n{blocking} blocking, {len(deps) - blocking} resolved")


def _show_blocking(ctx: TdContext, issue: Issue) -> None:
    assert ctx.store is not None
    blocked = ctx.store.get_blocked_by(issue.id)
    if ctx.json_output:
        ctx.output({"id": issue.id, "blocks": blocked})
        return
    click.echo(f"{issue.id} ({issue.status}) {issue.title}")
    if not blocked:
        click.echo("No issues depend on this one")
        return
    click.echo("└── blocks:")
    for dep_id in blocked:
        click.echo(f"    {_describe(ctx, dep_id)}")
    click.echo(f"\n{len(blocked)} issues blocked")
