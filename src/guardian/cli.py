"""Guardian command line interface."""

from functools import wraps
from typing import Optional

import click

from guardian import __version__
from guardian.config import settings
from guardian.core.exceptions import GuardianError
from guardian.core.logger import format_log_entries, parse_log_entries
from guardian.core.worktree import WorktreeManager
from guardian.timeline import EventAggregator, EventType, TimeRange

STATUS_ICONS = {
    "active": "+",
    "completed": "v",
    "stale": "!",
    "missing": "x",
}


def _guardian_errors(func):
    """Report Guardian errors as click errors (exit code 1)."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GuardianError as e:
            raise click.ClickException(str(e)) from e

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="guardian")
def main() -> None:
    """Guardian: isolated worktrees and activity timeline for parallel agents."""


@main.group()
def worktree() -> None:
    """Worktree commands."""


@worktree.command("create")
@click.argument("task_id")
@click.option("--agent", default="implementer", show_default=True, help="Agent identity.")
@_guardian_errors
def worktree_create(task_id: str, agent: str) -> None:
    """Create an isolated worktree for TASK_ID."""
    record = WorktreeManager().create(task_id, agent)
    click.echo(f"Created worktree: {record.path}")
    click.echo(f"Created branch: {record.branch}")


@worktree.command("list")
@_guardian_errors
def worktree_list() -> None:
    """List tracked worktrees with their current status."""
    records = WorktreeManager().list()
    if not records:
        click.echo("No active worktrees")
        return

    for record in records:
        icon = STATUS_ICONS.get(record.status.value, "?")
        click.echo(
            f"[{icon}] {record.task_id:<24} {record.status.value:<9} "
            f"{record.branch:<32} {record.agent or '-'}"
        )


@worktree.command("complete")
@click.argument("task_id")
@_guardian_errors
def worktree_complete(task_id: str) -> None:
    """Mark TASK_ID's worktree as completed."""
    WorktreeManager().mark_completed(task_id)
    click.echo(f"Marked {task_id} completed")


@worktree.command("cleanup")
@click.argument("task_id")
@_guardian_errors
def worktree_cleanup(task_id: str) -> None:
    """Remove TASK_ID's worktree and branch."""
    WorktreeManager().cleanup(task_id)
    click.echo(f"Cleaned up worktree: {task_id}")


@main.command("timeline")
@click.option(
    "--range",
    "time_range",
    type=click.Choice([r.value for r in TimeRange]),
    default=TimeRange.TODAY.value,
    show_default=True,
)
@click.option(
    "--type",
    "types",
    multiple=True,
    type=click.Choice([t.value for t in EventType]),
    help="Event type to include. Can be repeated.",
)
@click.option("--limit", type=click.IntRange(min=1), default=settings.timeline_default_limit, show_default=True)
@_guardian_errors
def timeline(time_range: str, types: tuple[str, ...], limit: int) -> None:
    """Show recent agent activity, newest first."""
    events = EventAggregator().get_timeline_events(time_range, types or None, limit)
    if not events:
        click.echo("No events")
        return

    for event in events:
        click.echo(f"{event.timestamp}  {event.type.value:<12} {event.title}: {event.description}")


@main.command("logs")
@click.option("--namespace", default=None, help="Namespace or dotted prefix.")
@click.option("--level", type=click.Choice(["debug", "info", "warn", "error"]), default=None)
@click.option("--limit", type=click.IntRange(min=1), default=50, show_default=True)
@click.option("--offset", type=click.IntRange(min=0), default=0)
def logs(namespace: Optional[str], level: Optional[str], limit: int, offset: int) -> None:
    """Show structured guardian log entries, newest first."""
    entries = parse_log_entries(
        settings.log_path,
        namespace=namespace,
        level=level,
        limit=limit,
        offset=offset,
    )
    click.echo(format_log_entries(entries))


@main.command("serve")
@click.option("--host", default=None, help="Bind host.")
@click.option("--port", type=int, default=None, help="Bind port.")
def serve(host: Optional[str], port: Optional[int]) -> None:
    """Run the Guardian API (webhook, worktrees, timeline)."""
    import logging

    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "guardian.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
