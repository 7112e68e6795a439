"""
overall CLI - list and export commands.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from overall.cli.common import console, get_services, styled_priority
from overall.cli.errors import handle_errors
from overall.core.facade.facade import EXPORT_FILENAME
from overall.core.store.models import GroupView


def _group_table(view: GroupView) -> Table:
    title = view.group.name if view.group else "Ungrouped"
    table = Table(title=f"{title} ({view.priority.label})", title_justify="left")
    table.add_column("Repository", style="cyan")
    table.add_column("Priority")
    table.add_column("Language")
    table.add_column("Branches", justify="right")
    table.add_column("Open PRs", justify="right")
    table.add_column("Last push")
    for repo_view in view.repositories:
        repo = repo_view.repository
        name = f"{repo.id} [red](missing)[/red]" if repo.is_missing else repo.id
        table.add_row(
            name,
            styled_priority(repo.priority),
            repo.language or "Unknown",
            str(len(repo_view.branches)),
            str(repo_view.open_pr_count),
            repo.pushed_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def list_repos(ctx: typer.Context) -> None:
    """
    List cached repositories by group, most urgent first.
    """
    services = get_services(ctx)
    with handle_errors():
        snapshot = services.store.list_groups_with_repos()

    views = [*snapshot.groups, snapshot.ungrouped]
    if not any(view.repositories for view in views):
        console.print("[yellow]No repositories cached.[/yellow] Run: overall sync")
        return
    for view in views:
        if view.repositories or view.group is not None:
            console.print(_group_table(view))


def export(
    ctx: typer.Context,
    path: Optional[Path] = typer.Argument(
        None,
        help=f"File or directory to write (default: ./{EXPORT_FILENAME})",
    ),
) -> None:
    """
    Export groups and repositories to repos.json for the web UI.
    """
    services = get_services(ctx)
    with handle_errors():
        written = services.facade.write_export(path or Path.cwd() / EXPORT_FILENAME)
    console.print(f"[green]✓[/green] Exported to {written}")
