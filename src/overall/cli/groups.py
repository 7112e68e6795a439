"""
overall CLI - group management.
"""

from typing import Optional

import typer
from rich.table import Table

from overall.cli.common import console, get_services, styled_priority
from overall.cli.errors import handle_errors

app = typer.Typer(
    name="groups",
    help="Manage repository groups (tabs)",
    no_args_is_help=True,
)


@app.command("create")
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name"),
    repos: Optional[list[str]] = typer.Option(
        None,
        "--repo",
        "-r",
        help="Repository to move into the new group (repeatable)",
    ),
) -> None:
    """Create a group, optionally moving repositories into it."""
    services = get_services(ctx)
    with handle_errors():
        group = services.store.create_group(name, repo_ids=repos or [])
        services.facade.refresh_export()
    console.print(f"[green]✓[/green] Created group [bold]{group.name}[/bold] (id {group.id})")


@app.command("list")
def list_groups(ctx: typer.Context) -> None:
    """List groups with member counts and worst-case priority."""
    services = get_services(ctx)
    with handle_errors():
        snapshot = services.store.list_groups_with_repos()

    if not snapshot.groups:
        console.print("[yellow]No groups.[/yellow] Create one with: overall groups create NAME")
        return

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Repositories", justify="right")
    table.add_column("Priority")
    for view in snapshot.groups:
        assert view.group is not None
        table.add_row(
            str(view.group.id),
            view.group.name,
            str(len(view.repositories)),
            styled_priority(view.priority),
        )
    console.print(table)


@app.command("rename")
def rename(
    ctx: typer.Context,
    group_id: int = typer.Argument(..., help="Group id"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a group."""
    services = get_services(ctx)
    with handle_errors():
        group = services.store.rename_group(group_id, name)
        services.facade.refresh_export()
    console.print(f"[green]✓[/green] Renamed group {group.id} to [bold]{group.name}[/bold]")


@app.command("delete")
def delete(
    ctx: typer.Context,
    group_id: int = typer.Argument(..., help="Group id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a group. Its repositories become ungrouped."""
    services = get_services(ctx)
    if not yes:
        typer.confirm(f"Delete group {group_id}?", abort=True)
    with handle_errors():
        services.store.delete_group(group_id)
        services.facade.refresh_export()
    console.print(f"[green]✓[/green] Deleted group {group_id}")


@app.command("move")
def move(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository (owner/name)"),
    group_id: Optional[int] = typer.Argument(
        None, help="Target group id; omit to remove the repository from its group"
    ),
) -> None:
    """Move a repository into a group, or out of its group."""
    services = get_services(ctx)
    with handle_errors():
        services.store.move_repository(repo, group_id)
        services.facade.refresh_export()
    target = f"group {group_id}" if group_id is not None else "ungrouped"
    console.print(f"[green]✓[/green] Moved {repo} to {target}")
