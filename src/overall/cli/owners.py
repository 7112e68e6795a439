"""
overall CLI - tracked GitHub owners.
"""

import typer

from overall.cli.common import console, get_services
from overall.cli.errors import ExitCode, handle_errors

app = typer.Typer(
    name="owners",
    help="Manage the GitHub users and organizations that are synced",
    no_args_is_help=True,
)


@app.command("add")
def add(ctx: typer.Context, owner: str = typer.Argument(..., help="GitHub user or organization")) -> None:
    """Track an owner."""
    services = get_services(ctx)
    with handle_errors():
        added = services.store.add_owner(owner)
    if added:
        console.print(f"[green]✓[/green] Tracking {owner}")
    else:
        console.print(f"[dim]{owner} is already tracked[/dim]")


@app.command("remove")
def remove(ctx: typer.Context, owner: str = typer.Argument(..., help="GitHub user or organization")) -> None:
    """Stop tracking an owner. Cached repositories are kept."""
    services = get_services(ctx)
    with handle_errors():
        removed = services.store.remove_owner(owner)
    if not removed:
        console.print(f"[red]Error:[/red] {owner} is not tracked")
        raise typer.Exit(ExitCode.USER_ERROR)
    console.print(f"[green]✓[/green] No longer tracking {owner}")


@app.command("list")
def list_owners(ctx: typer.Context) -> None:
    """List tracked owners."""
    services = get_services(ctx)
    with handle_errors():
        owners = services.store.list_owners()
    if not owners:
        console.print("[yellow]No tracked owners.[/yellow]")
        return
    for owner in owners:
        console.print(owner)
