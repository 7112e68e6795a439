"""
overall CLI - local root directories scanned for clones.
"""

from pathlib import Path

import typer
from rich.table import Table

from overall.cli.common import console, get_services
from overall.cli.errors import ExitCode, handle_errors

app = typer.Typer(
    name="roots",
    help="Manage directories scanned for local clones",
    no_args_is_help=True,
)


def _normalize(path: Path) -> str:
    return str(path.expanduser().resolve())


@app.command("add")
def add(ctx: typer.Context, path: Path = typer.Argument(..., help="Directory holding clones")) -> None:
    """Add a local root."""
    services = get_services(ctx)
    if not path.expanduser().is_dir():
        console.print(f"[red]Error:[/red] Not a directory: {path}")
        raise typer.Exit(ExitCode.USER_ERROR)
    with handle_errors():
        root = services.store.add_root(_normalize(path))
    console.print(f"[green]✓[/green] Added local root {root.path}")


@app.command("remove")
def remove(ctx: typer.Context, path: Path = typer.Argument(..., help="Configured root")) -> None:
    """Remove a local root. Cached local status is kept until the next scan."""
    services = get_services(ctx)
    with handle_errors():
        removed = services.store.remove_root(_normalize(path))
    if not removed:
        console.print(f"[red]Error:[/red] Not a configured root: {path}")
        raise typer.Exit(ExitCode.USER_ERROR)
    console.print(f"[green]✓[/green] Removed local root {path}")


@app.command("enable")
def enable(ctx: typer.Context, path: Path = typer.Argument(..., help="Configured root")) -> None:
    """Include a root in scans."""
    services = get_services(ctx)
    with handle_errors():
        services.store.set_root_enabled(_normalize(path), True)
    console.print(f"[green]✓[/green] Enabled {path}")


@app.command("disable")
def disable(ctx: typer.Context, path: Path = typer.Argument(..., help="Configured root")) -> None:
    """Exclude a root from scans without forgetting it."""
    services = get_services(ctx)
    with handle_errors():
        services.store.set_root_enabled(_normalize(path), False)
    console.print(f"[green]✓[/green] Disabled {path}")


@app.command("list")
def list_roots(ctx: typer.Context) -> None:
    """List local roots."""
    services = get_services(ctx)
    with handle_errors():
        roots = services.store.list_roots()
    if not roots:
        console.print("[yellow]No local roots.[/yellow] Add one with: overall roots add PATH")
        return
    table = Table()
    table.add_column("Path", style="cyan")
    table.add_column("Enabled")
    for root in roots:
        table.add_row(root.path, "[green]yes[/green]" if root.enabled else "[dim]no[/dim]")
    console.print(table)
