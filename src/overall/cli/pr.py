"""
overall CLI - pull request creation.
"""

from typing import Optional

import typer

from overall.cli.common import console, get_services
from overall.cli.errors import ExitCode, handle_errors

app = typer.Typer(
    name="pr",
    help="Open pull requests for tracked branches",
    no_args_is_help=True,
)


@app.command("create")
def create(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository (owner/name)"),
    branch: str = typer.Argument(..., help="Head branch"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="PR title"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="PR body"),
) -> None:
    """Open a pull request for BRANCH against the default branch."""
    services = get_services(ctx)
    with handle_errors():
        url = services.prs.create(repo, branch, title, body)
    console.print(f"[green]✓[/green] {url}")


@app.command("create-all")
def create_all(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository (owner/name)"),
) -> None:
    """Open pull requests for every branch with unmerged work."""
    services = get_services(ctx)
    with handle_errors():
        results = services.prs.create_for_unmerged(repo)
    if not results:
        console.print("[dim]No branches with unmerged work[/dim]")
        return
    for result in results:
        if result.success:
            console.print(f"[green]✓[/green] {result.branch}: {result.url}")
        else:
            console.print(f"[red]✗[/red] {result.branch}: {result.error}")
    if not all(r.success for r in results):
        raise typer.Exit(ExitCode.GENERAL_ERROR)
