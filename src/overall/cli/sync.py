"""
overall CLI - sync and scan-local commands.
"""

from typing import Optional

import typer
from rich.table import Table

from overall.cli.common import console, get_services, styled_priority
from overall.cli.errors import ExitCode, handle_errors
from overall.core.reconcile.models import BatchResult, SyncOutcome


def _print_outcome(outcome: SyncOutcome) -> None:
    if outcome.succeeded and outcome.priority is not None:
        console.print(
            f"[green]✓[/green] {outcome.repo_id}: {outcome.branch_count} branches, "
            f"{outcome.pr_count} PRs, {styled_priority(outcome.priority)}"
        )
    elif outcome.deferred:
        wait = f" (retry in {outcome.retry_after}s)" if outcome.retry_after else ""
        console.print(f"[yellow]⏸[/yellow] {outcome.repo_id}: rate limited{wait}")
    else:
        console.print(f"[red]✗[/red] {outcome.repo_id}: {outcome.error}")


def _print_batch(result: BatchResult) -> None:
    for outcome in sorted(result.outcomes, key=lambda o: o.repo_id):
        _print_outcome(outcome)
    for owner, error in result.listing_errors.items():
        console.print(f"[red]✗[/red] listing {owner}: {error}")

    console.print(
        f"\n[bold]{len(result.succeeded)}[/bold] synced, "
        f"[bold]{len(result.failed)}[/bold] failed, "
        f"[bold]{len(result.deferred)}[/bold] deferred"
        + (f", [bold]{len(result.skipped)}[/bold] skipped" if result.skipped else "")
    )


def sync(
    ctx: typer.Context,
    repo: Optional[str] = typer.Argument(
        None,
        help="Repository to sync (owner/name). Omit to sync every tracked owner.",
    ),
    group: Optional[int] = typer.Option(
        None,
        "--group",
        "-g",
        help="Sync every repository in this group",
    ),
    owner: Optional[str] = typer.Option(
        None,
        "--owner",
        "-o",
        help="Sync every repository of this GitHub user or organization",
    ),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        help="Maximum repositories listed per owner",
    ),
) -> None:
    """
    Sync repositories from GitHub into the local cache.

    Examples:
        overall sync                      # every tracked owner
        overall sync octo/widgets         # one repository
        overall sync --group 2            # one group
        overall sync --owner octo         # one owner, tracked or not
    """
    if sum(x is not None for x in (repo, group, owner)) > 1:
        console.print("[red]Error:[/red] Pass at most one of REPO, --group, --owner")
        raise typer.Exit(ExitCode.USER_ERROR)

    services = get_services(ctx)
    repo_limit = limit or services.config.github.repo_limit

    with handle_errors():
        if repo is not None:
            outcome = services.engine.sync_repository(repo)
            _print_outcome(outcome)
            failed = outcome.failed and not outcome.deferred
        else:
            if group is not None:
                result = services.engine.sync_group(group)
            elif owner is not None:
                result = services.engine.sync_owner(owner, repo_limit)
            else:
                if not services.store.list_owners():
                    console.print(
                        "[yellow]No tracked owners.[/yellow] Add one with: overall owners add NAME"
                    )
                    return
                result = services.engine.sync_tracked_owners(repo_limit)
            _print_batch(result)
            failed = bool(result.failed or result.listing_errors)
        services.facade.refresh_export()

    if failed:
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def scan_local(ctx: typer.Context) -> None:
    """
    Scan every enabled local root for git clones and cache their status.
    """
    services = get_services(ctx)
    with handle_errors():
        if not services.store.list_roots(enabled_only=True):
            console.print(
                "[yellow]No enabled local roots.[/yellow] Add one with: overall roots add PATH"
            )
            return
        report = services.engine.scan_local_roots()
        services.facade.refresh_export()

    if report.statuses:
        table = Table(title="Local repositories")
        table.add_column("Repository", style="cyan")
        table.add_column("Branch")
        table.add_column("Uncommitted", justify="right")
        table.add_column("Unpushed", justify="right")
        table.add_column("Behind", justify="right")
        for status in sorted(report.statuses, key=lambda s: s.repo_id):
            table.add_row(
                status.repo_id,
                status.current_branch or "[dim]detached[/dim]",
                str(status.uncommitted_files),
                str(status.unpushed_commits),
                str(status.behind_commits),
            )
        console.print(table)

    for path, error in report.errors.items():
        console.print(f"[red]✗[/red] {path}: {error}")
    console.print(
        f"\n[bold]{len(report.statuses)}[/bold] scanned, "
        f"[bold]{len(report.skipped)}[/bold] not repositories, "
        f"[bold]{len(report.errors)}[/bold] errors"
    )
    if report.errors:
        raise typer.Exit(ExitCode.GENERAL_ERROR)
