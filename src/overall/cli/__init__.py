"""
overall CLI - main application entry point.

Sets up the Typer app and registers every command.
"""

import typer

from overall import __version__
from overall.cli import groups, owners, pr, repos, roots, serve, sync
from overall.cli.common import configure_logging
from overall.core.config.env import load_layered_env

PANEL_SYNC = "Sync and Inspect"
PANEL_ORGANIZE = "Organize"
PANEL_CONFIG = "Configure"

app = typer.Typer(
    name="overall",
    help="Track GitHub repositories, branches and local clones by priority",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"overall {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    overall - see which repositories need attention.

    Priorities, most urgent first:
        needs-sync      unpushed or unpulled work, or diverged branches
        local-changes   uncommitted files in a local clone
        stale           branches with work not yet merged
        complete        nothing to do

    Quick Start:
        1. overall owners add octo       # Track an account
        2. overall roots add ~/src       # Where your clones live
        3. overall sync                  # Fetch from GitHub
        4. overall scan-local            # Check local clones
        5. overall list                  # See what needs attention
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()
    configure_logging(debug)
    ctx.ensure_object(dict)["debug"] = debug


app.command(name="sync", rich_help_panel=PANEL_SYNC)(sync.sync)
app.command(name="scan-local", rich_help_panel=PANEL_SYNC)(sync.scan_local)
app.command(name="list", rich_help_panel=PANEL_SYNC)(repos.list_repos)
app.command(name="export", rich_help_panel=PANEL_SYNC)(repos.export)
app.command(name="serve", rich_help_panel=PANEL_SYNC)(serve.serve)

app.add_typer(groups.app, name="groups", rich_help_panel=PANEL_ORGANIZE)
app.add_typer(pr.app, name="pr", rich_help_panel=PANEL_ORGANIZE)

app.add_typer(owners.app, name="owners", rich_help_panel=PANEL_CONFIG)
app.add_typer(roots.app, name="roots", rich_help_panel=PANEL_CONFIG)


def cli_main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "cli_main"]
