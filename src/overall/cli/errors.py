"""
Error display and exit codes for the overall CLI.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum

import typer
from rich.console import Console

from overall.core.errors import (
    ConfigError,
    Conflict,
    InvalidOwner,
    NotFound,
    OverallError,
    RemoteRateLimited,
    RemoteUnavailable,
)

err_console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for overall commands."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Sync, remote or cache failure."""

    USER_ERROR = 2
    """Bad input or configuration (actionable by the user)."""


def print_error(problem: str, *, reason: str | None = None, solution: str | None = None) -> None:
    """
    Print a standardized error message with optional guidance.

    Example:
        >>> print_error("gh CLI not found", solution="brew install gh && gh auth login")
    """
    err_console.print(f"[red]Error:[/red] {problem}")
    if reason:
        err_console.print(f"[dim]{reason}[/dim]")
    if solution:
        err_console.print(f"[cyan]→ Try:[/cyan] {solution}")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn core errors into a printed message and a non-zero exit."""
    try:
        yield
    except RemoteRateLimited as e:
        wait = f" Retry in {e.retry_after}s." if e.retry_after else ""
        print_error(f"GitHub rate limit reached.{wait}", reason=str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except RemoteUnavailable as e:
        print_error(str(e), solution="gh auth status")
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except (InvalidOwner, NotFound, Conflict, ConfigError) as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR) from e
    except OverallError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR) from e
