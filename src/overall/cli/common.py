"""Shared helpers for CLI commands."""

from __future__ import annotations

import logging
import sys

import typer
from rich.console import Console

from overall.core.config.loader import load_config
from overall.core.priority.models import Priority
from overall.core.services import Services, build_services

console = Console()

PRIORITY_STYLES: dict[Priority, str] = {
    Priority.NEEDS_SYNC: "bold red",
    Priority.LOCAL_CHANGES: "yellow",
    Priority.STALE: "cyan",
    Priority.COMPLETE: "green",
}


def configure_logging(debug: bool) -> None:
    """WARNING by default, DEBUG with --debug, always to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def styled_priority(priority: Priority) -> str:
    return f"[{PRIORITY_STYLES[priority]}]{priority.label}[/{PRIORITY_STYLES[priority]}]"


def get_services(ctx: typer.Context) -> Services:
    """
    Services for this invocation, built on first use.

    Tests can pre-populate ``ctx.obj["services"]`` via ``CliRunner.invoke(obj=...)``.
    """
    obj = ctx.ensure_object(dict)
    if "services" not in obj:
        obj["services"] = build_services(load_config())
    services: Services = obj["services"]
    return services
