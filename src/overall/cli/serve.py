"""
overall CLI - serve command.
"""

from typing import Optional

import typer

from overall.cli.common import console, get_services


def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on"),
) -> None:
    """
    Start the HTTP API server.

    Examples:
        overall serve                  # config host/port (127.0.0.1:8080)
        overall serve --port 3000
    """
    import uvicorn

    from overall.api.app import create_app

    debug = bool(ctx.obj.get("debug")) if ctx.obj else False
    services = get_services(ctx)
    bind_host = host or services.config.server.host
    bind_port = port or services.config.server.port

    url = f"http://{bind_host}:{bind_port}"
    console.print("[bold cyan]Starting overall API server...[/bold cyan]")
    console.print(f"[dim]API: {url}/api/groups[/dim]")
    console.print(f"[dim]Docs: {url}/docs[/dim]")
    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        uvicorn.run(
            create_app(services),
            host=bind_host,
            port=bind_port,
            log_level="debug" if debug else "warning",
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")
