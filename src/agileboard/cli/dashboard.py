"""
agileboard CLI - Dashboard command.

Serve the JSON API over the live snapshot.
"""

import logging
import threading
import time
import webbrowser

import typer

from agileboard.cli.runtime import build_service, console
from agileboard.core.sync import RecordingNotifier

logger = logging.getLogger(__name__)


def dashboard(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8080, "--port", "-p", help="Port to run the server on"),
    open_browser: bool = typer.Option(
        False,
        "--open",
        help="Open the API docs in the default browser",
    ),
) -> None:
    """
    Launch the dashboard API server.

    The server subscribes to remote changes on startup, so every response
    reflects the latest snapshot. Without a configured backend it still
    starts and answers 503 on the data endpoints.

    Examples:
        agileboard dashboard
        agileboard dashboard --port 3000 --open
    """
    debug = ctx.obj.get("debug", False) if ctx.obj else False

    import uvicorn

    from agileboard.api.app import create_app

    service = build_service(notifier=RecordingNotifier())
    if not service.configured:
        console.print("[yellow]Backend not configured, data endpoints will return 503[/yellow]")

    app = create_app(service)
    url = f"http://{host}:{port}"
    console.print("\n[bold cyan]Starting dashboard server...[/bold cyan]")
    console.print(f"[dim]API: {url}/api/snapshot[/dim]")
    console.print(f"[dim]Docs: {url}/docs[/dim]")

    if open_browser:
        def _open() -> None:
            time.sleep(1.5)  # Wait for server to start
            webbrowser.open(f"{url}/docs")

        threading.Thread(target=_open, daemon=True).start()

    console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")
    try:
        uvicorn.run(app, host=host, port=port, log_level="info" if debug else "warning")
    except KeyboardInterrupt:
        console.print("\n[yellow]Dashboard stopped[/yellow]")
        raise typer.Exit(0)
