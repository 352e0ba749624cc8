"""
agileboard CLI - Watch command.

Keep a live subscription open and print a line every time the snapshot
is reloaded.
"""

import asyncio
from datetime import datetime

import typer

from agileboard.cli.errors import ExitCode, print_not_configured_error
from agileboard.cli.runtime import build_service, console
from agileboard.core.sync import Snapshot


def watch(
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        min=0.0,
        help="Stop after this many seconds (default: until Ctrl+C)",
    ),
) -> None:
    """
    Follow remote changes as they happen.

    Every insert, update or delete on the dashboard tables triggers a full
    reload; each reload prints the new collection sizes.

    Examples:
        agileboard watch
        agileboard watch --duration 60
    """
    service = build_service()
    if not service.configured:
        print_not_configured_error()
        raise typer.Exit(ExitCode.USER_ERROR)

    def on_refresh(snapshot: Snapshot) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        console.print(
            f"[dim]{stamp}[/dim] {len(snapshot.users)} users, "
            f"{len(snapshot.sprints)} sprints, {len(snapshot.work_items)} items"
        )

    async def _watch() -> None:
        service.add_listener(on_refresh)
        try:
            await service.start()
            if not service.subscribed:
                console.print("[yellow]Live updates unavailable[/yellow]")
                return
            console.print("[dim]Watching for changes, press Ctrl+C to stop[/dim]")
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            service.remove_listener(on_refresh)
            await service.aclose()

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")
        raise typer.Exit(ExitCode.SIGINT)
