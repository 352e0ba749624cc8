"""
agileboard CLI - Status command.

Show which backend is in use and what the snapshot holds.
"""

import typer
from rich.markup import escape
from rich.table import Table

from agileboard.cli.errors import ExitCode, print_not_configured_error
from agileboard.cli.runtime import console, print_json, run_with_service
from agileboard.core.backend import detect_backend
from agileboard.core.config import credential_sources, load_config
from agileboard.core.items.models import ItemStatus
from agileboard.core.sync import SyncService


def status(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Show backend, credential sources, collection counts and the selected sprint.

    Exits with code 2 (with setup guidance) when no backend is configured.

    Examples:
        agileboard status
        agileboard status --json
    """
    if detect_backend(load_config(use_cache=False)) is None:
        if json_output:
            print_json({"configured": False})
        else:
            print_not_configured_error()
        raise typer.Exit(ExitCode.USER_ERROR)

    async def _status(service: SyncService) -> dict[str, object]:
        selected = service.selected_sprint
        return {
            "configured": True,
            "backend": service.backend.backend_name if service.backend else None,
            "subscribed": service.subscribed,
            "users": len(service.users),
            "sprints": len(service.sprints),
            "work_items": len(service.work_items),
            "open_items": sum(1 for i in service.work_items if i.status != ItemStatus.CLOSED),
            "blocked_items": sum(1 for i in service.work_items if i.blocked),
            "selected_sprint": selected.model_dump(mode="json") if selected else None,
        }

    info = run_with_service(_status)
    credentials = credential_sources((ctx.obj or {}).get("env_sources", {}))
    info["credentials"] = credentials

    if json_output:
        print_json(info)
        return

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Backend", str(info["backend"]))
    for key, source in credentials.items():
        table.add_row(key, escape(source) if source else "[dim]not set[/dim]")
    table.add_row("Users", str(info["users"]))
    table.add_row("Sprints", str(info["sprints"]))
    table.add_row("Work items", f"{info['work_items']} ({info['open_items']} open)")
    table.add_row("Blocked", str(info["blocked_items"]))
    selected = info["selected_sprint"]
    if isinstance(selected, dict):
        table.add_row("Selected sprint", f"{escape(selected['name'])} [dim]{selected['id']}[/dim]")
    else:
        table.add_row("Selected sprint", "[dim]none[/dim]")
    console.print(table)
