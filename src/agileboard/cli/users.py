"""
agileboard CLI - Team member commands.
"""

import mimetypes
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from agileboard.cli.errors import ExitCode, print_error
from agileboard.cli.runtime import console, fail_unless, print_json, run_with_service
from agileboard.core.items.models import FileUpload
from agileboard.core.sync import SyncService

app = typer.Typer(help="Manage team members")


@app.command("list")
def list_users(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    List team members by name.

    Examples:
        agileboard users list
    """

    async def _list(service: SyncService) -> None:
        if json_output:
            print_json([u.model_dump(mode="json") for u in service.users])
            return

        if not service.users:
            console.print("[dim]No team members yet[/dim]")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Items", justify="right")
        table.add_column("Avatar", overflow="fold")
        for user in service.users:
            assigned = sum(1 for item in service.work_items if item.assignee_id == user.id)
            table.add_row(user.id, escape(user.name), str(assigned), user.avatar_url or "-")
        console.print(table)

    run_with_service(_list)


@app.command()
def add(
    name: str = typer.Argument(..., help="Display name"),
    avatar: Path | None = typer.Option(
        None,
        "--avatar",
        exists=True,
        dir_okay=False,
        readable=True,
        help="Image to upload as avatar",
    ),
) -> None:
    """
    Add a team member.

    A failed avatar upload does not stop the user from being created.

    Examples:
        agileboard users add "Ana Souza"
        agileboard users add "Ana Souza" --avatar ./ana.png
    """
    upload = None
    if avatar is not None:
        guessed, _ = mimetypes.guess_type(avatar.name)
        upload = FileUpload(
            name=avatar.name,
            content=avatar.read_bytes(),
            mime_type=guessed or "application/octet-stream",
        )

    async def _add(service: SyncService) -> bool:
        return await service.add_user(name, upload)

    fail_unless(run_with_service(_add))
    console.print(f"[green]Added:[/green] {escape(name)}")


@app.command()
def remove(
    user_id: str = typer.Argument(..., help="User ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Remove a team member. Their items show as unassigned.

    Examples:
        agileboard users remove <user-id> --yes
    """
    if not yes:
        typer.confirm(f"Remove user {user_id}?", abort=True)

    async def _remove(service: SyncService) -> bool:
        if not any(u.id == user_id for u in service.users):
            print_error(f"User not found: {user_id}", solution="agileboard users list")
            raise typer.Exit(ExitCode.USER_ERROR)
        return await service.remove_user(user_id)

    fail_unless(run_with_service(_remove))
    console.print(f"[green]Removed:[/green] {user_id}")
