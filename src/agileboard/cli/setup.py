"""
agileboard CLI - Setup command.

Print the SQL script that prepares a Supabase project, and optionally
seed a starter profile.
"""

import typer
from rich.syntax import Syntax

from agileboard.cli.runtime import console, fail_unless, run_with_service
from agileboard.core.backend.schema import SETUP_SQL
from agileboard.core.sync import SyncService


def setup(
    seed: bool = typer.Option(
        False,
        "--seed",
        help="Also insert a starter profile into the configured backend",
    ),
    raw: bool = typer.Option(
        False,
        "--raw",
        help="Print the bare SQL (for piping into psql)",
    ),
) -> None:
    """
    Show the database setup script.

    Paste the script into the Supabase SQL editor and run it. It creates
    the tables, enables realtime on them and creates the public avatars
    and attachments buckets. Running it again is safe and adds any
    column a newer version needs.

    Examples:
        agileboard setup
        agileboard setup --raw > setup.sql
        agileboard setup --seed
    """
    if raw:
        typer.echo(SETUP_SQL)
    else:
        console.print(Syntax(SETUP_SQL, "sql", theme="monokai", line_numbers=False))
        console.print("[dim]Run this in the Supabase dashboard → SQL Editor[/dim]")

    if not seed:
        return

    async def _seed(service: SyncService) -> bool:
        return await service.seed()

    fail_unless(run_with_service(_seed))
    console.print("[green]✓[/green] Seeded starter profile")
