"""
agileboard CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging

import typer
from rich.console import Console

from agileboard import __version__
from agileboard.cli import dashboard, items, reports, setup, sprints, status, users, watch
from agileboard.core.config.env import load_layered_env

# Help panel names for command grouping
PANEL_KEY = "Key Commands"
PANEL_PLAN = "Plan the Work"
PANEL_REPORTS = "See How It Is Going"
PANEL_SERVER = "Serve and Follow Changes"

app = typer.Typer(
    name="agileboard",
    help="Agile project dashboard backed by Supabase",
    no_args_is_help=False,
    invoke_without_command=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    Agileboard - manage workstreams, initiatives, deliveries, tasks and
    sprints stored in a Supabase project.

    Quick Start:
        1. agileboard setup                     # SQL to run once in Supabase
        2. echo SUPABASE_URL=... >> .env        # plus SUPABASE_KEY
        3. agileboard sprints create            # First sprint
        4. agileboard items create "Login page" --type Task

    Offline:
        export AGILEBOARD_BACKEND=local         # in-memory backend
        export AGILEBOARD_DATA_FILE=board.json  # or persist to a file
    """
    # Precedence: OS env > project .env > user .env
    env_sources = load_layered_env()

    if debug:
        logging.basicConfig(level=logging.DEBUG)

    ctx.obj = {"debug": debug, "env_sources": env_sources}

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command(name="version", rich_help_panel=PANEL_KEY)
def version() -> None:
    """Show the agileboard version."""
    console.print(f"agileboard {__version__}")


# =============================================================================
# Key Commands
# =============================================================================

app.command(name="status", rich_help_panel=PANEL_KEY)(status.status)
app.command(name="setup", rich_help_panel=PANEL_KEY)(setup.setup)

# =============================================================================
# Plan the Work
# =============================================================================

app.add_typer(items.app, name="items", rich_help_panel=PANEL_PLAN)
app.add_typer(sprints.app, name="sprints", rich_help_panel=PANEL_PLAN)
app.add_typer(users.app, name="users", rich_help_panel=PANEL_PLAN)

# =============================================================================
# See How It Is Going
# =============================================================================

app.add_typer(reports.app, name="report", rich_help_panel=PANEL_REPORTS)

# =============================================================================
# Serve and Follow Changes
# =============================================================================

app.command(name="watch", rich_help_panel=PANEL_SERVER)(watch.watch)
app.command(name="dashboard", rich_help_panel=PANEL_SERVER)(dashboard.dashboard)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
