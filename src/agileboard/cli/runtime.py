"""
Shared plumbing for CLI commands.

Every command that touches data builds a SyncService from the loaded
configuration, refreshes it, runs one operation under ``asyncio.run`` and
closes the backend. Alerts from the service are printed to the console.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from agileboard.cli.errors import ExitCode, print_error, print_not_configured_error
from agileboard.core.backend import BackendError
from agileboard.core.config import load_config
from agileboard.core.sync import Notifier, SyncService

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConsoleNotifier:
    """Notifier printing alerts to a Rich console."""

    def __init__(self, target: Console | None = None) -> None:
        self.console = target or console
        self.alerts: list[str] = []

    def alert(self, message: str) -> None:
        self.alerts.append(message)
        self.console.print(f"[yellow]![/yellow] {escape(message)}")


def build_service(notifier: Notifier | None = None) -> SyncService:
    """
    Build a service from a fresh configuration load.

    Raises:
        typer.Exit: If the backend name is unknown or lacks credentials
    """
    config = load_config(use_cache=False)
    try:
        return SyncService.from_config(config, notifier=notifier or ConsoleNotifier())
    except ValueError as e:
        print_error(str(e), solution="export AGILEBOARD_BACKEND=supabase  # or local")
        raise typer.Exit(ExitCode.USER_ERROR)
    except BackendError as e:
        print_error(f"Backend unavailable: {e}")
        print_not_configured_error()
        raise typer.Exit(ExitCode.USER_ERROR)


def run_with_service(operation: Callable[[SyncService], Awaitable[T]]) -> T:
    """
    Run one operation against a refreshed service.

    Args:
        operation: Coroutine function receiving the service

    Returns:
        Whatever the operation returns

    Raises:
        typer.Exit: When not configured (USER_ERROR) or on invalid input
    """
    service = build_service()
    if not service.configured:
        print_not_configured_error()
        raise typer.Exit(ExitCode.USER_ERROR)

    async def _run() -> T:
        try:
            await service.refresh()
            return await operation(service)
        finally:
            await service.aclose()

    try:
        return asyncio.run(_run())
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(ExitCode.USER_ERROR)


def print_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def parse_date_option(value: str | None, option: str) -> date | None:
    """Parse a YYYY-MM-DD option value ("" clears the date)."""
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got '{value}'", param_hint=option)


def parse_assignments(values: list[str] | None) -> dict[str, str]:
    """Turn repeated ``--set field=value`` options into a dict."""
    result: dict[str, str] = {}
    for raw in values or []:
        field, sep, value = raw.partition("=")
        if not sep or not field.strip():
            raise typer.BadParameter(f"expected field=value, got '{raw}'", param_hint="--set")
        result[field.strip()] = value
    return result


def fail_unless(ok: bool) -> None:
    """Exit with GENERAL_ERROR when a service operation reported failure."""
    if not ok:
        raise typer.Exit(ExitCode.GENERAL_ERROR)
