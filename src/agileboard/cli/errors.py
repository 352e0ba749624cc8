"""
Standardized error handling and exit codes for the agileboard CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for agileboard CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error, including a remote operation that failed."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Work item not found: A-4K2ZQ",
        ...     reason="The ID may be mistyped or the item deleted",
        ...     solution="agileboard items list",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_not_configured_error() -> None:
    """Print setup guidance when no backend is configured."""
    print_error(
        "Backend not configured",
        reason="Set SUPABASE_URL and SUPABASE_KEY (in the environment or a .env file), "
        "or use the local backend",
        solution="export AGILEBOARD_BACKEND=local  # or agileboard setup for the SQL script",
    )


def print_item_not_found_error(item_id: str) -> None:
    print_error(
        f"Work item not found: {item_id}",
        reason="The ID may be incorrect or the item may have been deleted",
        solution="agileboard items list",
    )


def print_sprint_not_found_error(sprint_id: str) -> None:
    print_error(
        f"Sprint not found: {sprint_id}",
        reason="The ID may be incorrect or the sprint may have been deleted",
        solution="agileboard sprints list",
    )


def print_invalid_option_error(option: str, valid_options: list[str]) -> None:
    """Print error when an invalid option value is provided."""
    valid_str = ", ".join(valid_options)
    print_error(
        f"Invalid option: {option}",
        reason=f"Valid options are: {valid_str}",
        solution=f"Use one of: {valid_str}",
    )


__all__ = [
    "ExitCode",
    "print_error",
    "print_invalid_option_error",
    "print_item_not_found_error",
    "print_not_configured_error",
    "print_sprint_not_found_error",
]
