"""
agileboard CLI - Sprint commands.
"""

from typing import Any

import typer
from rich.markup import escape
from rich.table import Table

from agileboard.cli.errors import (
    ExitCode,
    print_error,
    print_invalid_option_error,
    print_sprint_not_found_error,
)
from agileboard.cli.runtime import (
    console,
    fail_unless,
    parse_date_option,
    print_json,
    run_with_service,
)
from agileboard.core.config import update_project_config
from agileboard.core.items.models import Sprint, SprintStatus
from agileboard.core.reports.board import sprint_progress
from agileboard.core.sync import DateSyncPolicy, SprintAssignment, SyncService
from agileboard.core.sync.date_sync import plan_sprint_assignments

app = typer.Typer(help="Manage sprints")

STATUS_COLORS = {
    SprintStatus.PLANNED: "white",
    SprintStatus.ACTIVE: "yellow",
    SprintStatus.CLOSED: "green",
}


def _parse_status(value: str) -> SprintStatus:
    for status in SprintStatus:
        if value.lower() == status.value.lower():
            return status
    print_invalid_option_error(value, [s.value for s in SprintStatus])
    raise typer.Exit(ExitCode.USER_ERROR)


def _require_sprint(service: SyncService, sprint_id: str) -> Sprint:
    sprint = service.get_sprint(sprint_id)
    if sprint is None:
        print_sprint_not_found_error(sprint_id)
        raise typer.Exit(ExitCode.USER_ERROR)
    return sprint


@app.command("list")
def list_sprints(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    List sprints in creation order. The selected one is marked with *.

    Examples:
        agileboard sprints list
    """

    async def _list(service: SyncService) -> None:
        selected = service.selected_sprint

        if json_output:
            print_json(
                [
                    {
                        **s.model_dump(mode="json"),
                        "selected": selected is not None and s.id == selected.id,
                    }
                    for s in service.sprints
                ]
            )
            return

        if not service.sprints:
            console.print("[dim]No sprints yet[/dim]")
            console.print("[cyan]→ Try:[/cyan] agileboard sprints create")
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("", width=1)
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Status", width=8)
        table.add_column("Start")
        table.add_column("End")
        table.add_column("Progress", justify="right")

        for sprint in service.sprints:
            color = STATUS_COLORS.get(sprint.status, "white")
            progress = sprint_progress(service.work_items, sprint.id)
            table.add_row(
                "*" if selected is not None and sprint.id == selected.id else "",
                sprint.id,
                escape(sprint.name),
                f"[{color}]{sprint.status.value}[/{color}]",
                str(sprint.start_date or "-"),
                str(sprint.end_date or "-"),
                f"{progress.done_points}/{progress.total_points} pts",
            )

        console.print(table)

    run_with_service(_list)


@app.command()
def create(
    name: str | None = typer.Option(
        None, "--name", "-n", help="Name (default: SPRINT <year> - NEW)"
    ),
    start: str | None = typer.Option(
        None, "--start", help="Start date (default: day after last sprint)"
    ),
    end: str | None = typer.Option(None, "--end", help="End date (default: start + sprint length)"),
    objective: str | None = typer.Option(None, "--objective", "-o", help="Sprint goal"),
    status: str | None = typer.Option(None, "--status", "-s", help="Planned, Active or Closed"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Create a sprint and select it.

    Examples:
        agileboard sprints create
        agileboard sprints create --name "Sprint 7" --start 2025-01-01 --end 2025-01-14
    """
    fields: dict[str, Any] = {}
    if name is not None:
        fields["name"] = name
    if start is not None:
        fields["start_date"] = parse_date_option(start, "--start")
    if end is not None:
        fields["end_date"] = parse_date_option(end, "--end")
    if objective is not None:
        fields["objective"] = objective
    if status is not None:
        fields["status"] = _parse_status(status)

    async def _create(service: SyncService) -> Sprint | None:
        return await service.create_sprint(fields)

    sprint = run_with_service(_create)
    if sprint is None:
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    update_project_config({"sprints": {"selected": sprint.id}})

    if json_output:
        print_json(sprint.model_dump(mode="json"))
    else:
        console.print(f"[green]Created:[/green] {escape(sprint.name)} ({sprint.id})")
        console.print(f"  {sprint.start_date or '-'} → {sprint.end_date or '-'}")


@app.command()
def update(
    sprint_id: str = typer.Argument(..., help="Sprint ID"),
    name: str | None = typer.Option(None, "--name", "-n", help="New name"),
    start: str | None = typer.Option(None, "--start", help="Start date ('' to clear)"),
    end: str | None = typer.Option(None, "--end", help="End date ('' to clear)"),
    objective: str | None = typer.Option(None, "--objective", "-o", help="Sprint goal"),
    status: str | None = typer.Option(None, "--status", "-s", help="Planned, Active or Closed"),
) -> None:
    """
    Update a sprint.

    Examples:
        agileboard sprints update <sprint-id> --status Active
    """
    changes: dict[str, Any] = {
        key: value
        for key, value in {
            "name": name,
            "start_date": start,
            "end_date": end,
            "objective": objective,
        }.items()
        if value is not None
    }
    if status is not None:
        changes["status"] = _parse_status(status)
    if not changes:
        print_error("Nothing to update", solution=f"agileboard sprints update {sprint_id} --help")
        raise typer.Exit(ExitCode.USER_ERROR)

    async def _update(service: SyncService) -> bool:
        _require_sprint(service, sprint_id)
        return await service.update_sprint(sprint_id, changes)

    fail_unless(run_with_service(_update))
    console.print(f"[green]Updated:[/green] {sprint_id}")


@app.command()
def delete(
    sprint_id: str = typer.Argument(..., help="Sprint ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Delete a sprint. Its items go back to the backlog (no sprint).

    Examples:
        agileboard sprints delete <sprint-id> --yes
    """
    if not yes:
        typer.confirm(f"Delete sprint {sprint_id} and unlink its items?", abort=True)

    async def _delete(service: SyncService) -> bool:
        _require_sprint(service, sprint_id)
        return await service.delete_sprint(sprint_id)

    fail_unless(run_with_service(_delete))
    console.print(f"[green]Deleted:[/green] {sprint_id}")


@app.command()
def select(
    sprint_id: str = typer.Argument(..., help="Sprint ID"),
) -> None:
    """
    Select the sprint that board and report commands default to.

    The choice is saved in .agileboard.json.

    Examples:
        agileboard sprints select <sprint-id>
    """

    async def _select(service: SyncService) -> Sprint:
        return _require_sprint(service, sprint_id)

    sprint = run_with_service(_select)
    path = update_project_config({"sprints": {"selected": sprint.id}})
    console.print(f"[green]Selected:[/green] {escape(sprint.name)}")
    console.print(f"[dim]Saved to {path}[/dim]")


@app.command("sync-dates")
def sync_dates(
    match: str | None = typer.Option(
        None,
        "--match",
        help="'contained' (start and end inside the sprint) or 'end_date'",
    ),
    exclusive: bool = typer.Option(
        False,
        "--exclusive",
        help="Sprint boundary days do not count as inside",
    ),
    overlap: str | None = typer.Option(
        None,
        "--overlap",
        help="When several sprints match: first, last or skip",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without applying it"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Move dated tasks and bugs into the sprint whose dates hold them.

    Defaults come from the date_sync section of the configuration.

    Examples:
        agileboard sprints sync-dates --dry-run
        agileboard sprints sync-dates --match end_date --overlap last
    """
    if match is not None and match not in ("contained", "end_date"):
        print_invalid_option_error(match, ["contained", "end_date"])
        raise typer.Exit(ExitCode.USER_ERROR)
    if overlap is not None and overlap not in ("first", "last", "skip"):
        print_invalid_option_error(overlap, ["first", "last", "skip"])
        raise typer.Exit(ExitCode.USER_ERROR)

    async def _sync(service: SyncService) -> list[SprintAssignment]:
        base = DateSyncPolicy.from_config(service.config.date_sync)
        overrides: dict[str, Any] = {}
        if match is not None:
            overrides["match"] = match
        if overlap is not None:
            overrides["overlap"] = overlap
        if exclusive:
            overrides["inclusive"] = False
        policy = base.model_copy(update=overrides)

        if dry_run:
            return plan_sprint_assignments(service.work_items, service.sprints, policy)
        return await service.sync_sprints_by_date(policy)

    assignments = run_with_service(_sync)

    if json_output:
        print_json([a.model_dump(mode="json") for a in assignments])
        return

    if not assignments:
        console.print("[dim]Every dated task is already in its sprint[/dim]")
        return

    verb = "Would move" if dry_run else "Moved"
    for assignment in assignments:
        previous = assignment.previous_sprint_id or "-"
        console.print(f"  {assignment.item_id}: {previous} → {assignment.sprint_id}")
    console.print(f"\n[green]{verb} {len(assignments)} items[/green]")
