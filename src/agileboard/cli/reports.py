"""
agileboard CLI - Report commands.

Read-only views over the snapshot: dashboard metrics, cost roll-up,
kanban board, Gantt rows and initiative timeline.
"""

import typer
from rich.columns import Columns
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agileboard.cli.errors import ExitCode, print_error
from agileboard.cli.runtime import console, print_json, run_with_service
from agileboard.core.items.models import ItemType
from agileboard.core.reports.board import HierarchyFilter, build_board, sprint_progress
from agileboard.core.reports.finance import by_month, cost_items, format_currency, summarize
from agileboard.core.reports.metrics import compute_metrics
from agileboard.core.reports.timeline import gantt_rows, initiative_timeline
from agileboard.core.sync import SyncService

app = typer.Typer(help="Dashboard reports")


@app.command()
def metrics(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Totals, delivery rate, velocity per sprint and load per person.

    Examples:
        agileboard report metrics
    """

    async def _metrics(service: SyncService) -> None:
        result = compute_metrics(service.work_items, service.sprints, service.users)
        if json_output:
            print_json(result.model_dump(mode="json"))
            return

        console.print("[bold]Indicators[/bold]")
        console.print(f"  Total items:     {result.total_items}")
        console.print(f"  Active sprints:  {result.active_sprints}")
        console.print(f"  Blocked items:   {result.blocked_items}")
        console.print(f"  Delivery rate:   {result.delivery_rate}%")

        if result.velocity:
            table = Table(title="Velocity", show_header=True, header_style="bold cyan")
            table.add_column("Sprint")
            table.add_column("Planned", justify="right")
            table.add_column("Delivered", justify="right")
            for point in result.velocity:
                table.add_row(escape(point.sprint_name), str(point.planned), str(point.delivered))
            console.print(table)

        if result.by_assignee:
            table = Table(title="By assignee", show_header=True, header_style="bold cyan")
            table.add_column("Name")
            table.add_column("Items", justify="right")
            table.add_column("Closed", justify="right")
            for load in result.by_assignee:
                table.add_row(escape(load.name), str(load.total), str(load.closed))
            console.print(table)

    run_with_service(_metrics)


@app.command()
def finance(
    parent: str | None = typer.Option(
        None, "--parent", help="Only costs under this workstream or initiative"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Cost lines summarized and bucketed by month.

    Examples:
        agileboard report finance
        agileboard report finance --parent A-4K2ZQ
    """

    async def _finance(service: SyncService) -> None:
        lines = cost_items(service.work_items, parent)
        summary = summarize(lines)
        months = by_month(lines)

        if json_output:
            print_json(
                {
                    "summary": summary.model_dump(mode="json"),
                    "months": [
                        {"month": b.month, "total": b.total, "items": [i.id for i in b.items]}
                        for b in months
                    ],
                    "items": [i.model_dump(mode="json") for i in lines],
                }
            )
            return

        console.print(f"[bold]Total budget:[/bold] {format_currency(summary.total)}")
        console.print(f"[bold]CAPEX:[/bold] {format_currency(summary.capex)}")
        console.print(f"[bold]Orders issued:[/bold] {round(summary.order_percentage)}%")
        console.print(f"[bold]Cost items:[/bold] {summary.count}")

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Month")
        table.add_column("Total", justify="right")
        table.add_column("Items")
        for bucket in months:
            if bucket.items:
                table.add_row(
                    bucket.month,
                    format_currency(bucket.total),
                    ", ".join(escape(i.cost_item or i.title) for i in bucket.items),
                )
        console.print(table)

    run_with_service(_finance)


@app.command()
def board(
    sprint: str | None = typer.Option(None, "--sprint", help="Sprint ID (default: selected)"),
    workstream: str | None = typer.Option(None, "--workstream", help="Workstream ID"),
    initiative: str | None = typer.Option(None, "--initiative", help="Initiative ID"),
    delivery: str | None = typer.Option(None, "--delivery", help="Delivery ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Kanban board of a sprint.

    Examples:
        agileboard report board
        agileboard report board --initiative A-4K2ZQ
    """
    hierarchy = HierarchyFilter(
        workstream_id=workstream, initiative_id=initiative, delivery_id=delivery
    )

    async def _board(service: SyncService) -> None:
        sprint_id = sprint or (service.selected_sprint.id if service.selected_sprint else None)
        if sprint_id is None:
            print_error("No sprint to show", solution="agileboard sprints create")
            raise typer.Exit(ExitCode.USER_ERROR)

        lanes = build_board(service.work_items, sprint_id, hierarchy)
        progress = sprint_progress(service.work_items, sprint_id)

        if json_output:
            print_json(
                {
                    "sprint_id": sprint_id,
                    "lanes": [
                        {
                            "column": lane.column.value,
                            "items": [i.model_dump(mode="json") for i in lane.items],
                        }
                        for lane in lanes
                    ],
                    "progress": {**progress.model_dump(mode="json"), "percent": progress.percent},
                }
            )
            return

        selected = service.get_sprint(sprint_id)
        title = escape(selected.name) if selected else sprint_id
        console.print(
            f"[bold]{title}[/bold] [dim]{progress.done_points}/{progress.total_points} pts "
            f"({progress.percent:.0f}%), {progress.blocked} blocked[/dim]"
        )
        panels = []
        for lane in lanes:
            body = "\n".join(
                f"{'[red]![/red] ' if i.blocked else ''}[dim]{i.id}[/dim] {escape(i.title)}"
                for i in lane.items
            )
            lane_title = f"{lane.column.value} ({lane.count})"
            panels.append(Panel(body or "[dim]-[/dim]", title=lane_title))
        console.print(Columns(panels, equal=True, expand=True))

    run_with_service(_board)


@app.command()
def gantt(
    workstream: str | None = typer.Option(None, "--workstream", help="Workstream ID"),
    initiative: str | None = typer.Option(None, "--initiative", help="Initiative ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Initiatives, their deliveries and tasks with dates and progress.

    Examples:
        agileboard report gantt --workstream A-4K2ZQ
    """

    async def _gantt(service: SyncService) -> None:
        rows = gantt_rows(service.work_items, workstream, initiative)
        if json_output:
            print_json(
                [
                    {
                        "level": r.level,
                        "progress": r.progress,
                        "item": r.item.model_dump(mode="json"),
                    }
                    for r in rows
                ]
            )
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Item", overflow="fold")
        table.add_column("Start")
        table.add_column("End")
        table.add_column("%", justify="right")
        indent = {"initiative": "", "delivery": "  ", "task": "    "}
        for row in rows:
            style = "bold" if row.level == "initiative" else ""
            table.add_row(
                f"{indent[row.level]}[{style or 'default'}]{escape(row.item.title)}[/]",
                str(row.item.start_date or "-"),
                str(row.item.end_date or "-"),
                str(row.progress),
            )
        console.print(table)

    run_with_service(_gantt)


@app.command()
def timeline(
    initiative_id: str = typer.Argument(..., help="Initiative ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Dated deliveries, tasks and bugs of an initiative in end date order.

    Examples:
        agileboard report timeline A-4K2ZQ
    """

    async def _timeline(service: SyncService) -> None:
        initiative = service.get_work_item(initiative_id)
        if initiative is None or initiative.type != ItemType.INITIATIVE:
            print_error(
                f"Initiative not found: {initiative_id}",
                solution="agileboard items list --type Initiative",
            )
            raise typer.Exit(ExitCode.USER_ERROR)

        view = initiative_timeline(service.work_items, initiative_id)
        if json_output:
            print_json(view.model_dump(mode="json"))
            return

        console.print(f"[bold]{escape(initiative.title)}[/bold] [dim]{view.progress}% closed[/dim]")
        for item in view.items:
            mark = "[green]✓[/green]" if item.status.value == "Closed" else "•"
            console.print(f"  {mark} {item.end_date}  {item.type.value:<8} {escape(item.title)}")

    run_with_service(_timeline)
