"""
agileboard CLI - Work item commands.

Backlog listing, creation, updates, kanban moves and attachments.
"""

import mimetypes
from pathlib import Path
from typing import Any

import typer
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from agileboard.cli.errors import (
    ExitCode,
    print_error,
    print_invalid_option_error,
    print_item_not_found_error,
)
from agileboard.cli.runtime import (
    console,
    fail_unless,
    parse_assignments,
    parse_date_option,
    print_json,
    run_with_service,
)
from agileboard.core.items.models import (
    BoardColumn,
    FileUpload,
    ItemStatus,
    ItemType,
    WorkItem,
)
from agileboard.core.reports.backlog import (
    SORT_KEYS,
    BacklogNode,
    build_tree,
    child_fields,
    filter_items,
    rollup,
    sort_items,
)
from agileboard.core.sync import SyncService

app = typer.Typer(help="Manage work items (backlog and board)")

STATUS_COLORS = {
    ItemStatus.NEW: "white",
    ItemStatus.ACTIVE: "yellow",
    ItemStatus.RESOLVED: "cyan",
    ItemStatus.CLOSED: "green",
}


def _parse_type(value: str) -> ItemType:
    for item_type in ItemType:
        if value.lower() == item_type.value.lower():
            return item_type
    print_invalid_option_error(value, [t.value for t in ItemType])
    raise typer.Exit(ExitCode.USER_ERROR)


def _parse_column(value: str) -> BoardColumn:
    for column in BoardColumn:
        if value.lower() in (column.value.lower(), column.name.lower()):
            return column
    print_invalid_option_error(value, [c.value for c in BoardColumn])
    raise typer.Exit(ExitCode.USER_ERROR)


def _require_item(service: SyncService, item_id: str) -> WorkItem:
    item = service.get_work_item(item_id)
    if item is None:
        print_item_not_found_error(item_id)
        raise typer.Exit(ExitCode.USER_ERROR)
    return item


def _assignee_name(service: SyncService, user_id: str | None) -> str:
    if not user_id:
        return "-"
    for user in service.users:
        if user.id == user_id:
            return user.name
    # Dangling assignees render as unassigned
    return "-"


def _add_tree_nodes(branch: Tree, nodes: list[BacklogNode], service: SyncService) -> None:
    for node in nodes:
        item = node.item
        totals = rollup(item, service.work_items)
        label = (
            f"[dim]{item.id}[/dim] [bold]{item.type.value}[/bold] {escape(item.title)} "
            f"[dim]({totals.total_effort} pts, {totals.progress:.0f}%)[/dim]"
        )
        if item.blocked:
            label += " [red]BLOCKED[/red]"
        _add_tree_nodes(branch.add(label), node.children, service)


@app.command("list")
def list_items(
    text: str | None = typer.Option(
        None, "--filter", "-f", help="Title contains (case-insensitive)"
    ),
    sort: str | None = typer.Option(
        None,
        "--sort",
        "-s",
        help=f"Sort by: {', '.join(SORT_KEYS)}",
    ),
    descending: bool = typer.Option(False, "--desc", help="Sort descending"),
    item_type: str | None = typer.Option(None, "--type", "-t", help="Only this item type"),
    sprint: str | None = typer.Option(None, "--sprint", help="Only items in this sprint"),
    tree: bool = typer.Option(False, "--tree", help="Show the hierarchy"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    List work items.

    Examples:
        agileboard items list
        agileboard items list --filter login --sort priority
        agileboard items list --tree
        agileboard items list --type Task --sprint <sprint-id> --json
    """
    if sort is not None and sort not in SORT_KEYS:
        print_invalid_option_error(sort, list(SORT_KEYS))
        raise typer.Exit(ExitCode.USER_ERROR)
    wanted_type = _parse_type(item_type) if item_type else None

    async def _list(service: SyncService) -> None:
        items = filter_items(service.work_items, text)
        if wanted_type is not None:
            items = [i for i in items if i.type == wanted_type]
        if sprint:
            items = [i for i in items if i.sprint_id == sprint]
        if sort:
            items = sort_items(
                items, sort, descending, users=service.users, all_items=service.work_items
            )

        if json_output:
            print_json([i.model_dump(mode="json") for i in items])
            return

        if not items:
            console.print("[dim]No work items found[/dim]")
            return

        if tree:
            root = Tree("[bold cyan]Backlog[/bold cyan]")
            _add_tree_nodes(root, build_tree(items), service)
            console.print(root)
            return

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Type")
        table.add_column("P", width=2, justify="center")
        table.add_column("Status", width=9)
        table.add_column("Pts", justify="right")
        table.add_column("Assignee")
        table.add_column("Title", overflow="fold")

        for item in items:
            color = STATUS_COLORS.get(item.status, "white")
            title = escape(item.title)
            if item.blocked:
                title += " [red](blocked)[/red]"
            table.add_row(
                item.id,
                item.type.value,
                item.priority.value[1],
                f"[{color}]{item.status.value}[/{color}]",
                str(item.effort),
                _assignee_name(service, item.assignee_id),
                title,
            )

        console.print(table)
        console.print(f"\n[dim]Total: {len(items)} items[/dim]")

    run_with_service(_list)


@app.command()
def show(
    item_id: str = typer.Argument(..., help="Work item ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Show one work item with its effort roll-up.

    Examples:
        agileboard items show A-4K2ZQ
    """

    async def _show(service: SyncService) -> None:
        item = _require_item(service, item_id)
        totals = rollup(item, service.work_items)

        if json_output:
            data = item.model_dump(mode="json")
            data["rollup"] = totals.model_dump(mode="json")
            print_json(data)
            return

        console.print(f"[bold cyan]{item.id}[/bold cyan] - {escape(item.title)}")
        console.print(f"[dim]Type:[/dim] {item.type.value}")
        console.print(f"[dim]Status:[/dim] {item.status.value} ({item.column.value})")
        console.print(f"[dim]Priority:[/dim] {item.priority.value}")
        console.print(f"[dim]Effort:[/dim] {item.effort} pts")
        console.print(
            f"[dim]Roll-up:[/dim] {totals.total_effort} pts, {totals.progress:.0f}% complete"
        )
        console.print(f"[dim]Assignee:[/dim] {_assignee_name(service, item.assignee_id)}")

        if item.parent_id:
            console.print(f"[dim]Parent:[/dim] {item.parent_id}")
        if item.sprint_id:
            sprint = service.get_sprint(item.sprint_id)
            console.print(f"[dim]Sprint:[/dim] {escape(sprint.name) if sprint else item.sprint_id}")
        if item.start_date or item.end_date:
            console.print(f"[dim]Dates:[/dim] {item.start_date or '-'} → {item.end_date or '-'}")
        if item.blocked:
            console.print(f"[red]Blocked:[/red] {escape(item.block_reason or 'no reason given')}")
        if item.kpi:
            console.print(f"[dim]KPI:[/dim] {escape(item.kpi)}")
        if item.cost_value is not None or item.cost_item:
            cost_type = item.cost_type.value if item.cost_type else "-"
            console.print(f"[dim]Cost:[/dim] {item.cost:,.2f} ({cost_type})")
        if item.attachments:
            console.print("[dim]Attachments:[/dim]")
            for attachment in item.attachments:
                console.print(f"  • {escape(attachment.name)} [dim]{attachment.id}[/dim]")
        if item.description:
            console.print(f"\n[bold]Description:[/bold]\n{escape(item.description)}")

    run_with_service(_show)


@app.command()
def create(
    title: str = typer.Argument(..., help="Item title"),
    item_type: str = typer.Option(
        "Delivery", "--type", "-t", help="Workstream, Initiative, Delivery, Task or Bug"
    ),
    priority: str | None = typer.Option(None, "--priority", "-p", help="P1 (highest) to P4"),
    effort: int | None = typer.Option(None, "--effort", "-e", min=0, help="Effort in points"),
    parent: str | None = typer.Option(None, "--parent", help="Parent item ID"),
    sprint: str | None = typer.Option(None, "--sprint", help="Sprint ID"),
    assignee: str | None = typer.Option(None, "--assignee", "-a", help="User ID"),
    description: str | None = typer.Option(None, "--description", "-d", help="Description"),
    start: str | None = typer.Option(None, "--start", help="Start date (YYYY-MM-DD)"),
    end: str | None = typer.Option(None, "--end", help="End date (YYYY-MM-DD)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """
    Create a work item.

    A child created with --parent inherits the parent's workstream.

    Examples:
        agileboard items create "Payments" --type Workstream
        agileboard items create "Card checkout" --type Delivery --parent A-4K2ZQ
        agileboard items create "Fix rounding" --type Bug --priority P1 --effort 3
    """
    resolved_type = _parse_type(item_type)
    fields: dict[str, Any] = {"type": resolved_type, "title": title}
    optional = {
        "priority": priority,
        "effort": effort,
        "sprint_id": sprint,
        "assignee_id": assignee,
        "description": description,
        "start_date": parse_date_option(start, "--start"),
        "end_date": parse_date_option(end, "--end"),
    }
    fields.update({key: value for key, value in optional.items() if value is not None})

    async def _create(service: SyncService) -> WorkItem | None:
        if parent:
            parent_item = _require_item(service, parent)
            fields.update(
                {
                    key: value
                    for key, value in child_fields(parent_item, resolved_type).items()
                    if key not in ("title", "type")
                }
            )
        return await service.create_work_item(fields)

    item = run_with_service(_create)
    if item is None:
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if json_output:
        print_json(item.model_dump(mode="json"))
    else:
        console.print(f"[green]Created:[/green] {item.id}")
        if item.parent_id:
            console.print(f"  Parent: {item.parent_id}")


@app.command()
def update(
    item_id: str = typer.Argument(..., help="Work item ID"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    description: str | None = typer.Option(None, "--description", "-d", help="New description"),
    priority: str | None = typer.Option(None, "--priority", "-p", help="P1 to P4"),
    effort: int | None = typer.Option(None, "--effort", "-e", min=0, help="Effort in points"),
    status: str | None = typer.Option(
        None, "--status", "-s", help="New, Active, Resolved or Closed"
    ),
    assignee: str | None = typer.Option(None, "--assignee", "-a", help="User ID ('' to unassign)"),
    sprint: str | None = typer.Option(None, "--sprint", help="Sprint ID ('' to remove)"),
    parent: str | None = typer.Option(None, "--parent", help="Parent item ID ('' to detach)"),
    start: str | None = typer.Option(None, "--start", help="Start date ('' to clear)"),
    end: str | None = typer.Option(None, "--end", help="End date ('' to clear)"),
    block: str | None = typer.Option(None, "--block", help="Mark blocked with this reason"),
    unblock: bool = typer.Option(False, "--unblock", help="Clear the blocked flag"),
    assignments: list[str] | None = typer.Option(
        None,
        "--set",
        help="Any other field as field=value (can be repeated), e.g. --set cost_value=1500",
    ),
) -> None:
    """
    Update a work item's fields.

    Only the given fields are sent. The change shows locally at once and
    is reverted by a reload if the backend rejects it.

    Examples:
        agileboard items update A-4K2ZQ --title "New title" --effort 5
        agileboard items update A-4K2ZQ --sprint ""
        agileboard items update A-4K2ZQ --block "Waiting on vendor"
        agileboard items update A-4K2ZQ --set cost_type=CAPEX --set cost_value=1500
    """
    changes: dict[str, Any] = parse_assignments(assignments)
    options = {
        "title": title,
        "description": description,
        "priority": priority,
        "effort": effort,
        "status": status,
        "assignee_id": assignee,
        "sprint_id": sprint,
        "parent_id": parent,
        "start_date": start,
        "end_date": end,
    }
    changes.update({key: value for key, value in options.items() if value is not None})
    if block is not None:
        changes.update({"blocked": True, "block_reason": block})
    elif unblock:
        changes.update({"blocked": False, "block_reason": ""})

    if not changes:
        print_error("Nothing to update", solution=f"agileboard items update {item_id} --help")
        raise typer.Exit(ExitCode.USER_ERROR)

    async def _update(service: SyncService) -> bool:
        _require_item(service, item_id)
        return await service.update_work_item(item_id, changes)

    fail_unless(run_with_service(_update))
    console.print(f"[green]Updated:[/green] {item_id} ({', '.join(sorted(changes))})")


@app.command()
def move(
    item_id: str = typer.Argument(..., help="Work item ID"),
    column: str = typer.Argument(..., help="New, To Do, Doing or Done"),
) -> None:
    """
    Move an item to a board lane. The status follows the lane.

    Examples:
        agileboard items move A-4K2ZQ Doing
        agileboard items move A-4K2ZQ "To Do"
    """
    target = _parse_column(column)

    async def _move(service: SyncService) -> bool:
        _require_item(service, item_id)
        return await service.move_to_column(item_id, target)

    fail_unless(run_with_service(_move))
    console.print(f"[green]Moved:[/green] {item_id} → {target.value}")


@app.command()
def delete(
    item_id: str = typer.Argument(..., help="Work item ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Delete a work item. Its children keep pointing at the removed ID.

    Examples:
        agileboard items delete A-4K2ZQ --yes
    """
    if not yes:
        typer.confirm(f"Delete {item_id}?", abort=True)

    async def _delete(service: SyncService) -> bool:
        _require_item(service, item_id)
        return await service.delete_work_item(item_id)

    fail_unless(run_with_service(_delete))
    console.print(f"[green]Deleted:[/green] {item_id}")


@app.command()
def attach(
    item_id: str = typer.Argument(..., help="Work item ID"),
    path: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="File to attach"
    ),
    mime_type: str | None = typer.Option(
        None, "--mime-type", help="Override the guessed MIME type"
    ),
) -> None:
    """
    Upload a file and attach it to a work item.

    Examples:
        agileboard items attach A-4K2ZQ ./mockup.png
    """
    guessed, _ = mimetypes.guess_type(path.name)
    upload = FileUpload(
        name=path.name,
        content=path.read_bytes(),
        mime_type=mime_type or guessed or "application/octet-stream",
    )

    async def _attach(service: SyncService) -> bool:
        _require_item(service, item_id)
        return await service.upload_attachment(item_id, upload) is not None

    fail_unless(run_with_service(_attach))
    console.print(f"[green]Attached:[/green] {path.name} → {item_id}")


@app.command()
def detach(
    item_id: str = typer.Argument(..., help="Work item ID"),
    attachment_id: str = typer.Argument(..., help="Attachment ID (its storage path)"),
) -> None:
    """
    Remove an attachment from a work item's list.

    The stored file itself stays in the bucket.

    Examples:
        agileboard items detach A-4K2ZQ attachments/A-4K2ZQ/1700000000000-mockup.png
    """

    async def _detach(service: SyncService) -> bool:
        item = _require_item(service, item_id)
        if not any(a.id == attachment_id for a in item.attachments):
            print_error(
                f"Attachment not found: {attachment_id}",
                solution=f"agileboard items show {item_id}",
            )
            raise typer.Exit(ExitCode.USER_ERROR)
        return await service.remove_attachment(item_id, attachment_id)

    fail_unless(run_with_service(_detach))
    console.print(f"[green]Detached:[/green] {attachment_id}")
