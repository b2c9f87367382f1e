"""Main CLI application for WorkPulse"""

import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, date
from pathlib import Path
from typing import Optional

import click
import questionary
from rich import box
from rich.columns import Columns
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .dashboard import build_dashboard
from .db import DataImportError, export_data, export_filename, import_data
from .gamification import GamificationResult
from .metrics import cumulative_metrics, format_breakeven, metric_summaries
from .reports import (
    PRESETS,
    generate_report,
    preset_options,
    render_markdown,
    report_filename,
    to_view_model,
)
from .snapshots import generate_snapshot, snapshots_newest_first
from .store import (
    activity_feed,
    add_project,
    add_task,
    board,
    delete_metric,
    delete_project,
    delete_task,
    last_used_project,
    log_activity,
    project_progress,
    reorder_task,
    resolve,
    set_metric,
    transition_task,
    update_project,
)
from .sync import SyncError
from .utils import (
    ACTIVITY_CATEGORIES,
    PROJECT_STATUSES,
    TASK_STATUSES,
    THEMES,
    VIEWS,
    Config,
    NotFoundError,
    ValidationError,
    format_date,
    format_date_short,
    format_datetime,
    get_due_urgency,
    get_relative_date,
    get_relative_time,
    get_week_bounds,
    parse_date,
    truncate_string,
)
from .workspace import Workspace

console = Console()

STATUS_COLORS = {
    "active": "green",
    "on-hold": "yellow",
    "archived": "dim",
    "completed": "blue",
    "backlog": "white",
    "this-week": "cyan",
    "in-progress": "yellow",
    "blocked": "red",
    "done": "green",
}

URGENCY_COLORS = {"overdue": "red", "today": "yellow", "this-week": "cyan", "future": "dim"}


def _colored(status: str) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status}[/{color}]"


def _short_id(record_id: str) -> str:
    return record_id[:8]


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(), help="Custom config file path")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[str], verbose: bool):
    """WorkPulse - personal productivity tracker

    Track projects, tasks, activity logs and time saved, and generate
    status reports.
    """
    ctx.ensure_object(dict)
    config = Config(config_path)
    ctx.obj["config"] = config

    level = logging.DEBUG if verbose else getattr(logging, str(config.get("log_level")).upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _get_workspace(ctx) -> Workspace:
    if "workspace" not in ctx.obj:
        ctx.obj["workspace"] = Workspace(ctx.obj["config"])
    return ctx.obj["workspace"]


def _print_notices(workspace: Workspace) -> None:
    for notice in workspace.notices:
        console.print(f"[cyan]ℹ[/cyan] {notice}")
    workspace.notices.clear()


@contextmanager
def open_workspace(ctx, save: bool = True):
    """Open the workspace for one command

    Validation and lookup errors are reported and leave stored data untouched;
    otherwise the store is saved once when the command finishes.
    """
    workspace = _get_workspace(ctx)
    workspace.open()
    try:
        yield workspace
    except (ValidationError, NotFoundError, DataImportError, SyncError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {escape(str(e))}")
        workspace.close()
        _print_notices(workspace)
        ctx.exit(1)
    else:
        if save:
            workspace.save()
        workspace.close()
        _print_notices(workspace)


def _show_gamification(result: Optional[GamificationResult]) -> None:
    if result is None:
        return
    console.print(
        f"  +{result.points} karma · {result.level} · 🔥 {result.streak}-day streak"
    )
    for notice in result.notices:
        console.print(f"  [bold magenta]🎉 {notice}[/bold magenta]")


@cli.command()
@click.option("--remote-url", help="SQLAlchemy URL of the remote document store")
@click.option("--user-id", help="User identity for remote sync")
@click.option("--name", "user_name", help="Your name, shown on reports")
@click.pass_context
def init(ctx, remote_url: Optional[str], user_id: Optional[str], user_name: Optional[str]):
    """Initialize WorkPulse storage and optional remote sync"""

    config = ctx.obj["config"]
    updates = {}
    if remote_url:
        updates["remote_url"] = remote_url
    if user_id:
        updates["user_id"] = user_id
    if updates:
        config.update(updates)
    else:
        config.save()

    with open_workspace(ctx) as workspace:
        if user_name:
            workspace.store.settings.user_name = user_name.strip()
        workspace.store.settings.onboarding_complete = True

    console.print("\n[bold green]✓[/bold green] Data stored at:", config.get("db_path"))
    console.print("[bold green]✓[/bold green] Config file created at:", config.config_path)
    if config.get("remote_url") and config.get("user_id"):
        console.print(f"[bold green]✓[/bold green] Syncing as [bold]{config.get('user_id')}[/bold]")

    console.print("\n[bold cyan]Next steps:[/bold cyan]")
    console.print('  • Run [bold]workpulse project add "Name"[/bold] to add a project')
    console.print('  • Run [bold]workpulse task add <project> "Task"[/bold] to add tasks')
    console.print('  • Run [bold]workpulse log "What you did"[/bold] to log activity')


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def dashboard(ctx):
    """Show the dashboard summary"""

    with open_workspace(ctx, save=False) as workspace:
        store = workspace.store
        data = build_dashboard(store)

        counts = data["task_counts"]
        level_line = f"{data['karma']} karma · {data['karma_level']}"
        if data["next_level"]:
            level_line += f" ({data['points_to_next_level']} to {data['next_level']})"

        info = f"""[bold]Active projects:[/bold] {data['active_projects']}
[bold]Tasks:[/bold] {counts['backlog']} backlog · {counts['this-week']} this week · {counts['in-progress']} in progress · {counts['blocked']} blocked · {counts['done']} done
[bold]Completed this week:[/bold] {data['completed_this_week']}
[bold]Activities today:[/bold] {data['activities_today']}
[bold]Time saved:[/bold] {data['hours_saved_per_week']:.1f} h/week

[bold cyan]Momentum:[/bold cyan]
  • Streak: 🔥 {data['streak']} days (longest {data['longest_streak']})
  • {level_line}"""

        name = store.settings.user_name
        console.print()
        console.print(
            Panel(
                info,
                title=f"[bold]Dashboard{' - ' + escape(name) if name else ''}[/bold]",
                border_style="cyan",
                box=box.ROUNDED,
            )
        )

        if data["overdue"] or data["due_today"]:
            table = Table(title="Needs Attention", box=box.ROUNDED, header_style="bold cyan")
            table.add_column("ID", style="dim")
            table.add_column("Task", style="bold")
            table.add_column("Project")
            table.add_column("Due")
            for task in data["overdue"] + data["due_today"]:
                urgency = get_due_urgency(task.due_date)
                color = URGENCY_COLORS.get(urgency, "white")
                table.add_row(
                    _short_id(task.id),
                    escape(task.name),
                    escape(store.project_name(task.project_id) or "-"),
                    f"[{color}]{format_date(task.due_date)}[/{color}]",
                )
            console.print(table)

        if data["project_progress"]:
            table = Table(title="Project Progress", box=box.ROUNDED, header_style="bold cyan")
            table.add_column("Project", style="bold")
            table.add_column("Status")
            table.add_column("Done", justify="right")
            table.add_column("Progress", justify="right")
            for row in data["project_progress"]:
                table.add_row(
                    escape(row["name"]),
                    _colored(row["status"]),
                    f"{row['done']}/{row['total']}",
                    f"{row['percent']}%",
                )
            console.print(table)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@cli.group()
def project():
    """Manage projects"""
    pass


@project.command("add")
@click.argument("name")
@click.option("--description", "-d", default="", help="Project description")
@click.option("--priority", "-p", type=int, default=3, help="Priority (1-5)")
@click.option(
    "--status", type=click.Choice(PROJECT_STATUSES), default="active", help="Project status"
)
@click.option("--tags", help="Comma-separated tags")
@click.option("--color", help="Display color")
@click.pass_context
def project_add(ctx, name, description, priority, status, tags, color):
    """Add a new project"""

    with open_workspace(ctx) as workspace:
        proj = add_project(
            workspace.store,
            name,
            description=description,
            status=status,
            priority=priority,
            tags=tags,
            color=color,
        )

        console.print(f"\n[bold green]✓[/bold green] Added project: [bold]{escape(proj.name)}[/bold]")
        console.print(f"  ID: {_short_id(proj.id)}")
        console.print(f"  Status: {proj.status}")
        console.print(f"  Priority: {proj.priority}")


@project.command("list")
@click.option("--status", type=click.Choice(PROJECT_STATUSES), help="Filter by status")
@click.option(
    "--sort", type=click.Choice(["priority", "name", "created"]), default="priority", help="Sort order"
)
@click.pass_context
def project_list(ctx, status: Optional[str], sort: str):
    """List all projects"""

    with open_workspace(ctx, save=False) as workspace:
        store = workspace.store
        projects = [p for p in store.projects if status is None or p.status == status]

        if sort == "priority":
            projects.sort(key=lambda p: p.priority, reverse=True)
        elif sort == "name":
            projects.sort(key=lambda p: p.name.lower())
        else:
            projects.sort(key=lambda p: p.created_at)

        if not projects:
            console.print("\n[yellow]No projects found. Add one with 'workpulse project add'.[/yellow]")
            return

        table = Table(
            title=f"Projects ({len(projects)})",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("ID", style="dim")
        table.add_column("Name", style="bold")
        table.add_column("Status")
        table.add_column("Priority", justify="center")
        table.add_column("Tasks", justify="right")
        table.add_column("Tags", style="dim")

        for proj in projects:
            done, total = project_progress(store, proj.id)
            table.add_row(
                _short_id(proj.id),
                escape(proj.name),
                _colored(proj.status),
                str(proj.priority),
                f"{done}/{total}",
                escape(", ".join(proj.tags)),
            )

        console.print()
        console.print(table)


@project.command("show")
@click.argument("ref")
@click.pass_context
def project_show(ctx, ref: str):
    """Show detailed project information"""

    with open_workspace(ctx, save=False) as workspace:
        store = workspace.store
        proj = resolve(store.projects, ref, "project")

        tasks = [t for t in store.tasks if t.project_id == proj.id]
        open_tasks = sum(1 for t in tasks if t.status != "done")
        activities = sum(1 for a in store.activities if a.project_id == proj.id)
        metric = store.get_metric_for_project(proj.id)

        info = f"""[bold]Name:[/bold] {escape(proj.name)}
[bold]ID:[/bold] {proj.id}
[bold]Status:[/bold] {_colored(proj.status)}
[bold]Priority:[/bold] {proj.priority}
[bold]Tags:[/bold] {escape(', '.join(proj.tags)) or '-'}

[bold cyan]Statistics:[/bold cyan]
  • Tasks: {open_tasks} open / {len(tasks)} total
  • Activities: {activities}"""

        if metric is not None:
            summary = metric_summaries(store)
            row = next(r for r in summary if r["metric_id"] == metric.id)
            info += (
                f"\n  • Time saved: {row['hours_saved_per_week']:.1f} h/week, "
                f"ROI {row['roi']:.1f}x, breakeven {format_breakeven(row['breakeven_weeks'])}"
            )

        info += f"""

[bold]Created:[/bold] {format_datetime(proj.created_at)}
[bold]Updated:[/bold] {format_datetime(proj.updated_at)}"""
        if proj.completed_at:
            info += f"\n[bold]Completed:[/bold] {format_datetime(proj.completed_at)}"
        if proj.description:
            info = f"{info}\n\n[bold]Description:[/bold]\n{escape(proj.description)}"

        console.print()
        console.print(
            Panel(
                info,
                title=f"[bold]Project: {escape(proj.name)}[/bold]",
                border_style="cyan",
                box=box.ROUNDED,
            )
        )


@project.command("update")
@click.argument("ref")
@click.option("--name", help="Rename the project")
@click.option("--description", "-d", help="Update description")
@click.option("--status", type=click.Choice(PROJECT_STATUSES), help="Update status")
@click.option("--priority", "-p", type=int, help="Update priority (1-5)")
@click.option("--tags", help="Replace tags (comma-separated)")
@click.option("--color", help="Update display color")
@click.pass_context
def project_update(ctx, ref, **options):
    """Update project properties"""

    changes = {key: value for key, value in options.items() if value is not None}
    if not changes:
        console.print("\n[yellow]No updates specified[/yellow]")
        return

    with open_workspace(ctx) as workspace:
        proj = resolve(workspace.store.projects, ref, "project")
        update_project(workspace.store, proj.id, **changes)

        console.print(f"\n[bold green]✓[/bold green] Updated project: [bold]{escape(proj.name)}[/bold]")
        for key in changes:
            console.print(f"  • {key} → {escape(str(getattr(proj, key)))}")


@project.command("delete")
@click.argument("ref")
@click.option("--force", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def project_delete(ctx, ref: str, force: bool):
    """Delete a project with its tasks, activities and metric"""

    with open_workspace(ctx) as workspace:
        store = workspace.store
        proj = resolve(store.projects, ref, "project")

        tasks_count = sum(1 for t in store.tasks if t.project_id == proj.id)
        activities_count = sum(1 for a in store.activities if a.project_id == proj.id)

        console.print(
            f"\n[bold yellow]⚠ Warning:[/bold yellow] About to delete project: [bold]{escape(proj.name)}[/bold]"
        )
        console.print("  This will remove:")
        console.print(f"    • {tasks_count} tasks")
        console.print(f"    • {activities_count} activities")
        console.print(f"    • {1 if store.get_metric_for_project(proj.id) else 0} metric")

        if not force:
            confirm = questionary.confirm(
                f"Are you sure you want to delete '{proj.name}'?", default=False
            ).ask()

            if not confirm:
                console.print("\n[yellow]Deletion cancelled.[/yellow]")
                return

        removed = delete_project(store, proj.id)

        console.print(f"\n[bold green]✓[/bold green] Deleted project: [bold]{escape(proj.name)}[/bold]")
        console.print(
            f"  Removed {removed['tasks']} tasks, {removed['activities']} activities, "
            f"{removed['metrics']} metrics"
        )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@cli.group()
def task():
    """Manage tasks"""
    pass


@task.command("add")
@click.argument("project_ref")
@click.argument("name")
@click.option("--description", "-d", default="", help="Task description")
@click.option("--status", type=click.Choice(TASK_STATUSES), default="backlog", help="Initial column")
@click.option("--priority", "-p", type=int, default=3, help="Priority (1-5)")
@click.option("--due", help="Due date (YYYY-MM-DD)")
@click.option("--tags", help="Comma-separated tags")
@click.option("--note", help="Blocker note when created as blocked")
@click.pass_context
def task_add(ctx, project_ref, name, description, status, priority, due, tags, note):
    """Add a task to a project"""

    with open_workspace(ctx) as workspace:
        store = workspace.store
        proj = resolve(store.projects, project_ref, "project")
        new_task, result = add_task(
            store,
            name,
            proj.id,
            description=description,
            status=status,
            priority=priority,
            due_date=due,
            tags=tags,
            blocker_note=note or "",
        )

        console.print(f"\n[bold green]✓[/bold green] Added task: [bold]{escape(new_task.name)}[/bold]")
        console.print(f"  ID: {_short_id(new_task.id)}")
        console.print(f"  Project: {escape(proj.name)}")
        console.print(f"  Status: {_colored(new_task.status)}")
        if new_task.due_date:
            console.print(f"  Due: {format_date(new_task.due_date)}")
        _show_gamification(result)


@task.command("list")
@click.option("--project", "project_ref", help="Filter by project")
@click.option("--status", type=click.Choice(TASK_STATUSES), help="Filter by status")
@click.option("--tag", help="Filter by tag")
@click.pass_context
def task_list(ctx, project_ref: Optional[str], status: Optional[str], tag: Optional[str]):
    """List tasks"""

    with open_workspace(ctx, save=False) as workspace:
        store = workspace.store
        tasks = list(store.tasks)
        if project_ref:
            proj = resolve(store.projects, project_ref, "project")
            tasks = [t for t in tasks if t.project_id == proj.id]
        if status:
            tasks = [t for t in tasks if t.status == status]
        if tag:
            tasks = [t for t in tasks if tag in t.tags]

        if not tasks:
            console.print("\n[yellow]No tasks found.[/yellow]")
            return

        order = {s: i for i, s in enumerate(TASK_STATUSES)}
        tasks.sort(key=lambda t: (order.get(t.status, 99), t.sort_order))

        table = Table(title=f"Tasks ({len(tasks)})", box=box.ROUNDED, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Task", style="bold")
        table.add_column("Project")
        table.add_column("Status")
        table.add_column("Priority", justify="center")
        table.add_column("Due")

        for t in tasks:
            urgency = get_due_urgency(t.due_date) if t.status != "done" else ""
            color = URGENCY_COLORS.get(urgency, "white")
            due = f"[{color}]{format_date_short(t.due_date)}[/{color}]" if t.due_date else ""
            table.add_row(
                _short_id(t.id),
                escape(truncate_string(t.name, 60)),
                escape(store.project_name(t.project_id) or "-"),
                _colored(t.status),
                str(t.priority),
                due,
            )

        console.print()
        console.print(table)


@task.command("move")
@click.argument("task_ref")
@click.argument("status", type=click.Choice(TASK_STATUSES))
@click.option("--position", type=int, help="Position within the column (0 = top)")
@click.option("--note", help="Blocker note when moving to blocked")
@click.pass_context
def task_move(ctx, task_ref: str, status: str, position: Optional[int], note: Optional[str]):
    """Move a task to another column"""

    with open_workspace(ctx) as workspace:
        store = workspace.store
        t = resolve(store.tasks, task_ref, "task")
        if position is None:
            result = transition_task(store, t.id, status, blocker_note=note)
        else:
            if note is not None and status == "blocked":
                t.blocker_note = note.strip()
            result = reorder_task(store, t.id, status, position)

        console.print(
            f"\n[bold green]✓[/bold green] Moved [bold]{escape(t.name)}[/bold] to {_colored(t.status)}"
        )
        _show_gamification(result)


@task.command("done")
@click.argument("task_ref")
@click.pass_context
def task_done(ctx, task_ref: str):
    """Mark a task as done"""

    with open_workspace(ctx) as workspace:
        store = workspace.store
        t = resolve(store.tasks, task_ref, "task")
        if t.status == "done":
            console.print(f"\n[bold yellow]Warning:[/bold yellow] Task {_short_id(t.id)} is already done")
            return

        result = transition_task(store, t.id, "done")
        console.print(f"\n[bold green]✓[/bold green] Completed task: [bold]{escape(t.name)}[/bold]")
        _show_gamification(result)


@task.command("block")
@click.argument("task_ref")
@click.argument("note")
@click.pass_context
def task_block(ctx, task_ref: str, note: str):
    """Mark a task as blocked with a note"""

    with open_workspace(ctx) as workspace:
        t = resolve(workspace.store.tasks, task_ref, "task")
        transition_task(workspace.store, t.id, "blocked", blocker_note=note)
        console.print(f"\n[bold red]⛔[/bold red] Blocked [bold]{escape(t.name)}[/bold]: {escape(t.blocker_note)}")


@task.command("delete")
@click.argument("task_ref")
@click.option("--force", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def task_delete(ctx, task_ref: str, force: bool):
    """Delete a task"""

    with open_workspace(ctx) as workspace:
        t = resolve(workspace.store.tasks, task_ref, "task")
        if not force:
            confirm = questionary.confirm(f"Delete task '{t.name}'?", default=False).ask()
            if not confirm:
                console.print("\n[yellow]Deletion cancelled.[/yellow]")
                return
        delete_task(workspace.store, t.id)
        console.print(f"\n[bold green]✓[/bold green] Deleted task: [bold]{escape(t.name)}[/bold]")


@cli.command("board")
@click.option("--project", "project_ref", help="Only show one project")
@click.pass_context
def board_view(ctx, project_ref: Optional[str]):
    """Show the kanban board"""

    with open_workspace(ctx, save=False) as workspace:
        store = workspace.store
        project_id = resolve(store.projects, project_ref, "project").id if project_ref else None

        panels = []
        for status, tasks in board(store).items():
            if project_id:
                tasks = [t for t in tasks if t.project_id == project_id]
            lines = []
            for t in tasks:
                line = f"[dim]{_short_id(t.id)}[/dim] {escape(truncate_string(t.name, 30))}"
                if t.due_date and status != "done":
                    color = URGENCY_COLORS.get(get_due_urgency(t.due_date), "white")
                    line += f" [{color}]{format_date_short(t.due_date)}[/{color}]"
                if status == "blocked" and t.blocker_note:
                    line += f"\n  [red]{escape(truncate_string(t.blocker_note, 30))}[/red]"
                lines.append(line)
            color = STATUS_COLORS.get(status, "white")
            panels.append(
                Panel(
                    "\n".join(lines) or "[dim]empty[/dim]",
                    title=f"[bold {color}]{status}[/bold {color}] ({len(tasks)})",
                    border_style=color,
                    box=box.ROUNDED,
                    width=36,
                )
            )

        console.print()
        console.print(Columns(panels))


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


@cli.command("log")
@click.argument("entry")
@click.option("--project", "project_ref", help="Project (default: the task's project, else last used)")
@click.option("--no-project", is_flag=True, help="Do not link a project")
@click.option("--task", "task_ref", help="Related task")
@click.option(
    "--category", "-c", type=click.Choice(ACTIVITY_CATEGORIES), default="other", help="Category"
)
@click.option("--date", "on_date", help="Date of the work (default: today)")
@click.option("--tags", help="Comma-separated tags")
@click.pass_context
def log(ctx, entry, project_ref, no_project, task_ref, category, on_date, tags):
    """Log an activity"""

    with open_workspace(ctx) as workspace:
        store = workspace.store
        task = resolve(store.tasks, task_ref, "task") if task_ref else None
        proj = None
        if project_ref:
            proj = resolve(store.projects, project_ref, "project")
        elif task is not None and task.project_id:
            proj = store.get_project(task.project_id)
        elif not no_project:
            proj = last_used_project(store)

        activity, result = log_activity(
            store,
            entry,
            project_id=proj.id if proj else None,
            task_id=task.id if task else None,
            category=category,
            on_date=on_date,
            tags=tags,
        )

        console.print(f"\n[bold green]✓[/bold green] Logged {escape(f'[{activity.category}]')} {escape(activity.entry)}")
        if proj:
            console.print(f"  Project: {escape(proj.name)}")
        _show_gamification(result)


@cli.command()
@click.option("--limit", "-n", type=int, default=30, help="Number of entries")
@click.option("--project", "project_ref", help="Filter by project")
@click.pass_context
def activities(ctx, limit: int, project_ref: Optional[str]):
    """Show the activity feed"""

    with open_workspace(ctx, save=False) as workspace:
        store = workspace.store
        project_id = resolve(store.projects, project_ref, "project").id if project_ref else None

        groups = activity_feed(store)
        shown = 0
        for heading, items in groups:
            if project_id:
                items = [a for a in items if a.project_id == project_id]
            items = items[: max(0, limit - shown)]
            if not items:
                continue
            console.print(f"\n[bold cyan]{heading}[/bold cyan]")
            for a in items:
                proj_name = store.project_name(a.project_id)
                suffix = f" [dim]({escape(proj_name)})[/dim]" if proj_name else ""
                when = get_relative_date(a.date)
                console.print(
                    f"  • [dim]{when}[/dim] [magenta]{a.category}[/magenta] {escape(a.entry)}{suffix}"
                )
            shown += len(items)

        if shown == 0:
            console.print("\n[yellow]No activities logged yet.[/yellow]")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@cli.group()
def metric():
    """Track time saved per project"""
    pass


@metric.command("set")
@click.argument("project_ref")
@click.option("--hours-to-run", type=float, default=0, help="Manual hours per run")
@click.option("--runs-per-week", type=float, default=0, help="Runs per week")
@click.option("--run-minutes", "run_duration_minutes", type=float, default=0, help="Automated minutes per run")
@click.option("--hours-to-build", type=float, default=0, help="Hours invested building it")
@click.option("--people", "people_impacted", type=int, default=0, help="People impacted")
@click.pass_context
def metric_set(ctx, project_ref, **values):
    """Record (or replace) the time-saved metric for a project"""

    with open_workspace(ctx) as workspace:
        store = workspace.store
        proj = resolve(store.projects, project_ref, "project")
        m = set_metric(store, proj.id, **values)
        row = next(r for r in metric_summaries(store) if r["metric_id"] == m.id)

        console.print(f"\n[bold green]✓[/bold green] Metric saved for [bold]{escape(proj.name)}[/bold]")
        console.print(f"  Saves {row['hours_saved_per_week']:.1f} h/week · {row['hours_saved_per_year']:.1f} h/year")
        console.print(f"  ROI {row['roi']:.1f}x · breakeven {format_breakeven(row['breakeven_weeks'])}")


@metric.command("list")
@click.pass_context
def metric_list(ctx):
    """Show time saved and ROI for every project"""

    with open_workspace(ctx, save=False) as workspace:
        store = workspace.store
        rows = metric_summaries(store)
        if not rows:
            console.print("\n[yellow]No metrics recorded. Add one with 'workpulse metric set'.[/yellow]")
            return

        table = Table(title="Time Saved", box=box.ROUNDED, header_style="bold cyan")
        table.add_column("Project", style="bold")
        table.add_column("h/week", justify="right")
        table.add_column("h/month", justify="right")
        table.add_column("h/year", justify="right")
        table.add_column("ROI", justify="right")
        table.add_column("Breakeven", justify="right")
        table.add_column("People", justify="right")

        for row in rows:
            table.add_row(
                escape(row["project_name"]),
                f"{row['hours_saved_per_week']:.1f}",
                f"{row['hours_saved_per_month']:.1f}",
                f"{row['hours_saved_per_year']:.1f}",
                f"{row['roi']:.1f}x",
                format_breakeven(row["breakeven_weeks"]),
                str(row["people_impacted"]),
            )

        totals = cumulative_metrics(store.metrics)
        console.print()
        console.print(table)
        console.print(
            f"[bold]Total:[/bold] {totals['hours_saved_per_week']:.1f} h/week · "
            f"{totals['hours_saved_per_year']:.1f} h/year · {totals['total_build_hours']:.1f} h invested · "
            f"ROI {totals['average_roi']:.1f}x · {totals['people_impacted']} people"
        )


@metric.command("delete")
@click.argument("project_ref")
@click.pass_context
def metric_delete(ctx, project_ref: str):
    """Remove a project's metric"""

    with open_workspace(ctx) as workspace:
        proj = resolve(workspace.store.projects, project_ref, "project")
        delete_metric(workspace.store, proj.id)
        console.print(f"\n[bold green]✓[/bold green] Removed metric for [bold]{escape(proj.name)}[/bold]")


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@cli.group()
def snapshot():
    """Weekly snapshots"""
    pass


@snapshot.command("list")
@click.pass_context
def snapshot_list(ctx):
    """List weekly snapshots, newest first"""

    with open_workspace(ctx) as workspace:
        table = Table(title="Weekly Snapshots", box=box.ROUNDED, header_style="bold cyan")
        table.add_column("Week", style="bold")
        table.add_column("Done", justify="right")
        table.add_column("Active", justify="right")
        table.add_column("New", justify="right")
        table.add_column("Blocked", justify="right")
        table.add_column("Summary")

        for snap in snapshots_newest_first(workspace.store):
            table.add_row(
                f"{format_date_short(snap.week_start)} - {format_date_short(snap.week_end)}",
                str(len(snap.completed)),
                str(len(snap.in_progress)),
                str(len(snap.new_tasks)),
                str(len(snap.stuck)),
                escape(snap.summary),
            )

        console.print()
        console.print(table)


@snapshot.command("show")
@click.argument("week", required=False)
@click.pass_context
def snapshot_show(ctx, week: Optional[str]):
    """Show the snapshot for the week containing WEEK (default: this week)"""

    with open_workspace(ctx) as workspace:
        store = workspace.store
        week_start, _ = get_week_bounds(parse_date(week) if week else date.today())
        snap = store.get_snapshot(week_start)
        if snap is None:
            raise NotFoundError(f"No snapshot for the week of {format_date(week_start)}")

        def names(ids):
            out = []
            for task_id in ids:
                t = store.get_task(task_id)
                out.append(escape(t.name) if t else f"[dim]{_short_id(task_id)} (deleted)[/dim]")
            return ", ".join(out) or "-"

        info = f"""[bold]{escape(snap.summary)}[/bold]

[bold green]Completed:[/bold green] {names(snap.completed)}
[bold yellow]In progress:[/bold yellow] {names(snap.in_progress)}
[bold cyan]New:[/bold cyan] {names(snap.new_tasks)}
[bold red]Blocked:[/bold red] {names(snap.stuck)}

[dim]Updated {get_relative_time(snap.updated_at)} ({format_datetime(snap.updated_at)})[/dim]"""

        console.print()
        console.print(
            Panel(
                info,
                title=f"[bold]Week of {format_date(snap.week_start)}[/bold]",
                border_style="cyan",
                box=box.ROUNDED,
            )
        )


@snapshot.command("refresh")
@click.pass_context
def snapshot_refresh(ctx):
    """Recompute this week's snapshot now"""

    with open_workspace(ctx) as workspace:
        snap = generate_snapshot(workspace.store, force=True)
        console.print(f"\n[bold green]✓[/bold green] {escape(snap.summary)}")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def _print_report(view: dict) -> None:
    header = f"[bold]{view['period']}[/bold]"
    if view["prepared_by"]:
        header += f"\nPrepared by {escape(view['prepared_by'])}"
    if view["prepared_for"]:
        header += f"\nFor {escape(view['prepared_for'])}"
    console.print()
    console.print(Panel(header, title=f"[bold]{view['title']}[/bold]", border_style="cyan", box=box.ROUNDED))

    for section in view["sections"]:
        console.print(f"\n[bold cyan]{section['title']}[/bold cyan] ({section['count']})")
        if section["key"] == "completed":
            if not section["groups"]:
                console.print("  [dim]None[/dim]")
            for group in section["groups"]:
                console.print(f"  [bold]{escape(group['heading'])}[/bold]")
                for item in group["items"]:
                    console.print(f"    • {escape(item)}")
            continue
        if not section["items"]:
            console.print("  [dim]None[/dim]")
        for item in section["items"]:
            console.print(f"  • {escape(item)}")
        if section.get("total"):
            console.print(f"  [bold]Total:[/bold] {escape(section['total'])}")


@cli.command()
@click.option("--preset", type=click.Choice(PRESETS), help="Canned range and sections")
@click.option("--from", "start", help="Start date (YYYY-MM-DD)")
@click.option("--to", "end", help="End date (YYYY-MM-DD)")
@click.option("--completed/--no-completed", default=None, help="Completed tasks")
@click.option("--in-progress/--no-in-progress", default=None, help="Tasks in progress")
@click.option("--upcoming/--no-upcoming", default=None, help="Upcoming due tasks")
@click.option("--blockers/--no-blockers", default=None, help="Blocked tasks")
@click.option("--activities/--no-activities", "show_activities", default=None, help="Activity highlights")
@click.option("--value/--no-value", default=None, help="Value delivered")
@click.option("--export", "export_path", type=click.Path(), help="Write markdown to a file or directory")
@click.option("--markdown", is_flag=True, help="Print markdown instead of the formatted view")
@click.pass_context
def report(ctx, preset, start, end, completed, in_progress, upcoming, blockers, show_activities, value, export_path, markdown):
    """Generate a status report"""

    config = ctx.obj["config"]
    with open_workspace(ctx, save=False) as workspace:
        options = preset_options(preset or config.get("default_report_preset", "weekly"))
        toggles = {
            "show_completed": completed,
            "show_in_progress": in_progress,
            "show_upcoming": upcoming,
            "show_blockers": blockers,
            "show_activities": show_activities,
            "show_value": value,
        }
        changes = {key: flag for key, flag in toggles.items() if flag is not None}
        if start:
            changes["start"] = parse_date(start)
        if end:
            changes["end"] = parse_date(end)
        options = replace(options, **changes)

        result = generate_report(workspace.store, options)

        if markdown:
            click.echo(render_markdown(result))
        else:
            _print_report(to_view_model(result))

        if export_path:
            path = Path(export_path).expanduser()
            if path.is_dir():
                path = path / report_filename(result)
            path.write_text(render_markdown(result))
            console.print(f"\n[bold green]✓[/bold green] Report exported to {path}")


# ---------------------------------------------------------------------------
# Settings, export, import, sync
# ---------------------------------------------------------------------------


@cli.group()
def settings():
    """View and edit settings"""
    pass


@settings.command("show")
@click.pass_context
def settings_show(ctx):
    """Show settings and sync status"""

    config = ctx.obj["config"]
    with open_workspace(ctx, save=False) as workspace:
        s = workspace.store.settings
        info = f"""[bold]Name:[/bold] {escape(s.user_name) or '-'}
[bold]Job title:[/bold] {escape(s.job_title) or '-'}
[bold]Reports to:[/bold] {escape(s.boss_name) or '-'}
[bold]Theme:[/bold] {s.theme}
[bold]Default view:[/bold] {s.default_view}
[bold]Onboarding complete:[/bold] {'Yes' if s.onboarding_complete else 'No'}

[bold]Data:[/bold] {config.get('db_path')} ({workspace.db.get_db_size() // 1024} KB)
[bold]Sync:[/bold] {workspace.sync_status}{' as ' + escape(str(config.get('user_id'))) if config.get('user_id') else ''}"""

        console.print()
        console.print(Panel(info, title="[bold]Settings[/bold]", border_style="cyan", box=box.ROUNDED))


@settings.command("set")
@click.option("--name", "user_name", help="Your name")
@click.option("--title", "job_title", help="Your job title")
@click.option("--boss", "boss_name", help="Who you report to")
@click.option("--theme", type=click.Choice(THEMES), help="Theme")
@click.option("--default-view", type=click.Choice(VIEWS), help="Default view")
@click.option("--onboarded/--not-onboarded", "onboarding_complete", default=None, help="Onboarding state")
@click.pass_context
def settings_set(ctx, **values):
    """Update settings"""

    changes = {key: value for key, value in values.items() if value is not None}
    if not changes:
        console.print("\n[yellow]No updates specified[/yellow]")
        return

    with open_workspace(ctx) as workspace:
        for key, value in changes.items():
            setattr(workspace.store.settings, key, value.strip() if isinstance(value, str) else value)
        console.print("\n[bold green]✓[/bold green] Settings saved")


@cli.command("export")
@click.argument("path", required=False, type=click.Path())
@click.pass_context
def export_cmd(ctx, path: Optional[str]):
    """Export all data as JSON"""

    with open_workspace(ctx, save=False) as workspace:
        target = Path(path).expanduser() if path else Path.cwd() / export_filename()
        if target.is_dir():
            target = target / export_filename()
        export_data(workspace.store, target)
        console.print(f"\n[bold green]✓[/bold green] Data exported to {target}")


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--force", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def import_cmd(ctx, path: str, force: bool):
    """Import data from a JSON export (replaces matching collections)"""

    with open_workspace(ctx) as workspace:
        try:
            text = Path(path).read_text()
        except (OSError, UnicodeDecodeError) as e:
            raise DataImportError(f"Failed to read file: {e}") from e
        imported = import_data(workspace.store, text)

        if not force:
            confirm = questionary.confirm(
                "This will replace all your data. Continue?", default=False
            ).ask()
            if not confirm:
                console.print("\n[yellow]Import cancelled.[/yellow]")
                return

        workspace.replace(imported)
        console.print(
            f"\n[bold green]✓[/bold green] Data imported successfully: "
            f"{len(imported.projects)} projects, {len(imported.tasks)} tasks, "
            f"{len(imported.activities)} activities"
        )


@cli.command()
@click.pass_context
def sync(ctx):
    """Push local data to the remote store now"""

    with open_workspace(ctx, save=False) as workspace:
        if workspace.sync_now():
            console.print(f"\n[bold green]✓[/bold green] Synced at {datetime.now().strftime('%H:%M:%S')}")
        else:
            console.print("\n[bold red]Error:[/bold red] Cloud sync failed")
