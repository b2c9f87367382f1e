"""Status report assembly

A report is computed once into a ``Report`` and then rendered twice: as a
view model for the terminal and as a markdown export. Both renderings walk
the same lists, so the on-screen and exported reports always agree.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, date, timedelta
from typing import Dict, List, Optional, Tuple

from .metrics import cumulative_metrics, format_breakeven, metric_summaries
from .models import RecordStore, Task
from .utils import ValidationError, format_date, format_date_short, to_local_date_string


NO_PROJECT = "No Project"
UPCOMING_LIMIT = 10
ACTIVITY_LIMIT = 15
PRESETS = ("standup", "weekly", "monthly")

SECTION_TITLES = {
    "completed": "Completed",
    "in_progress": "In Progress",
    "upcoming": "Coming Up",
    "blockers": "Blockers",
    "activities": "Activity Highlights",
    "value": "Value Delivered",
}


@dataclass
class ReportOptions:
    """Date range (inclusive) and the six section toggles"""

    start: date
    end: date
    show_completed: bool = True
    show_in_progress: bool = True
    show_upcoming: bool = True
    show_blockers: bool = True
    show_activities: bool = True
    show_value: bool = True

    def __post_init__(self):
        if self.start > self.end:
            raise ValidationError("Report start date must be on or before the end date")


def preset_options(name: str, today: Optional[date] = None) -> ReportOptions:
    """Canned range and toggles for a named preset

    standup: yesterday and today; completed, in progress and blockers
    weekly: Monday of this week through today; every section
    monthly: first of the month through today; completed, activities and value
    """
    today = today or date.today()
    if name == "standup":
        return ReportOptions(
            start=today - timedelta(days=1),
            end=today,
            show_upcoming=False,
            show_activities=False,
            show_value=False,
        )
    if name == "weekly":
        return ReportOptions(start=today - timedelta(days=today.weekday()), end=today)
    if name == "monthly":
        return ReportOptions(
            start=today.replace(day=1),
            end=today,
            show_in_progress=False,
            show_upcoming=False,
            show_blockers=False,
        )
    raise ValidationError(f"Unknown report preset '{name}'. Must be one of: {', '.join(PRESETS)}")


@dataclass
class TaskItem:
    id: str
    name: str
    project_name: str
    status: str
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    blocker_note: str = ""


@dataclass
class ActivityItem:
    id: str
    entry: str
    category: str
    date: Optional[date]
    project_name: Optional[str]
    timestamp: datetime


@dataclass
class Report:
    """Filtered, ordered report content; a disabled section is None"""

    options: ReportOptions
    generated_at: datetime
    user_name: str = ""
    job_title: str = ""
    boss_name: str = ""
    completed: Optional[List[Tuple[str, List[TaskItem]]]] = None
    in_progress: Optional[List[TaskItem]] = None
    upcoming: Optional[List[TaskItem]] = None
    blockers: Optional[List[TaskItem]] = None
    activities: Optional[List[ActivityItem]] = None
    value: Optional[Dict] = None
    sections: List[str] = field(default_factory=list)

    @property
    def title(self) -> str:
        return "Status Report"

    @property
    def period(self) -> str:
        return f"{format_date(self.options.start)} to {format_date(self.options.end)}"


def _task_item(store: RecordStore, task: Task) -> TaskItem:
    return TaskItem(
        id=task.id,
        name=task.name,
        project_name=store.project_name(task.project_id) or NO_PROJECT,
        status=task.status,
        due_date=task.due_date,
        completed_at=task.completed_at,
        blocker_note=task.blocker_note,
    )


def _in_range(d: Optional[date], options: ReportOptions) -> bool:
    return d is not None and options.start <= d <= options.end


def generate_report(
    store: RecordStore, options: ReportOptions, now: Optional[datetime] = None
) -> Report:
    """Collect every enabled section for the given range

    Only completed tasks and activities are filtered by the range; in
    progress, coming up and blockers describe the board as it is now.
    """
    settings = store.settings
    report = Report(
        options=replace(options),
        generated_at=now or datetime.now(),
        user_name=settings.user_name,
        job_title=settings.job_title,
        boss_name=settings.boss_name,
    )

    if options.show_completed:
        groups: Dict[str, List[TaskItem]] = {}
        for task in store.tasks:
            if task.status != "done" or task.completed_at is None:
                continue
            if not _in_range(task.completed_at.date(), options):
                continue
            item = _task_item(store, task)
            groups.setdefault(item.project_name, []).append(item)
        report.completed = list(groups.items())
        report.sections.append("completed")

    if options.show_in_progress:
        report.in_progress = [
            _task_item(store, t) for t in store.tasks if t.status in ("in-progress", "this-week")
        ]
        report.sections.append("in_progress")

    if options.show_upcoming:
        backlog = [t for t in store.tasks if t.status == "backlog" and t.due_date is not None]
        backlog.sort(key=lambda t: t.due_date)
        report.upcoming = [_task_item(store, t) for t in backlog[:UPCOMING_LIMIT]]
        report.sections.append("upcoming")

    if options.show_blockers:
        report.blockers = [_task_item(store, t) for t in store.tasks if t.status == "blocked"]
        report.sections.append("blockers")

    if options.show_activities:
        in_range = [a for a in store.activities if _in_range(a.date, options)]
        in_range.sort(key=lambda a: a.timestamp, reverse=True)
        report.activities = [
            ActivityItem(
                id=a.id,
                entry=a.entry,
                category=a.category,
                date=a.date,
                project_name=store.project_name(a.project_id),
                timestamp=a.timestamp,
            )
            for a in in_range[:ACTIVITY_LIMIT]
        ]
        report.sections.append("activities")

    if options.show_value:
        report.value = {
            "rows": metric_summaries(store, only_saving=True),
            "totals": cumulative_metrics(store.metrics),
        }
        report.sections.append("value")

    return report


# ---------------------------------------------------------------------------
# Renderings
# ---------------------------------------------------------------------------


def _task_line(item: TaskItem, section: str) -> str:
    if section == "completed":
        when = format_date_short(item.completed_at.date()) if item.completed_at else ""
        return f"{item.name} ({when})" if when else item.name
    if section == "in_progress":
        label = "in progress" if item.status == "in-progress" else "this week"
        return f"{item.name} [{item.project_name}] ({label})"
    if section == "upcoming":
        return f"{item.name} [{item.project_name}] - due {format_date_short(item.due_date)}"
    if section == "blockers":
        note = item.blocker_note or "no details"
        return f"{item.name} [{item.project_name}]: {note}"
    return item.name


def _activity_line(item: ActivityItem) -> str:
    line = f"{format_date_short(item.date)} [{item.category}] {item.entry}"
    if item.project_name:
        line += f" ({item.project_name})"
    return line


def _value_lines(value: Dict) -> Tuple[List[str], str]:
    lines = [
        f"{row['project_name']}: {row['hours_saved_per_week']:.1f} h/week, "
        f"{row['hours_saved_per_year']:.1f} h/year, ROI {row['roi']:.1f}x, "
        f"breakeven {format_breakeven(row['breakeven_weeks'])}"
        for row in value["rows"]
    ]
    totals = value["totals"]
    total = (
        f"{totals['hours_saved_per_week']:.1f} h/week and {totals['hours_saved_per_year']:.1f} "
        f"h/year saved from {totals['total_build_hours']:.1f} h invested "
        f"(ROI {totals['average_roi']:.1f}x, {totals['people_impacted']} people impacted)"
    )
    return lines, total


def to_view_model(report: Report) -> Dict:
    """Structured, display-ready data for the on-screen report"""
    sections = []
    for key in report.sections:
        section = {"key": key, "title": SECTION_TITLES[key]}
        if key == "completed":
            section["groups"] = [
                {"heading": name, "items": [_task_line(i, key) for i in items]}
                for name, items in report.completed
            ]
            section["count"] = sum(len(items) for _, items in report.completed)
        elif key == "activities":
            section["items"] = [_activity_line(a) for a in report.activities]
            section["count"] = len(report.activities)
        elif key == "value":
            lines, total = _value_lines(report.value)
            section["items"] = lines
            section["total"] = total
            section["count"] = len(lines)
        else:
            items = getattr(report, key)
            section["items"] = [_task_line(i, key) for i in items]
            section["count"] = len(items)
        sections.append(section)

    return {
        "title": report.title,
        "period": report.period,
        "prepared_by": ", ".join(p for p in (report.user_name, report.job_title) if p),
        "prepared_for": report.boss_name,
        "generated_at": report.generated_at.isoformat(timespec="seconds"),
        "sections": sections,
    }


def render_markdown(report: Report) -> str:
    """Plain hierarchical markdown export of the report"""
    view = to_view_model(report)
    lines = [f"# {view['title']}", "", f"**Period:** {view['period']}"]
    if view["prepared_by"]:
        lines.append(f"**Prepared by:** {view['prepared_by']}")
    if view["prepared_for"]:
        lines.append(f"**Prepared for:** {view['prepared_for']}")

    for section in view["sections"]:
        lines += ["", f"## {section['title']}", ""]
        if section["key"] == "completed":
            if not section["groups"]:
                lines.append("- None")
            for group in section["groups"]:
                lines.append(f"### {group['heading']}")
                lines += [f"- {item}" for item in group["items"]]
                lines.append("")
            if section["groups"]:
                lines.pop()
            continue

        lines += [f"- {item}" for item in section["items"]] or ["- None"]
        if section.get("total"):
            lines += ["", f"**Total:** {section['total']}"]

    return "\n".join(lines) + "\n"


def report_filename(report: Report) -> str:
    start = to_local_date_string(report.options.start)
    end = to_local_date_string(report.options.end)
    return f"status-report-{start}-to-{end}.md"
