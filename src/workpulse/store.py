"""Record Store mutations

Every change to projects, tasks, activities and metrics goes through this
module. Input is validated before anything is touched, so a rejected call
leaves the store exactly as it was.
"""

import logging
from datetime import datetime, date
from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from .gamification import GamificationResult, on_activity_logged, on_task_completed
from .models import Activity, Metric, Project, RecordStore, Task
from .utils import (
    ACTIVITY_CATEGORIES,
    ACTIVITY_ENTRY_MAX,
    PROJECT_NAME_MAX,
    PROJECT_STATUSES,
    TASK_NAME_MAX,
    TASK_STATUSES,
    NotFoundError,
    ValidationError,
    get_date_group,
    parse_date,
    parse_tags,
    validate_priority,
    validate_status,
    validate_text,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

PROJECT_FIELDS = ("name", "description", "status", "priority", "tags", "color")
TASK_FIELDS = ("name", "description", "priority", "due_date", "tags", "project_id")
ACTIVITY_FIELDS = ("entry", "project_id", "task_id", "category", "date", "tags")
METRIC_FIELDS = (
    "hours_to_run",
    "runs_per_week",
    "run_duration_minutes",
    "hours_to_build",
    "people_impacted",
)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def resolve(records: Sequence[R], ref: str, kind: str = "record") -> R:
    """Find a record by full id, unique id prefix, or case-insensitive name or name prefix

    Raises:
        NotFoundError: if nothing matches or the prefix is ambiguous
    """
    ref = (ref or "").strip()
    if not ref:
        raise NotFoundError(f"No {kind} given")

    for record in records:
        if record.id == ref:
            return record

    lowered = ref.lower()
    matches = [r for r in records if r.id.startswith(ref)]
    if not matches:
        matches = [r for r in records if getattr(r, "name", "").lower() == lowered]
    if not matches:
        matches = [r for r in records if getattr(r, "name", "").lower().startswith(lowered)]

    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise NotFoundError(f"{kind.title()} '{ref}' not found")
    raise NotFoundError(f"'{ref}' matches {len(matches)} {kind}s; use a longer id")


def _require_project(store: RecordStore, project_id: Optional[str]) -> Project:
    project = store.get_project(project_id)
    if project is None:
        raise ValidationError(f"Project '{project_id}' does not exist")
    return project


def _require_task(store: RecordStore, task_id: str) -> Task:
    task = store.get_task(task_id)
    if task is None:
        raise NotFoundError(f"Task '{task_id}' not found")
    return task


def _number(value, field: str) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a number") from e
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def add_project(
    store: RecordStore,
    name: str,
    description: str = "",
    status: str = "active",
    priority: int = 3,
    tags=None,
    color: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Project:
    """Create a project and append it to the store"""
    now = now or datetime.now()
    name = validate_text(name, "Project name", PROJECT_NAME_MAX)
    validate_status(status, PROJECT_STATUSES)

    project = Project(
        name=name,
        description=(description or "").strip(),
        status=status,
        priority=validate_priority(priority),
        tags=parse_tags(tags),
        created_at=now,
        updated_at=now,
        completed_at=now if status == "completed" else None,
    )
    if color:
        project.color = color

    store.projects.append(project)
    return project


def update_project(
    store: RecordStore, project_id: str, now: Optional[datetime] = None, **changes
) -> Project:
    """Update project fields; completedAt is stamped the first time it completes"""
    now = now or datetime.now()
    project = store.get_project(project_id)
    if project is None:
        raise NotFoundError(f"Project '{project_id}' not found")

    unknown = set(changes) - set(PROJECT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown project field(s): {', '.join(sorted(unknown))}")

    if "name" in changes:
        changes["name"] = validate_text(changes["name"], "Project name", PROJECT_NAME_MAX)
    if "status" in changes:
        validate_status(changes["status"], PROJECT_STATUSES)
    if "priority" in changes:
        changes["priority"] = validate_priority(changes["priority"])
    if "tags" in changes:
        changes["tags"] = parse_tags(changes["tags"])

    for key, value in changes.items():
        setattr(project, key, value)

    if project.status == "completed" and project.completed_at is None:
        project.completed_at = now
    project.updated_at = now
    return project


def delete_project(store: RecordStore, project_id: str) -> Dict[str, int]:
    """Delete a project with its tasks, activities and metric

    Weekly snapshots are historical and keep any task ids they captured.

    Returns:
        Counts of removed records by collection
    """
    if store.get_project(project_id) is None:
        raise NotFoundError(f"Project '{project_id}' not found")

    removed = {
        "tasks": sum(1 for t in store.tasks if t.project_id == project_id),
        "activities": sum(1 for a in store.activities if a.project_id == project_id),
        "metrics": sum(1 for m in store.metrics if m.project_id == project_id),
    }

    store.projects = [p for p in store.projects if p.id != project_id]
    store.tasks = [t for t in store.tasks if t.project_id != project_id]
    store.activities = [a for a in store.activities if a.project_id != project_id]
    store.metrics = [m for m in store.metrics if m.project_id != project_id]

    logger.info("Deleted project %s with %s", project_id, removed)
    return removed


def project_progress(store: RecordStore, project_id: str) -> Tuple[int, int]:
    """Return (done, total) task counts for a project"""
    tasks = [t for t in store.tasks if t.project_id == project_id]
    return sum(1 for t in tasks if t.status == "done"), len(tasks)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def column(store: RecordStore, status: str, exclude: Optional[str] = None) -> List[Task]:
    """Tasks in one kanban column ordered by sortOrder, ties by insertion order"""
    tasks = [t for t in store.tasks if t.status == status and t.id != exclude]
    return sorted(tasks, key=lambda t: t.sort_order)


def board(store: RecordStore) -> Dict[str, List[Task]]:
    """Every kanban column keyed by status"""
    return {status: column(store, status) for status in TASK_STATUSES}


def _end_of_column(store: RecordStore, status: str, exclude: Optional[str] = None) -> float:
    tasks = column(store, status, exclude=exclude)
    return tasks[-1].sort_order + 1 if tasks else 0.0


def add_task(
    store: RecordStore,
    name: str,
    project_id: str,
    description: str = "",
    status: str = "backlog",
    priority: int = 3,
    due_date=None,
    tags=None,
    blocker_note: str = "",
    now: Optional[datetime] = None,
) -> Tuple[Task, Optional[GamificationResult]]:
    """Create a task at the end of its column

    A task created straight into done counts as a completion.
    """
    now = now or datetime.now()
    name = validate_text(name, "Task name", TASK_NAME_MAX)
    _require_project(store, project_id)
    validate_status(status, TASK_STATUSES)
    due = parse_date(due_date)

    task = Task(
        name=name,
        project_id=project_id,
        description=(description or "").strip(),
        status="backlog",
        priority=validate_priority(priority),
        due_date=due,
        tags=parse_tags(tags),
        sort_order=_end_of_column(store, "backlog"),
        created_at=now,
        updated_at=now,
    )
    store.tasks.append(task)

    result = None
    if status != "backlog":
        result = transition_task(store, task.id, status, blocker_note=blocker_note, now=now)
    return task, result


def update_task(
    store: RecordStore, task_id: str, now: Optional[datetime] = None, **changes
) -> Task:
    """Edit task details; status changes must go through transition_task"""
    now = now or datetime.now()
    task = _require_task(store, task_id)

    unknown = set(changes) - set(TASK_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown task field(s): {', '.join(sorted(unknown))}")

    if "name" in changes:
        changes["name"] = validate_text(changes["name"], "Task name", TASK_NAME_MAX)
    if "project_id" in changes:
        _require_project(store, changes["project_id"])
    if "priority" in changes:
        changes["priority"] = validate_priority(changes["priority"])
    if "due_date" in changes:
        changes["due_date"] = parse_date(changes["due_date"])
    if "tags" in changes:
        changes["tags"] = parse_tags(changes["tags"])

    for key, value in changes.items():
        setattr(task, key, value)
    task.updated_at = now
    return task


def transition_task(
    store: RecordStore,
    task_id: str,
    status: str,
    blocker_note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[GamificationResult]:
    """Move a task to a new status

    This is the only place task status changes. It keeps completedAt set
    exactly while the task is done, keeps the blocker note only while it is
    blocked, and awards gamification once per entry into done.

    Returns:
        The gamification outcome when the task was completed, else None
    """
    now = now or datetime.now()
    task = _require_task(store, task_id)
    validate_status(status, TASK_STATUSES)

    previous = task.status
    if status == "blocked" and blocker_note is not None:
        task.blocker_note = blocker_note.strip()

    if previous == status:
        task.updated_at = now
        return None

    task.sort_order = _end_of_column(store, status, exclude=task.id)
    task.status = status
    task.updated_at = now

    if status != "blocked":
        task.blocker_note = ""

    if status == "done":
        task.completed_at = now
        result = on_task_completed(store.settings, task, now.date())
        logger.info("Task %s completed (+%s karma)", task.id, result.points)
        return result

    task.completed_at = None
    return None


def reorder_task(
    store: RecordStore,
    task_id: str,
    status: str,
    position: int,
    now: Optional[datetime] = None,
) -> Optional[GamificationResult]:
    """Drop a task at a position within a column

    The task takes the midpoint of its new neighbours' sortOrder, so no other
    task is renumbered.
    """
    result = transition_task(store, task_id, status, now=now)
    task = _require_task(store, task_id)

    others = column(store, status, exclude=task.id)
    position = max(0, min(position, len(others)))
    before = others[position - 1] if position > 0 else None
    after = others[position] if position < len(others) else None

    if before and after:
        task.sort_order = (before.sort_order + after.sort_order) / 2
    elif before:
        task.sort_order = before.sort_order + 1
    elif after:
        task.sort_order = after.sort_order - 1
    else:
        task.sort_order = 0.0
    return result


def delete_task(store: RecordStore, task_id: str) -> Task:
    """Remove a task; activities pointing at it keep their project link only"""
    task = _require_task(store, task_id)
    store.tasks = [t for t in store.tasks if t.id != task_id]
    for activity in store.activities:
        if activity.task_id == task_id:
            activity.task_id = None
    return task


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


def _validate_activity_links(
    store: RecordStore, project_id: Optional[str], task_id: Optional[str]
) -> Optional[str]:
    if not project_id:
        return None
    _require_project(store, project_id)
    if task_id:
        task = store.get_task(task_id)
        if task is None or task.project_id != project_id:
            raise ValidationError(f"Task '{task_id}' does not belong to project '{project_id}'")
        return task_id
    return None


def log_activity(
    store: RecordStore,
    entry: str,
    project_id: Optional[str] = None,
    task_id: Optional[str] = None,
    category: str = "other",
    on_date=None,
    tags=None,
    now: Optional[datetime] = None,
) -> Tuple[Activity, GamificationResult]:
    """Record a new activity and award the logging point"""
    now = now or datetime.now()
    entry = validate_text(entry, "Activity", ACTIVITY_ENTRY_MAX)
    if category not in ACTIVITY_CATEGORIES:
        raise ValidationError(
            f"Invalid category '{category}'. Must be one of: {', '.join(ACTIVITY_CATEGORIES)}"
        )
    task_id = _validate_activity_links(store, project_id, task_id)

    activity = Activity(
        entry=entry,
        project_id=project_id or None,
        task_id=task_id,
        category=category,
        date=parse_date(on_date) or now.date(),
        tags=parse_tags(tags),
        timestamp=now,
        created_at=now,
    )
    store.activities.append(activity)

    result = on_activity_logged(store.settings, now.date())
    return activity, result


def update_activity(
    store: RecordStore, activity_id: str, now: Optional[datetime] = None, **changes
) -> Activity:
    """Edit an activity; gamification is not re-awarded"""
    now = now or datetime.now()
    activity = store.get_activity(activity_id)
    if activity is None:
        raise NotFoundError(f"Activity '{activity_id}' not found")

    unknown = set(changes) - set(ACTIVITY_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown activity field(s): {', '.join(sorted(unknown))}")

    if "entry" in changes:
        changes["entry"] = validate_text(changes["entry"], "Activity", ACTIVITY_ENTRY_MAX)
    if "category" in changes and changes["category"] not in ACTIVITY_CATEGORIES:
        raise ValidationError(f"Invalid category '{changes['category']}'")
    if "date" in changes:
        changes["date"] = parse_date(changes["date"]) or activity.date
    if "tags" in changes:
        changes["tags"] = parse_tags(changes["tags"])

    project_id = changes.get("project_id", activity.project_id)
    task_id = changes.get("task_id", activity.task_id)
    changes["task_id"] = _validate_activity_links(store, project_id, task_id)
    changes["project_id"] = project_id or None

    for key, value in changes.items():
        setattr(activity, key, value)
    activity.updated_at = now
    return activity


def delete_activity(store: RecordStore, activity_id: str) -> Activity:
    activity = store.get_activity(activity_id)
    if activity is None:
        raise NotFoundError(f"Activity '{activity_id}' not found")
    store.activities = [a for a in store.activities if a.id != activity_id]
    return activity


def last_used_project(store: RecordStore) -> Optional[Project]:
    """Project of the most recently logged activity that still exists"""
    for activity in sorted(store.activities, key=lambda a: a.timestamp, reverse=True):
        project = store.get_project(activity.project_id)
        if project is not None:
            return project
    return None


def activity_feed(
    store: RecordStore, today: Optional[date] = None, limit: Optional[int] = None
) -> List[Tuple[str, List[Activity]]]:
    """Activities newest first, grouped by relative date bucket"""
    today = today or date.today()
    ordered = sorted(store.activities, key=lambda a: a.timestamp, reverse=True)
    if limit is not None:
        ordered = ordered[:limit]

    groups: Dict[str, List[Activity]] = {}
    for activity in ordered:
        groups.setdefault(get_date_group(activity.date, today), []).append(activity)
    return list(groups.items())


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def set_metric(
    store: RecordStore, project_id: str, now: Optional[datetime] = None, **values
) -> Metric:
    """Create the metric for a project, replacing any existing one"""
    now = now or datetime.now()
    _require_project(store, project_id)

    unknown = set(values) - set(METRIC_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown metric field(s): {', '.join(sorted(unknown))}")

    cleaned = {key: _number(value, key.replace("_", " ")) for key, value in values.items()}
    if "people_impacted" in cleaned:
        cleaned["people_impacted"] = int(cleaned["people_impacted"])

    existing = store.get_metric_for_project(project_id)
    metric = Metric(project_id=project_id, created_at=now, updated_at=now, **cleaned)
    if existing is not None:
        metric.id = existing.id
        metric.created_at = existing.created_at

    store.metrics = [m for m in store.metrics if m.project_id != project_id]
    store.metrics.append(metric)
    return metric


def delete_metric(store: RecordStore, project_id: str) -> Metric:
    metric = store.get_metric_for_project(project_id)
    if metric is None:
        raise NotFoundError(f"No metric recorded for project '{project_id}'")
    store.metrics = [m for m in store.metrics if m.id != metric.id]
    return metric
