"""Dashboard summary computed from the Record Store"""

from datetime import date
from typing import Dict, Optional

from .gamification import next_karma_level
from .metrics import cumulative_metrics
from .models import RecordStore
from .store import project_progress
from .utils import TASK_STATUSES, get_due_urgency, get_week_bounds


def build_dashboard(store: RecordStore, today: Optional[date] = None) -> Dict:
    """Collect the headline numbers shown on the dashboard

    Args:
        store: Record store to summarise
        today: Reference date for due dates and "this week"

    Returns:
        Dictionary of counts, gamification state and per-project progress
    """
    today = today or date.today()
    week_start, week_end = get_week_bounds(today)
    settings = store.settings

    status_counts = {status: 0 for status in TASK_STATUSES}
    due_today = []
    overdue = []
    for task in store.tasks:
        status_counts[task.status] = status_counts.get(task.status, 0) + 1
        if task.status == "done":
            continue
        urgency = get_due_urgency(task.due_date, today)
        if urgency == "today":
            due_today.append(task)
        elif urgency == "overdue":
            overdue.append(task)

    completed_this_week = [
        t
        for t in store.tasks
        if t.status == "done"
        and t.completed_at is not None
        and week_start <= t.completed_at.date() <= week_end
    ]

    progress = []
    for project in store.projects:
        if project.status == "archived":
            continue
        done, total = project_progress(store, project.id)
        progress.append(
            {
                "project_id": project.id,
                "name": project.name,
                "status": project.status,
                "done": done,
                "total": total,
                "percent": round(done / total * 100) if total else 0,
            }
        )

    upcoming_level = next_karma_level(settings.karma)

    return {
        "active_projects": sum(1 for p in store.projects if p.status == "active"),
        "task_counts": status_counts,
        "due_today": sorted(due_today, key=lambda t: t.priority, reverse=True),
        "overdue": sorted(overdue, key=lambda t: t.due_date),
        "completed_this_week": len(completed_this_week),
        "activities_today": sum(1 for a in store.activities if a.date == today),
        "hours_saved_per_week": cumulative_metrics(store.metrics)["hours_saved_per_week"],
        "streak": settings.streak,
        "longest_streak": settings.longest_streak,
        "karma": settings.karma,
        "karma_level": settings.karma_level,
        "next_level": upcoming_level[0] if upcoming_level else None,
        "points_to_next_level": upcoming_level[1] if upcoming_level else 0,
        "project_progress": progress,
    }
