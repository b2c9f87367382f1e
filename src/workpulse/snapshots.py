"""Weekly snapshot generation

A snapshot records which tasks moved during one Monday-Sunday week. It is
generated when the application starts, refreshed in place once it is more
than a day old, and never deleted or rewritten by later record deletions.
"""

import logging
from datetime import datetime, date, timedelta
from typing import Dict, List, Optional

from .models import RecordStore, WeeklySnapshot
from .utils import get_week_bounds

logger = logging.getLogger(__name__)


DEFAULT_STALE_AFTER = timedelta(days=1)
NO_ACTIVITY_SUMMARY = "No activity recorded this week."


def _within(moment: Optional[datetime], start: date, end: date) -> bool:
    return moment is not None and start <= moment.date() <= end


def collect_week(store: RecordStore, week_start: date, week_end: date) -> Dict[str, List[str]]:
    """Task ids for the four snapshot lists

    Completed and new tasks are windowed by the week; in-progress and stuck
    reflect the current board.
    """
    return {
        "completed": [
            t.id
            for t in store.tasks
            if t.status == "done" and _within(t.completed_at, week_start, week_end)
        ],
        "in_progress": [t.id for t in store.tasks if t.status in ("in-progress", "this-week")],
        "new_tasks": [t.id for t in store.tasks if _within(t.created_at, week_start, week_end)],
        "stuck": [t.id for t in store.tasks if t.status == "blocked"],
    }


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def summarize(lists: Dict[str, List[str]]) -> str:
    """One sentence describing the week's task movement"""
    clauses = []
    if lists["completed"]:
        clauses.append(f"Completed {_plural(len(lists['completed']), 'task')}")
    if lists["in_progress"]:
        clauses.append(f"{len(lists['in_progress'])} in progress")
    if lists["new_tasks"]:
        clauses.append(f"{_plural(len(lists['new_tasks']), 'new task')} added")
    if lists["stuck"]:
        clauses.append(f"{len(lists['stuck'])} blocked")

    if not clauses:
        return NO_ACTIVITY_SUMMARY
    return ". ".join(clauses) + "."


def _fill(snapshot: WeeklySnapshot, store: RecordStore) -> None:
    lists = collect_week(store, snapshot.week_start, snapshot.week_end)
    snapshot.completed = lists["completed"]
    snapshot.in_progress = lists["in_progress"]
    snapshot.new_tasks = lists["new_tasks"]
    snapshot.stuck = lists["stuck"]
    snapshot.summary = summarize(lists)


def generate_snapshot(
    store: RecordStore,
    now: Optional[datetime] = None,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
    force: bool = False,
) -> WeeklySnapshot:
    """Ensure the snapshot for the week containing now exists and is fresh

    Args:
        store: Record store to read tasks from and write the snapshot into
        now: Current instant (defaults to datetime.now())
        stale_after: Age after which an existing snapshot is recomputed
        force: Recompute even if the snapshot is still fresh

    Returns:
        The created, refreshed or untouched snapshot
    """
    now = now or datetime.now()
    week_start, week_end = get_week_bounds(now.date())

    snapshot = store.get_snapshot(week_start)
    if snapshot is None:
        snapshot = WeeklySnapshot(
            week_start=week_start, week_end=week_end, created_at=now, updated_at=now
        )
        _fill(snapshot, store)
        store.weekly_snapshots.append(snapshot)
        logger.info("Created weekly snapshot for %s", week_start)
        return snapshot

    fresh = snapshot.updated_at is not None and now - snapshot.updated_at < stale_after
    if not force and fresh:
        logger.debug("Weekly snapshot for %s is fresh, skipping", week_start)
        return snapshot

    _fill(snapshot, store)
    snapshot.updated_at = now
    logger.info("Refreshed weekly snapshot for %s", week_start)
    return snapshot


def snapshots_newest_first(store: RecordStore) -> List[WeeklySnapshot]:
    return sorted(store.weekly_snapshots, key=lambda s: s.week_start or date.min, reverse=True)
