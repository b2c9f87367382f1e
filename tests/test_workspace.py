"""Tests for the application lifecycle and dashboard"""

import json
from datetime import datetime, date, timedelta

import pytest

from workpulse.dashboard import build_dashboard
from workpulse.models import Metric, Project, RecordStore, Settings, Task
from workpulse.store import add_project, add_task
from workpulse.sync import SyncError
from workpulse.utils import Config
from workpulse.workspace import Workspace


@pytest.fixture
def config(tmp_path):
    return Config(str(tmp_path / "config.json"))


def test_open_generates_snapshot_and_saves(config):
    """Test startup writes the current week's snapshot to local storage"""
    workspace = Workspace(config)

    store = workspace.open(now=datetime(2024, 3, 6, 9, 0))

    assert [s.week_start for s in store.weekly_snapshots] == [date(2024, 3, 4)]
    assert Workspace(config).local.load().weekly_snapshots[0].week_start == date(2024, 3, 4)


def test_snapshot_staleness_follows_config(config):
    config.set("snapshot_stale_hours", 1)
    workspace = Workspace(config)
    store = workspace.open(now=datetime(2024, 3, 6, 9, 0))
    add_project(store, "Billing")
    project_id = store.projects[0].id
    add_task(store, "Stuck", project_id, status="blocked")
    workspace.save()

    store = Workspace(config).open(now=datetime(2024, 3, 6, 10, 30))

    assert len(store.weekly_snapshots[0].stuck) == 1


def test_save_and_reopen(config):
    workspace = Workspace(config)
    store = workspace.open()
    add_project(store, "Billing")

    assert workspace.save() is True
    workspace.close()

    assert Workspace(config).open().project_name(store.projects[0].id) == "Billing"
    assert workspace.notices == []


def test_sync_now_requires_configuration(config):
    workspace = Workspace(config)
    workspace.open()

    assert workspace.sync_status == "offline"
    with pytest.raises(SyncError):
        workspace.sync_now()


def test_dashboard_summary():
    """Test headline numbers on the dashboard"""
    today = date(2024, 3, 6)
    store = RecordStore(
        projects=[
            Project(id="p1", name="Billing"),
            Project(id="p2", name="Old", status="archived"),
        ],
        tasks=[
            Task(project_id="p1", status="done", completed_at=datetime(2024, 3, 5, 10)),
            Task(project_id="p1", status="backlog", due_date=today - timedelta(days=2)),
            Task(project_id="p1", status="in-progress", due_date=today),
            Task(project_id="p2", status="done", completed_at=datetime(2024, 2, 1)),
        ],
        metrics=[Metric(project_id="p1", hours_to_run=1, runs_per_week=5)],
        settings=Settings(karma=60, karma_level="Contributor", streak=3, longest_streak=9),
    )

    data = build_dashboard(store, today)

    assert data["active_projects"] == 1
    assert data["task_counts"]["done"] == 2
    assert data["completed_this_week"] == 1
    assert len(data["overdue"]) == 1
    assert len(data["due_today"]) == 1
    assert data["hours_saved_per_week"] == pytest.approx(5)
    assert data["next_level"] == "Achiever"
    assert data["points_to_next_level"] == 140
    assert [row["name"] for row in data["project_progress"]] == ["Billing"]
    assert data["project_progress"][0]["percent"] == 33


def test_open_leaves_unreadable_data_in_place(config):
    """Test startup does not overwrite a document it could only partly read"""
    workspace = Workspace(config)
    raw = json.dumps(
        {
            "projects": [{"id": "p1", "name": "Billing"}],
            "tasks": [{"id": "t1", "projectId": "p1", "dueDate": "not a date"}],
        }
    )
    workspace.db.set_item(workspace.local.slot, raw)

    store = workspace.open(now=datetime(2024, 3, 6, 9, 0))

    assert store.project_name("p1") == "Billing"
    assert "Some stored data could not be read" in workspace.notices
    assert workspace.db.get_item(workspace.local.slot) == raw


def test_open_leaves_corrupt_data_in_place(config):
    workspace = Workspace(config)
    workspace.db.set_item(workspace.local.slot, "{not json")

    store = workspace.open()

    assert store.projects == []
    assert workspace.db.get_item(workspace.local.slot) == "{not json"
