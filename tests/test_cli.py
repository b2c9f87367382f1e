"""Tests for the command line interface"""

import json

import pytest
from click.testing import CliRunner

from workpulse.cli import cli
from workpulse.db import DatabaseManager, LocalStorage


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "config.json")


@pytest.fixture
def invoke(runner, config_path):
    """Run a command against an isolated config and database"""

    def _invoke(*args):
        return runner.invoke(cli, ["--config", config_path, *args])

    return _invoke


def load_store(tmp_path):
    manager = DatabaseManager(str(tmp_path / "workpulse.db"))
    manager.init_db()
    return LocalStorage(manager).load()


def test_init(invoke, tmp_path):
    """Test init writes config and marks onboarding complete"""
    result = invoke("init", "--name", "Sam")

    assert result.exit_code == 0, result.output
    assert (tmp_path / "config.json").exists()
    store = load_store(tmp_path)
    assert store.settings.user_name == "Sam"
    assert store.settings.onboarding_complete is True
    # Opening the workspace generates this week's snapshot
    assert len(store.weekly_snapshots) == 1


def test_project_and_task_flow(invoke, tmp_path):
    """Test adding a project, a task and completing it"""
    assert invoke("project", "add", "Billing", "--priority", "4").exit_code == 0
    assert invoke("task", "add", "Billing", "Parse invoices").exit_code == 0

    result = invoke("task", "done", "Parse invoices")

    assert result.exit_code == 0, result.output
    assert "Completed task" in result.output
    assert "+3 karma" in result.output

    store = load_store(tmp_path)
    assert store.tasks[0].status == "done"
    assert store.tasks[0].completed_at is not None
    assert store.settings.karma == 3


def test_validation_error_exits_nonzero(invoke, tmp_path):
    """Test rejected input reports an error and stores nothing"""
    result = invoke("task", "add", "Missing", "Orphan")

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert load_store(tmp_path).tasks == []


def test_log_uses_last_project(invoke, tmp_path):
    invoke("project", "add", "Billing")
    invoke("log", "Kickoff", "--project", "Billing", "--category", "meeting")

    result = invoke("log", "Wrote parser")

    assert result.exit_code == 0, result.output
    assert "Project: Billing" in result.output
    store = load_store(tmp_path)
    assert {a.project_id for a in store.activities} == {store.projects[0].id}


def test_project_delete_force(invoke, tmp_path):
    invoke("project", "add", "Billing")
    invoke("task", "add", "Billing", "Parse invoices")

    result = invoke("project", "delete", "Billing", "--force")

    assert result.exit_code == 0, result.output
    store = load_store(tmp_path)
    assert store.projects == []
    assert store.tasks == []


def test_report_markdown(invoke, tmp_path):
    """Test the markdown report lists a task completed this week"""
    invoke("init", "--name", "Sam")
    invoke("project", "add", "Billing")
    invoke("task", "add", "Billing", "Parse invoices")
    invoke("task", "done", "Parse invoices")

    result = invoke("report", "--preset", "weekly", "--markdown")

    assert result.exit_code == 0, result.output
    assert "# Status Report" in result.output
    assert "### Billing" in result.output
    assert "- Parse invoices (" in result.output


def test_report_export_to_directory(invoke, tmp_path):
    out_dir = tmp_path / "reports"
    out_dir.mkdir()

    result = invoke("report", "--preset", "standup", "--export", str(out_dir))

    assert result.exit_code == 0, result.output
    exported = list(out_dir.glob("status-report-*.md"))
    assert len(exported) == 1
    assert "## Blockers" in exported[0].read_text()


def test_report_invalid_range(invoke):
    result = invoke("report", "--from", "2024-03-07", "--to", "2024-03-01")

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_export_and_import(invoke, tmp_path):
    """Test exported data can be imported back"""
    invoke("project", "add", "Billing")
    export_path = tmp_path / "backup.json"
    assert invoke("export", str(export_path)).exit_code == 0

    invoke("project", "add", "Scratch")
    result = invoke("import", str(export_path), "--force")

    assert result.exit_code == 0, result.output
    assert [p.name for p in load_store(tmp_path).projects] == ["Billing"]


def test_import_rejects_invalid_file(invoke, tmp_path):
    invoke("project", "add", "Billing")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"unrelated": True}))

    result = invoke("import", str(bad), "--force")

    assert result.exit_code == 1
    assert "Invalid data file" in result.output
    assert [p.name for p in load_store(tmp_path).projects] == ["Billing"]


def test_sync_without_remote(invoke):
    result = invoke("sync")

    assert result.exit_code == 1
    assert "not configured" in result.output


def test_sync_with_remote(invoke, tmp_path):
    """Test init with a remote pushes on every command"""
    remote_url = f"sqlite:///{tmp_path / 'remote.db'}"
    assert invoke("init", "--remote-url", remote_url, "--user-id", "sam").exit_code == 0
    invoke("project", "add", "Billing")

    result = invoke("sync")

    assert result.exit_code == 0, result.output
    assert "Synced at" in result.output

    from workpulse.sync import RemoteDocumentStore

    doc = RemoteDocumentStore(remote_url).get("sam")
    assert doc["data"]["projects"][0]["name"] == "Billing"


def test_dashboard_and_board(invoke):
    invoke("project", "add", "Billing")
    invoke("task", "add", "Billing", "Wiring", "--status", "in-progress")

    dashboard = invoke("dashboard")
    board = invoke("board")

    assert dashboard.exit_code == 0, dashboard.output
    assert "Active projects" in dashboard.output
    assert board.exit_code == 0, board.output
    assert "in-progress" in board.output


def test_settings_set(invoke, tmp_path):
    result = invoke("settings", "set", "--name", "Sam", "--boss", "Alex", "--theme", "light")

    assert result.exit_code == 0, result.output
    settings = load_store(tmp_path).settings
    assert (settings.user_name, settings.boss_name, settings.theme) == ("Sam", "Alex", "light")


def test_log_with_task_uses_task_project(invoke, tmp_path):
    """Test --task links the task's project rather than the last used one"""
    invoke("project", "add", "Billing")
    invoke("project", "add", "Payroll")
    invoke("task", "add", "Payroll", "Export timesheets")
    invoke("log", "Kickoff", "--project", "Billing")

    result = invoke("log", "Checked exports", "--task", "Export timesheets")

    assert result.exit_code == 0, result.output
    assert "Project: Payroll" in result.output
    store = load_store(tmp_path)
    payroll = next(p for p in store.projects if p.name == "Payroll")
    assert store.activities[-1].project_id == payroll.id
    assert store.activities[-1].task_id == store.tasks[0].id


def test_task_add_by_project_name_prefix(invoke, tmp_path):
    invoke("project", "add", "Billing automation")

    result = invoke("task", "add", "billing", "Parse vendor invoices")

    assert result.exit_code == 0, result.output
    store = load_store(tmp_path)
    assert store.tasks[0].project_id == store.projects[0].id


def test_dashboard_after_import_with_null_timestamps(invoke, tmp_path):
    """Test null timestamps in an import do not break later commands"""
    from datetime import date

    from workpulse.utils import get_week_bounds

    week_start, week_end = get_week_bounds(date.today())
    data = {
        "projects": [{"id": "p1", "name": "Billing", "createdAt": None, "updatedAt": None}],
        "tasks": [],
        "activities": [],
        "weeklySnapshots": [
            {
                "id": "s1",
                "weekStart": week_start.isoformat(),
                "weekEnd": week_end.isoformat(),
                "createdAt": None,
                "updatedAt": None,
            }
        ],
    }
    path = tmp_path / "nulls.json"
    path.write_text(json.dumps(data))

    assert invoke("import", str(path), "--force").exit_code == 0
    result = invoke("dashboard")

    assert result.exit_code == 0, result.output
    store = load_store(tmp_path)
    assert store.projects[0].updated_at is not None
    assert store.weekly_snapshots[0].updated_at is not None
