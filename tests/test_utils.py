"""Tests for utility functions"""

import json

import pytest
from datetime import datetime, date
from workpulse.utils import (
    Config,
    ValidationError,
    format_date,
    get_date_group,
    get_due_urgency,
    get_relative_date,
    get_relative_time,
    get_week_bounds,
    parse_date,
    parse_datetime,
    parse_tags,
    truncate_string,
    validate_priority,
    validate_status,
    validate_text,
    PROJECT_STATUSES,
)


def test_validate_priority():
    """Test priority validation and clamping"""
    assert validate_priority(3) == 3
    assert validate_priority(1) == 1
    assert validate_priority(5) == 5
    assert validate_priority(0) == 1
    assert validate_priority(99) == 5


def test_validate_status():
    """Test status validation"""
    assert validate_status("active", PROJECT_STATUSES) == "active"
    assert validate_status("on-hold", PROJECT_STATUSES) == "on-hold"

    with pytest.raises(ValidationError):
        validate_status("paused", PROJECT_STATUSES)


def test_validate_text():
    """Test required text with a length limit"""
    assert validate_text("  hello ", "Name", 10) == "hello"
    with pytest.raises(ValidationError):
        validate_text("   ", "Name", 10)
    with pytest.raises(ValidationError):
        validate_text(None, "Name", 10)
    with pytest.raises(ValidationError):
        validate_text("x" * 11, "Name", 10)


def test_truncate_string():
    """Test string truncation"""
    assert truncate_string("short", 10) == "short"
    assert truncate_string("this is a very long string", 10) == "this is..."
    assert len(truncate_string("x" * 100, 20)) == 20


def test_get_relative_time():
    """Test relative time formatting"""
    now = datetime(2024, 3, 5, 12, 0)

    assert get_relative_time(datetime(2024, 3, 5, 11, 59, 30), now) == "just now"
    assert get_relative_time(datetime(2024, 3, 5, 11, 30), now) == "30m ago"
    assert get_relative_time(datetime(2024, 3, 5, 9, 0), now) == "3h ago"
    assert get_relative_time(datetime(2024, 3, 3, 12, 0), now) == "2d ago"


def test_get_week_bounds():
    """Test weeks run Monday through Sunday"""
    assert get_week_bounds(date(2024, 3, 5)) == (date(2024, 3, 4), date(2024, 3, 10))
    assert get_week_bounds(date(2024, 3, 4)) == (date(2024, 3, 4), date(2024, 3, 10))
    # Sunday belongs to the week that started six days earlier
    assert get_week_bounds(date(2024, 3, 10)) == (date(2024, 3, 4), date(2024, 3, 10))


def test_get_due_urgency():
    today = date(2024, 3, 5)

    assert get_due_urgency(None, today) == ""
    assert get_due_urgency(date(2024, 3, 4), today) == "overdue"
    assert get_due_urgency(date(2024, 3, 5), today) == "today"
    assert get_due_urgency(date(2024, 3, 8), today) == "this-week"
    assert get_due_urgency(date(2024, 4, 1), today) == "future"


def test_relative_dates_and_groups():
    """Test activity feed headings"""
    today = date(2024, 3, 20)

    assert get_relative_date(date(2024, 3, 20), today) == "Today"
    assert get_relative_date(date(2024, 3, 17), today) == "3 days ago"
    assert get_date_group(date(2024, 3, 19), today) == "Yesterday"
    assert get_date_group(date(2024, 3, 16), today) == "This Week"
    assert get_date_group(date(2024, 3, 10), today) == "Last Week"
    assert get_date_group(date(2024, 3, 1), today) == "This Month"
    assert get_date_group(date(2024, 1, 5), today) == "Jan 5, 2024"


def test_format_date():
    assert format_date(date(2024, 3, 5)) == "Mar 5, 2024"
    assert format_date(None) == "No deadline"


def test_parse_date():
    """Test date parsing from strings and date objects"""
    assert parse_date("2024-03-05") == date(2024, 3, 5)
    assert parse_date(datetime(2024, 3, 5, 10, 0)) == date(2024, 3, 5)
    assert parse_date("") is None

    with pytest.raises(ValidationError):
        parse_date("not a date")


def test_parse_datetime_epoch_millis():
    """Test epoch milliseconds are accepted for instants"""
    expected = datetime.fromtimestamp(1709632800)
    assert parse_datetime(1709632800000) == expected
    assert parse_datetime("2024-03-05T10:00:00") == datetime(2024, 3, 5, 10, 0)


def test_parse_tags():
    assert parse_tags("a, b,, c ") == ["a", "b", "c"]
    assert parse_tags(["x", " ", "y"]) == ["x", "y"]
    assert parse_tags(None) == []


def test_config_defaults_and_save(tmp_path):
    """Test config falls back to defaults and persists updates"""
    config_path = tmp_path / "config.json"
    config = Config(str(config_path))

    assert config.get("storage_slot") == "workpulse-data"
    assert config.get("db_path") == str(tmp_path / "workpulse.db")
    assert config.get("remote_url") is None

    config.set("user_id", "me")

    saved = json.loads(config_path.read_text())
    assert saved["user_id"] == "me"
    assert Config(str(config_path)).get("user_id") == "me"


def test_config_corrupt_file_uses_defaults(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text("{not json")

    config = Config(str(config_path))

    assert config.get("sync_debounce_seconds") == 2.0
