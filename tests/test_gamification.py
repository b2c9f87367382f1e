"""Tests for streak and karma accounting"""

from datetime import date

import pytest

from workpulse.gamification import (
    award_karma,
    karma_level,
    next_karma_level,
    on_activity_logged,
    on_task_completed,
    update_streak,
)
from workpulse.models import Settings, Task


@pytest.fixture
def settings():
    return Settings()


def test_first_action_starts_streak(settings):
    """Test an empty last-active date starts the streak at 1"""
    update_streak(settings, date(2024, 3, 5))

    assert settings.streak == 1
    assert settings.longest_streak == 1
    assert settings.last_active_date == date(2024, 3, 5)


def test_same_day_counts_once(settings):
    """Test two actions on the same day increment at most once"""
    update_streak(settings, date(2024, 3, 5))
    update_streak(settings, date(2024, 3, 5))

    assert settings.streak == 1


def test_consecutive_day_increments(settings):
    """Test a one-day gap extends the streak"""
    update_streak(settings, date(2024, 3, 5))
    update_streak(settings, date(2024, 3, 6))

    assert settings.streak == 2
    assert settings.longest_streak == 2


def test_gap_resets_streak(settings):
    """Test a gap of two or more days resets to 1 but keeps the longest"""
    settings.streak = 4
    settings.longest_streak = 4
    settings.last_active_date = date(2024, 3, 1)

    update_streak(settings, date(2024, 3, 3))

    assert settings.streak == 1
    assert settings.longest_streak == 4


def test_streak_milestones(settings):
    """Test only 7, 30 and 100 are milestones"""
    settings.streak = 6
    settings.last_active_date = date(2024, 3, 4)
    assert update_streak(settings, date(2024, 3, 5)) == 7

    assert update_streak(settings, date(2024, 3, 6)) is None
    assert settings.streak == 8

    settings.streak = 29
    settings.last_active_date = date(2024, 4, 1)
    assert update_streak(settings, date(2024, 4, 2)) == 30


def test_karma_levels():
    """Test karma tier thresholds"""
    assert karma_level(0) == "Beginner"
    assert karma_level(49) == "Beginner"
    assert karma_level(50) == "Contributor"
    assert karma_level(200) == "Achiever"
    assert karma_level(500) == "Expert"
    assert karma_level(1000) == "Legend"
    assert karma_level(5000) == "Legend"


def test_next_karma_level():
    """Test points needed for the next tier"""
    assert next_karma_level(0) == ("Contributor", 50)
    assert next_karma_level(199) == ("Achiever", 1)
    assert next_karma_level(1000) is None


def test_award_karma_reports_level_change(settings):
    """Test level-up detection"""
    settings.karma = 48
    assert award_karma(settings, 1) is False
    assert award_karma(settings, 1) is True
    assert settings.karma_level == "Contributor"


def test_task_due_today_awards_bonus(settings):
    """Test completing a task on its due date awards 3 + 5"""
    task = Task(name="Ship it", due_date=date(2024, 3, 5))

    result = on_task_completed(settings, task, date(2024, 3, 5))

    assert result.points == 8
    assert settings.karma == 8


def test_late_task_has_no_bonus(settings):
    """Test completing after the due date awards only the base points"""
    task = Task(name="Ship it", due_date=date(2024, 3, 5))

    result = on_task_completed(settings, task, date(2024, 3, 6))

    assert result.points == 3


def test_task_without_due_date(settings):
    """Test a task with no due date awards exactly 3"""
    result = on_task_completed(settings, Task(name="Whenever"), date(2024, 3, 5))

    assert result.points == 3
    assert settings.karma == 3


def test_activity_awards_one_point(settings):
    """Test logging an activity awards 1 point and counts towards the streak"""
    result = on_activity_logged(settings, date(2024, 3, 5))

    assert result.points == 1
    assert result.streak == 1
    assert settings.karma == 1


def test_notices_for_milestone_and_level_up(settings):
    """Test celebratory notices"""
    settings.karma = 49
    settings.streak = 6
    settings.last_active_date = date(2024, 3, 4)

    result = on_activity_logged(settings, date(2024, 3, 5))

    assert result.milestone == 7
    assert result.level_up is True
    assert len(result.notices) == 2
    assert any("7-day streak" in n for n in result.notices)
