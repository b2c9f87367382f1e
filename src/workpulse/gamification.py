"""Streak and karma accounting driven by task completions and activity logging"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from .models import KARMA_LEVELS, Settings, Task

logger = logging.getLogger(__name__)


ACTIVITY_POINTS = 1
TASK_POINTS = 3
ON_TIME_BONUS = 5
STREAK_MILESTONES = (7, 30, 100)


@dataclass
class GamificationResult:
    """Outcome of one triggering action"""

    points: int = 0
    streak: int = 0
    milestone: Optional[int] = None
    level: str = "Beginner"
    level_up: bool = False
    notices: List[str] = field(default_factory=list)


def karma_level(karma: int) -> str:
    """Tier label for a karma total"""
    level = KARMA_LEVELS[0][1]
    for threshold, name in KARMA_LEVELS:
        if karma >= threshold:
            level = name
    return level


def next_karma_level(karma: int):
    """Return (level name, points still needed) for the next tier, or None at the top"""
    for threshold, name in KARMA_LEVELS:
        if karma < threshold:
            return name, threshold - karma
    return None


def update_streak(settings: Settings, today: date) -> Optional[int]:
    """Count today towards the consecutive-day streak

    Returns:
        The milestone reached (7, 30 or 100), or None
    """
    last = settings.last_active_date
    if last == today:
        return None

    if last is not None and last == today - timedelta(days=1):
        settings.streak += 1
    else:
        settings.streak = 1

    settings.last_active_date = today
    settings.longest_streak = max(settings.longest_streak, settings.streak)

    if settings.streak in STREAK_MILESTONES:
        return settings.streak
    return None


def award_karma(settings: Settings, points: int) -> bool:
    """Add points and recompute the level; returns True when the tier changed"""
    previous = settings.karma_level
    settings.karma += points
    settings.karma_level = karma_level(settings.karma)
    return settings.karma_level != previous


def _apply(settings: Settings, today: date, points: int) -> GamificationResult:
    milestone = update_streak(settings, today)
    level_up = award_karma(settings, points)

    result = GamificationResult(
        points=points,
        streak=settings.streak,
        milestone=milestone,
        level=settings.karma_level,
        level_up=level_up,
    )
    if milestone:
        result.notices.append(f"{milestone}-day streak! Keep it going")
    if level_up:
        result.notices.append(f"Level up! You are now a {settings.karma_level}")

    logger.debug("Awarded %s karma (total %s), streak %s", points, settings.karma, settings.streak)
    return result


def task_completion_points(task: Task, completed_on: date) -> int:
    """Base points plus the bonus for finishing on or before the due date"""
    points = TASK_POINTS
    if task.due_date is not None and completed_on <= task.due_date:
        points += ON_TIME_BONUS
    return points


def on_task_completed(settings: Settings, task: Task, completed_on: date) -> GamificationResult:
    """Record a task entering done"""
    return _apply(settings, completed_on, task_completion_points(task, completed_on))


def on_activity_logged(settings: Settings, today: date) -> GamificationResult:
    """Record a newly logged activity"""
    return _apply(settings, today, ACTIVITY_POINTS)
